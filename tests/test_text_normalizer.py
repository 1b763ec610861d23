import pytest

from aviary.utils.text_normalizer import names_match, normalize_species_name


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("American Robin", "american robin"),
        ("  Blue Jay \n", "blue jay"),
        ("NORTHERN CARDINAL", "northern cardinal"),
        ("", ""),
    ],
)
def test_normalize_species_name(raw: str, expected: str) -> None:
    assert normalize_species_name(raw) == expected


def test_inner_whitespace_is_preserved() -> None:
    assert normalize_species_name("Blue  Jay") == "blue  jay"
    assert not names_match("Blue  Jay", "Blue Jay")


def test_names_match_ignores_case_and_padding() -> None:
    assert names_match("American Robin ", "american robin")
    assert not names_match("American Robin", "European Robin")
