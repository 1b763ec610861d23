def normalize_species_name(name: str) -> str:
    """Canonicalize a free-text species name for matching.

    Detection devices report names with inconsistent casing and stray
    whitespace ("American Robin ", "american robin"). Both sides of a
    comparison are passed through this function before equality checks.

    Args:
        name: Raw species common name.

    Returns:
        str: Lowercased name with surrounding whitespace removed.
    """
    return name.lower().strip()


def names_match(left: str, right: str) -> bool:
    """Return True when two species names are equal after normalization."""
    return normalize_species_name(left) == normalize_species_name(right)
