"""Tests for resolving raw detection names to species."""

import pytest

from aviary.core.errors import ValidationAppError
from aviary.services.detection_link_service import DetectionLinkService
from aviary.utils.ttl_cache import CacheKeys, TTLCache


@pytest.fixture
def cache() -> TTLCache:
    return TTLCache()


@pytest.fixture
def service(fake_store, cache) -> DetectionLinkService:
    return DetectionLinkService(fake_store, cache)


@pytest.mark.asyncio
async def test_links_matching_names_for_same_user(service, fake_store) -> None:
    fake_store.add_species(1, "alice", "American Robin")
    fake_store.add_detection("alice", "american robin ", 40)
    fake_store.add_detection("alice", "AMERICAN ROBIN", 12, data_year=2025)
    fake_store.add_detection("alice", "Blue Jay", 30)
    fake_store.add_detection("bob", "American Robin", 50)

    linked = await service.link_detections("alice", 1)

    assert linked == 2
    by_id = {d.id: d.species_id for d in fake_store.detections}
    assert by_id == {1: 1, 2: 1, 3: None, 4: None}


@pytest.mark.asyncio
async def test_already_linked_rows_are_not_counted(service, fake_store) -> None:
    fake_store.add_species(1, "alice", "Blue Jay")
    fake_store.add_detection("alice", "Blue Jay", 30, species_id=1)

    assert await service.link_detections("alice", 1) == 0


@pytest.mark.asyncio
async def test_unknown_species_raises(service) -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        await service.link_detections("alice", 99)

    assert exc_info.value.code == "species_not_found"


@pytest.mark.asyncio
async def test_foreign_species_raises(service, fake_store) -> None:
    fake_store.add_species(1, "bob", "Blue Jay")

    with pytest.raises(ValidationAppError):
        await service.link_detections("alice", 1)


@pytest.mark.asyncio
async def test_linking_invalidates_cached_suggestions(service, fake_store, cache) -> None:
    fake_store.add_species(1, "alice", "Blue Jay")
    fake_store.add_detection("alice", "blue jay", 30)
    cache.set(CacheKeys.suggestions("alice", 10), ["stale"])
    cache.set(CacheKeys.suggestions("bob", 10), ["kept"])

    await service.link_detections("alice", 1)

    assert cache.get(CacheKeys.suggestions("alice", 10)) is None
    assert cache.get(CacheKeys.suggestions("bob", 10)) == ["kept"]


@pytest.mark.asyncio
async def test_no_match_leaves_cache_alone(service, fake_store, cache) -> None:
    fake_store.add_species(1, "alice", "Blue Jay")
    cache.set(CacheKeys.suggestions("alice", 10), ["cached"])

    assert await service.link_detections("alice", 1) == 0
    assert cache.get(CacheKeys.suggestions("alice", 10)) == ["cached"]


@pytest.mark.asyncio
async def test_link_all_resolves_every_unresolved_detection(service, fake_store) -> None:
    fake_store.add_species(1, "alice", "Blue Jay")
    fake_store.add_species(2, "alice", "Barred Owl")
    fake_store.add_detection("alice", " blue jay", 30)
    fake_store.add_detection("alice", "Barred owl", 20)
    fake_store.add_detection("alice", "Unknown Warbler", 15)

    linked = await service.link_all("alice")

    assert linked == 2
    assert [d.species_id for d in fake_store.detections] == [1, 2, None]


@pytest.mark.asyncio
async def test_link_all_prefers_lowest_species_id_on_duplicate_names(service, fake_store) -> None:
    fake_store.add_species(1, "alice", "Blue Jay")
    fake_store.add_species(2, "alice", "blue jay ")
    fake_store.add_detection("alice", "Blue Jay", 30)

    await service.link_all("alice")

    assert fake_store.detections[0].species_id == 1


@pytest.mark.asyncio
async def test_link_all_lowest_id_wins_regardless_of_insert_order(service, fake_store) -> None:
    fake_store.add_species(5, "alice", "blue jay")
    fake_store.add_species(2, "alice", "Blue Jay ")
    fake_store.add_detection("alice", "BLUE JAY", 30)

    await service.link_all("alice")

    assert fake_store.detections[0].species_id == 2
