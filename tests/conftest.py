"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any aviary import so the settings
object never picks up a developer's .env file or database.
"""

import os
from dataclasses import dataclass, replace
from datetime import datetime

import pytest

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")

from aviary.adapters.store.base import (  # noqa: E402
    AbstractCatalogStore,
    DetectionRecord,
    SpeciesRecord,
    SuggestionCandidate,
)


@dataclass
class FakePhoto:
    id: int
    user_id: str
    species_id: int | None = None


class FakeCatalogStore(AbstractCatalogStore):
    """In-memory catalog store mirroring the SQL store's query semantics."""

    def __init__(self) -> None:
        self.species: list[SpeciesRecord] = []
        self.photos: list[FakePhoto] = []
        self.detections: list[DetectionRecord] = []

    def add_species(self, species_id: int, user_id: str, common_name: str, rarity: str = "common") -> None:
        self.species.append(
            SpeciesRecord(id=species_id, user_id=user_id, common_name=common_name, rarity=rarity)
        )

    def add_photos(self, user_id: str, species_id: int | None, count: int) -> None:
        for _ in range(count):
            self.photos.append(FakePhoto(id=len(self.photos) + 1, user_id=user_id, species_id=species_id))

    def add_detection(
        self,
        user_id: str,
        name: str,
        yearly_count: int,
        *,
        species_id: int | None = None,
        data_year: int = 2026,
        last_heard_at: datetime | None = None,
    ) -> None:
        self.detections.append(
            DetectionRecord(
                id=len(self.detections) + 1,
                user_id=user_id,
                species_common_name=name,
                yearly_count=yearly_count,
                data_year=data_year,
                last_heard_at=last_heard_at,
                species_id=species_id,
            )
        )

    async def count_species_photos(self, species_id: int, user_id: str) -> int:
        return sum(1 for p in self.photos if p.species_id == species_id and p.user_id == user_id)

    async def count_unassigned_photos(self, user_id: str) -> int:
        return sum(1 for p in self.photos if p.species_id is None and p.user_id == user_id)

    async def list_suggestion_candidates(
        self, user_id: str, *, min_yearly_count: int
    ) -> list[SuggestionCandidate]:
        candidates = []
        for species in self.species:
            if species.user_id != user_id:
                continue
            for d in self.detections:
                if d.species_id != species.id or d.user_id != user_id:
                    continue
                if d.yearly_count < min_yearly_count:
                    continue
                candidates.append(
                    SuggestionCandidate(
                        species_id=species.id,
                        common_name=species.common_name,
                        rarity=species.rarity,
                        yearly_count=d.yearly_count,
                        photo_count=await self.count_species_photos(species.id, user_id),
                        data_year=d.data_year,
                        last_heard_at=d.last_heard_at,
                    )
                )
        return candidates

    async def get_species(self, species_id: int, user_id: str) -> SpeciesRecord | None:
        for species in self.species:
            if species.id == species_id and species.user_id == user_id:
                return species
        return None

    async def list_species(self, user_id: str) -> list[SpeciesRecord]:
        return sorted((s for s in self.species if s.user_id == user_id), key=lambda s: s.id)

    async def list_detections(
        self, user_id: str, *, unresolved_only: bool = False
    ) -> list[DetectionRecord]:
        return [
            d
            for d in self.detections
            if d.user_id == user_id and not (unresolved_only and d.species_id is not None)
        ]

    async def set_detection_species(self, detection_ids: list[int], species_id: int) -> int:
        wanted = set(detection_ids)
        updated = 0
        for index, d in enumerate(self.detections):
            if d.id in wanted:
                self.detections[index] = replace(d, species_id=species_id)
                updated += 1
        return updated


class FakeClock:
    """Deterministic clock returning UNIX seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_store() -> FakeCatalogStore:
    return FakeCatalogStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
