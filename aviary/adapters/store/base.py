"""Catalog store interface.

Services talk to the relational store only through this interface. The
store owns persistence and transactions; services issue reads (counts,
joins, grouped aggregates) plus the single detection-link update.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Rarity = Literal["common", "uncommon", "rare"]


@dataclass(frozen=True)
class SpeciesRecord:
    id: int
    user_id: str
    common_name: str
    rarity: Rarity
    scientific_name: str | None = None
    cover_photo_id: int | None = None


@dataclass(frozen=True)
class DetectionRecord:
    """Yearly aggregate of acoustic detections for one raw species name."""

    id: int
    user_id: str
    species_common_name: str
    yearly_count: int
    data_year: int
    last_heard_at: datetime | None = None
    species_id: int | None = None


@dataclass(frozen=True)
class SuggestionCandidate:
    """A species joined with its detection row and photo count."""

    species_id: int
    common_name: str
    rarity: Rarity
    yearly_count: int
    photo_count: int
    data_year: int
    last_heard_at: datetime | None = None
    scientific_name: str | None = None


class AbstractCatalogStore(ABC):
    """Read side of the species/photo/detection store."""

    @abstractmethod
    async def count_species_photos(self, species_id: int, user_id: str) -> int:
        """Number of the user's photos assigned to species_id."""
        raise NotImplementedError

    @abstractmethod
    async def count_unassigned_photos(self, user_id: str) -> int:
        """Number of the user's photos with no species (the inbox)."""
        raise NotImplementedError

    @abstractmethod
    async def list_suggestion_candidates(
        self, user_id: str, *, min_yearly_count: int
    ) -> list[SuggestionCandidate]:
        """Species of the user with a resolved detection row of at least
        ``min_yearly_count`` detections, one candidate per detection row."""
        raise NotImplementedError

    @abstractmethod
    async def get_species(self, species_id: int, user_id: str) -> SpeciesRecord | None:
        raise NotImplementedError

    @abstractmethod
    async def list_species(self, user_id: str) -> list[SpeciesRecord]:
        raise NotImplementedError

    @abstractmethod
    async def list_detections(
        self, user_id: str, *, unresolved_only: bool = False
    ) -> list[DetectionRecord]:
        raise NotImplementedError

    @abstractmethod
    async def set_detection_species(self, detection_ids: list[int], species_id: int) -> int:
        """Point the given detection rows at species_id. Returns rows updated."""
        raise NotImplementedError
