"""Photography suggestions ranked from acoustic detection data.

A species is worth photographing next when it is heard often, has few
photos relative to how often it is heard, was heard recently, and is not
too hard to photograph. Each of those signals is a bounded term; the terms
are summed, clamped to [0, 100] and rounded.

Scoring breakdown:
- Detection score (0-40): yearly detections, saturating at DETECTION_SATURATION
- Deficit score (0-40): share of detections not offset by photos, where each
  photo offsets DETECTIONS_PER_PHOTO detections
- Recency bonus (0/5/10/15): heard within 48h / 24h / 8h
- Difficulty modifier (-5/0/+5): rare / uncommon / common
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Callable

from aviary.adapters.store.base import AbstractCatalogStore, SuggestionCandidate
from aviary.schemas.suggestions import Suggestion

logger = logging.getLogger(__name__)

# Species detected fewer times than this in a year are never suggested.
MIN_YEARLY_DETECTIONS = 10

DETECTION_SATURATION = 250
DETECTION_WEIGHT = 40
DEFICIT_WEIGHT = 40
DETECTIONS_PER_PHOTO = 10

# (max hours since last heard, bonus), checked in order.
RECENCY_STEPS: tuple[tuple[float, int], ...] = ((8, 15), (24, 10), (48, 5))

DIFFICULTY_MODIFIERS: dict[str, int] = {"common": 5, "uncommon": 0, "rare": -5}

# Capture rate (percent) below which a species counts as under-documented.
LOW_CAPTURE_RATE_PERCENT = 5

MIN_LIMIT = 1
MAX_LIMIT = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _hours_since(moment: datetime, now: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (now - moment).total_seconds() / 3600


def detection_score(yearly_count: int) -> float:
    return min(yearly_count / DETECTION_SATURATION, 1) * DETECTION_WEIGHT


def deficit_score(yearly_count: int, photo_count: int) -> float:
    if yearly_count <= 0:
        return 0.0
    ratio = max(0.0, (yearly_count - photo_count * DETECTIONS_PER_PHOTO) / yearly_count)
    return ratio * DEFICIT_WEIGHT


def recency_bonus(last_heard: datetime | None, now: datetime) -> int:
    if last_heard is None:
        return 0
    hours_ago = _hours_since(last_heard, now)
    for max_hours, bonus in RECENCY_STEPS:
        if hours_ago <= max_hours:
            return bonus
    return 0


def calculate_priority_score(
    yearly_count: int,
    photo_count: int,
    last_heard: datetime | None,
    rarity: str,
    *,
    now: datetime | None = None,
) -> int:
    """Return the 0-100 priority score for one species.

    Args:
        yearly_count: Detections recorded this year.
        photo_count: Photos already assigned to the species.
        last_heard: When the species was last detected, if ever.
        rarity: "common", "uncommon" or "rare".
        now: Reference time for the recency bonus; defaults to the current UTC time.
    """
    now = now or _utcnow()
    total = (
        detection_score(yearly_count)
        + deficit_score(yearly_count, photo_count)
        + recency_bonus(last_heard, now)
        + DIFFICULTY_MODIFIERS.get(rarity, 0)
    )
    # Halves round up, not to even.
    return math.floor(max(0.0, min(100.0, total)) + 0.5)


def generate_reason(candidate: SuggestionCandidate, *, now: datetime | None = None) -> str:
    """Explain the suggestion using the first rule that applies."""
    if candidate.photo_count == 0:
        return "Not photographed yet - add to your collection!"

    if candidate.yearly_count > 0:
        capture_rate = candidate.photo_count / (candidate.yearly_count / DETECTIONS_PER_PHOTO) * 100
    else:
        capture_rate = float("inf")

    if capture_rate < LOW_CAPTURE_RATE_PERCENT:
        plural = "" if candidate.photo_count == 1 else "s"
        return (
            f"Heard {candidate.yearly_count:,}x but only "
            f"{candidate.photo_count} photo{plural}"
        )

    if candidate.last_heard_at is not None:
        hours_ago = _hours_since(candidate.last_heard_at, now or _utcnow())
        if hours_ago <= 8:
            return "Active right now - go for it!"
        if hours_ago <= 24:
            return "Heard recently - good chance to find it!"

    return f"Frequent visitor ({candidate.yearly_count:,} detections this year)"


def _latest_per_species(candidates: list[SuggestionCandidate]) -> list[SuggestionCandidate]:
    """Keep one candidate per species: the most recent data year."""
    latest: dict[int, SuggestionCandidate] = {}
    for candidate in candidates:
        current = latest.get(candidate.species_id)
        if current is None or (candidate.data_year, candidate.yearly_count) > (
            current.data_year,
            current.yearly_count,
        ):
            latest[candidate.species_id] = candidate
    return list(latest.values())


class SuggestionService:
    """Ranks a user's species by how much they need photographing.

    Attributes:
        store: Catalog store providing candidates.
    """

    def __init__(
        self,
        store: AbstractCatalogStore,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self._clock = clock

    def build_suggestion(self, candidate: SuggestionCandidate, now: datetime) -> Suggestion:
        return Suggestion(
            id=candidate.species_id,
            common_name=candidate.common_name,
            scientific_name=candidate.scientific_name,
            rarity=candidate.rarity,
            score=calculate_priority_score(
                candidate.yearly_count,
                candidate.photo_count,
                candidate.last_heard_at,
                candidate.rarity,
                now=now,
            ),
            reason=generate_reason(candidate, now=now),
            yearly_count=candidate.yearly_count,
            photo_count=candidate.photo_count,
            last_heard=candidate.last_heard_at,
        )

    async def get_photo_suggestions(self, user_id: str, limit: int = 10) -> list[Suggestion]:
        """Return up to ``limit`` suggestions, highest score first.

        ``limit`` is clamped to [1, 50]. Equal scores are ordered by species id
        so the ranking is stable across calls. Store errors propagate.
        """
        limit = max(MIN_LIMIT, min(MAX_LIMIT, limit))
        now = self._clock()

        # Latest year first, floor second: a quiet current year drops the species.
        candidates = await self.store.list_suggestion_candidates(user_id, min_yearly_count=0)
        scored = [
            self.build_suggestion(c, now)
            for c in _latest_per_species(candidates)
            if c.yearly_count >= MIN_YEARLY_DETECTIONS
        ]
        scored.sort(key=lambda s: (-s.score, s.id))

        logger.info(
            "suggestions.generated",
            extra={"candidates": len(scored), "limit": limit},
        )
        return scored[:limit]
