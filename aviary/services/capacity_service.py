"""Gallery capacity checks.

Each species gallery holds at most ``SPECIES_PHOTO_LIMIT`` photos per user
and the unassigned inbox at most ``UNASSIGNED_PHOTO_LIMIT``. Upload and
assignment handlers call this service before writing. A full gallery still
accepts a photo when the caller names one to swap out; the handler performs
the delete-then-insert itself.

Running over the ceiling is an expected, user-fixable condition, so checks
return a ``LimitCheckResult`` instead of raising.

The check and the caller's subsequent write are separate store round trips.
Two concurrent uploads can both pass a check below the ceiling; the store
must enforce the ceiling (transaction or constraint) to close that gap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from aviary.adapters.store.base import AbstractCatalogStore
from aviary.core.limits import SPECIES_PHOTO_LIMIT, UNASSIGNED_PHOTO_LIMIT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LimitCheckResult:
    """Whether one more photo fits.

    Attributes:
        allowed: True when the write may proceed.
        current_count: Photos counted at check time.
        error: Message telling the user what to do, set only when rejected.
    """

    allowed: bool
    current_count: int
    error: str | None = None


class CapacityService:
    """Enforces per-species and inbox photo ceilings.

    Attributes:
        store: Catalog store used for counting photos.
    """

    def __init__(
        self,
        store: AbstractCatalogStore,
        *,
        species_limit: int = SPECIES_PHOTO_LIMIT,
        unassigned_limit: int = UNASSIGNED_PHOTO_LIMIT,
    ) -> None:
        self.store = store
        self.species_limit = species_limit
        self.unassigned_limit = unassigned_limit

    async def species_photo_count(self, species_id: int, user_id: str) -> int:
        return await self.store.count_species_photos(species_id, user_id)

    async def unassigned_photo_count(self, user_id: str) -> int:
        return await self.store.count_unassigned_photos(user_id)

    async def check_species_limit(
        self,
        species_id: int,
        user_id: str,
        replace_photo_id: int | None = None,
    ) -> LimitCheckResult:
        """Check whether species_id can take another photo for user_id.

        Below the ceiling the photo is always allowed. At the ceiling it is
        allowed only as a swap, i.e. when ``replace_photo_id`` is given.
        """
        current_count = await self.species_photo_count(species_id, user_id)

        if current_count < self.species_limit:
            return LimitCheckResult(allowed=True, current_count=current_count)

        if replace_photo_id is not None:
            logger.info(
                "capacity.swap_authorized",
                extra={
                    "species_id": species_id,
                    "replace_photo_id": replace_photo_id,
                    "current_count": current_count,
                },
            )
            return LimitCheckResult(allowed=True, current_count=current_count)

        logger.info(
            "capacity.rejected",
            extra={
                "scope": "species",
                "species_id": species_id,
                "current_count": current_count,
                "limit": self.species_limit,
            },
        )
        return LimitCheckResult(
            allowed=False,
            current_count=current_count,
            error=(
                f"This gallery is curated to {self.species_limit} photos. "
                "Choose one to swap out."
            ),
        )

    async def check_unassigned_limit(self, user_id: str) -> LimitCheckResult:
        """Check whether the inbox can take another unassigned photo.

        There is no swap here: a full inbox must be drained by assigning photos.
        """
        current_count = await self.unassigned_photo_count(user_id)

        if current_count < self.unassigned_limit:
            return LimitCheckResult(allowed=True, current_count=current_count)

        logger.info(
            "capacity.rejected",
            extra={
                "scope": "inbox",
                "current_count": current_count,
                "limit": self.unassigned_limit,
            },
        )
        return LimitCheckResult(
            allowed=False,
            current_count=current_count,
            error=(
                f"Your inbox has {self.unassigned_limit} photos waiting for a species. "
                "Assign some to make room for new uploads."
            ),
        )
