"""Resolve raw detection names to cataloged species.

Detection devices report free-text species names. A detection row is linked
to a species only when both names are equal after normalization and both
rows belong to the same user.
"""

from __future__ import annotations

import logging

from aviary.adapters.store.base import AbstractCatalogStore
from aviary.core.errors import ValidationAppError
from aviary.utils.text_normalizer import names_match, normalize_species_name
from aviary.utils.ttl_cache import TTLCache, invalidate_detections_cache

logger = logging.getLogger(__name__)


class DetectionLinkService:
    """Links a user's raw detection rows to their cataloged species.

    Attributes:
        store: Catalog store holding species and detection rows.
        cache: Cache whose detection and suggestion keys are dropped after a link.
    """

    def __init__(self, store: AbstractCatalogStore, cache: TTLCache) -> None:
        self.store = store
        self.cache = cache

    async def link_detections(self, user_id: str, species_id: int) -> int:
        """Link every detection of user_id whose name matches species_id.

        Returns:
            Number of detection rows linked.

        Raises:
            ValidationAppError: If the species does not exist for this user.
        """
        species = await self.store.get_species(species_id, user_id)
        if species is None:
            raise ValidationAppError(
                code="species_not_found",
                message=f"Species {species_id} does not exist.",
            )

        detections = await self.store.list_detections(user_id)
        matching = [
            d.id
            for d in detections
            if d.species_id != species_id
            and names_match(d.species_common_name, species.common_name)
        ]

        linked = await self.store.set_detection_species(matching, species_id)
        if linked:
            invalidate_detections_cache(self.cache, user_id=user_id)
        logger.info(
            "detections.linked",
            extra={"species_id": species_id, "linked": linked},
        )
        return linked

    async def link_all(self, user_id: str) -> int:
        """Resolve all unresolved detections of user_id against their species.

        Names matching no species stay unresolved. If two species normalize to
        the same name, the one with the lower id wins.
        """
        by_name: dict[str, int] = {}
        for species in sorted(await self.store.list_species(user_id), key=lambda s: s.id):
            by_name.setdefault(normalize_species_name(species.common_name), species.id)

        pending: dict[int, list[int]] = {}
        for detection in await self.store.list_detections(user_id, unresolved_only=True):
            species_id = by_name.get(normalize_species_name(detection.species_common_name))
            if species_id is not None:
                pending.setdefault(species_id, []).append(detection.id)

        linked = 0
        for species_id, detection_ids in pending.items():
            linked += await self.store.set_detection_species(detection_ids, species_id)

        if linked:
            invalidate_detections_cache(self.cache, user_id=user_id)
        logger.info("detections.link_all", extra={"linked": linked})
        return linked
