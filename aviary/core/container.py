"""Dependency container wiring for the application."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from aviary.adapters.rate_limit.base import AbstractRateLimiter
from aviary.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from aviary.adapters.store.base import AbstractCatalogStore
from aviary.adapters.store.sqlalchemy_store import SqlAlchemyCatalogStore
from aviary.core.config import Settings, settings as default_settings
from aviary.services.capacity_service import CapacityService
from aviary.services.detection_link_service import DetectionLinkService
from aviary.services.suggestion_service import SuggestionService
from aviary.services.sweeper import PeriodicSweeper
from aviary.utils.ttl_cache import TTLCache


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: AbstractCatalogStore
    cache: TTLCache
    rate_limiter: AbstractRateLimiter
    capacity_service: CapacityService
    suggestion_service: SuggestionService
    detection_link_service: DetectionLinkService
    sweepers: list[PeriodicSweeper]
    open_resources: Callable[[], Awaitable[None]]
    close_resources: Callable[[], Awaitable[None]]


def build_container(
    settings: Settings | None = None,
    *,
    store: AbstractCatalogStore | None = None,
) -> AppContainer:
    """Create the default dependency container.

    Args:
        settings: Settings to use; the module-level settings when omitted.
        store: Catalog store override (tests pass a fake); a SQLAlchemy store
            built from ``settings.db`` when omitted.
    """
    resolved_settings = settings or default_settings

    owned_store: SqlAlchemyCatalogStore | None = None
    if store is None:
        owned_store = SqlAlchemyCatalogStore(
            resolved_settings.db.url, echo=resolved_settings.db.echo
        )
        store = owned_store

    cache = TTLCache(
        default_ttl_seconds=resolved_settings.app.cache_default_ttl_seconds,
        single_flight=resolved_settings.app.cache_single_flight,
    )
    rate_limiter = InMemoryFixedWindowRateLimiter()
    interval = resolved_settings.app.sweep_interval_seconds
    sweepers = [
        PeriodicSweeper("cache", cache.clear_expired, interval_seconds=interval),
        PeriodicSweeper("rate_limit", rate_limiter.purge_expired, interval_seconds=interval),
    ]

    async def open_resources() -> None:
        if owned_store is not None:
            await owned_store.initialize()
        for sweeper in sweepers:
            await sweeper.start()

    async def close_resources() -> None:
        for sweeper in sweepers:
            await sweeper.stop()
        if owned_store is not None:
            await owned_store.dispose()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        cache=cache,
        rate_limiter=rate_limiter,
        capacity_service=CapacityService(store),
        suggestion_service=SuggestionService(store),
        detection_link_service=DetectionLinkService(store, cache),
        sweepers=sweepers,
        open_resources=open_resources,
        close_resources=close_resources,
    )
