"""In-process TTL cache with read-through and pattern invalidation.

Designed for a single-process deployment: the backing store is a plain
mapping owned by the cache instance (or injected by the caller), so nothing
is shared across workers. Expired entries are dropped lazily on read and
proactively by ``clear_expired``, which the application runs from a
``PeriodicSweeper``.

Invalidation is deliberately coarse. The helpers at the bottom of this
module clear whole key families after a write instead of tracking which
listing embeds which row.
"""

from __future__ import annotations

import asyncio
import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, MutableMapping, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300

_MISSING = object()


@dataclass
class CacheEntry:
    """Cached value with its absolute expiry (clock seconds)."""

    key: str
    value: Any
    expires_at: float


class TTLCache:
    """Thread-safe, in-memory TTL cache.

    Attributes:
        default_ttl_seconds: TTL used by ``set``/``get_or_fetch`` when none is given.
        single_flight: When True, concurrent ``get_or_fetch`` misses for the same
            key await one shared fetch instead of each calling ``fetch_fn``.
    """

    def __init__(
        self,
        *,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        store: MutableMapping[str, CacheEntry] | None = None,
        clock: Callable[[], float] = time.time,
        single_flight: bool = False,
    ) -> None:
        if default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be > 0")

        self.default_ttl_seconds = default_ttl_seconds
        self.single_flight = single_flight
        self._store: MutableMapping[str, CacheEntry] = store if store is not None else {}
        self._clock = clock
        self._lock = threading.RLock()
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"TTLCache(default_ttl_seconds={self.default_ttl_seconds}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions})"
        )

    def _lookup(self, key: str) -> Any:
        """Return the live value for key or ``_MISSING``, evicting it if expired."""

        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "not_found"})
                return _MISSING

            if self._clock() > entry.expires_at:
                self._store.pop(key, None)
                self._evictions += 1
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "expired"})
                return _MISSING

            self._hits += 1
            logger.debug("cache.hit", extra={"cache_key": key})
            return entry.value

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if absent or expired.

        An expired entry is removed as a side effect.
        """

        value = self._lookup(key)
        return None if value is _MISSING else value

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store value under key for ``ttl_seconds`` (default TTL when omitted)."""

        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError("ttl_seconds must be > 0")

        with self._lock:
            self._store[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)
            logger.debug(
                "cache.set",
                extra={"cache_key": key, "size": len(self._store), "ttl_s": ttl},
            )

    def delete(self, key: str) -> bool:
        """Remove a single key. Returns True if it was present."""

        with self._lock:
            return self._store.pop(key, None) is not None

    def delete_pattern(self, pattern: str | re.Pattern[str]) -> int:
        """Remove every key the regular expression matches.

        The pattern is searched against the whole key string, so anchor it
        (``^photos:``) to restrict it to a prefix.

        Returns:
            Number of keys removed.

        Raises:
            ValueError: If ``pattern`` is not a valid regular expression.
        """

        try:
            regex = re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"invalid cache key pattern: {pattern!r}") from exc

        with self._lock:
            doomed = [key for key in self._store if regex.search(key)]
            for key in doomed:
                del self._store[key]

        if doomed:
            logger.debug(
                "cache.delete_pattern",
                extra={"pattern": regex.pattern, "removed": len(doomed)},
            )
        return len(doomed)

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def clear_expired(self) -> int:
        """Drop every entry whose expiry has passed. Returns the number removed."""

        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._store.items() if now > entry.expires_at]
            for key in expired:
                del self._store[key]
            self._evictions += len(expired)
        return len(expired)

    def stats(self) -> dict[str, Any]:
        """Return cache metrics without exposing values."""

        with self._lock:
            return {
                "size": len(self._store),
                "keys": list(self._store.keys()),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        ttl_seconds: int | None = None,
    ) -> T:
        """Return the cached value for key, fetching and caching it on a miss.

        Errors raised by ``fetch_fn`` propagate and nothing is cached. Without
        ``single_flight``, concurrent misses each call ``fetch_fn``.
        """

        cached = self._lookup(key)
        if cached is not _MISSING:
            return cached

        if not self.single_flight:
            value = await fetch_fn()
            self.set(key, value, ttl_seconds)
            return value

        pending = self._in_flight.get(key)
        if pending is not None:
            logger.debug("cache.fetch_joined", extra={"cache_key": key})
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(fetch_fn())
        self._in_flight[key] = task
        try:
            value = await asyncio.shield(task)
            self.set(key, value, ttl_seconds)
            return value
        finally:
            if self._in_flight.get(key) is task:
                del self._in_flight[key]


class CacheKeys:
    """Key builders shared by readers and invalidation helpers."""

    @staticmethod
    def species_list(user_id: str) -> str:
        return f"species:list:{user_id}"

    @staticmethod
    def species_by_id(species_id: int) -> str:
        return f"species:{species_id}"

    @staticmethod
    def photos_list(params: str) -> str:
        return f"photos:list:{params}"

    @staticmethod
    def photo_by_id(photo_id: int) -> str:
        return f"photo:{photo_id}"

    @staticmethod
    def detection_stats(user_id: str) -> str:
        return f"detections:stats:{user_id}"

    @staticmethod
    def detections_list(params: str) -> str:
        return f"detections:list:{params}"

    @staticmethod
    def suggestions(user_id: str, limit: int) -> str:
        return f"suggestions:{user_id}:{limit}"


def invalidate_suggestions_cache(cache: TTLCache, user_id: str | None = None) -> None:
    """Drop cached suggestion rankings for one user, or for everyone."""

    if user_id is None:
        cache.delete_pattern(r"^suggestions:")
    else:
        cache.delete_pattern(rf"^suggestions:{re.escape(user_id)}:")


def invalidate_species_cache(
    cache: TTLCache,
    species_id: int | None = None,
    *,
    user_id: str | None = None,
) -> None:
    """Invalidate after a species write.

    Photo listings embed species metadata, so every photo listing goes too.
    """

    if user_id is None:
        cache.delete_pattern(r"^species:list:")
    else:
        cache.delete(CacheKeys.species_list(user_id))
    if species_id is not None:
        cache.delete(CacheKeys.species_by_id(species_id))
    cache.delete_pattern(r"^photos:")
    invalidate_suggestions_cache(cache, user_id)


def invalidate_photos_cache(
    cache: TTLCache,
    photo_id: int | None = None,
    *,
    user_id: str | None = None,
) -> None:
    """Invalidate after a photo upload, edit, swap or delete."""

    cache.delete_pattern(r"^photos:")
    if photo_id is not None:
        cache.delete(CacheKeys.photo_by_id(photo_id))
    invalidate_suggestions_cache(cache, user_id)


def invalidate_detections_cache(cache: TTLCache, *, user_id: str | None = None) -> None:
    """Invalidate after detection data was synced or linked."""

    if user_id is None:
        cache.delete_pattern(r"^detections:stats:")
    else:
        cache.delete(CacheKeys.detection_stats(user_id))
    cache.delete_pattern(r"^detections:list:")
    invalidate_suggestions_cache(cache, user_id)
