"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a lock guards the check-then-increment sequence.
- Windows are fixed, not sliding. A window opens on the first request for an
  identifier and lasts ``window_seconds``. A client can therefore send up to
  ``2 * max_requests`` requests in a short span straddling a window boundary
  (the tail of one window plus the head of the next). This approximation is
  accepted.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable, MutableMapping

from aviary.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitRecord,
    RateLimitResult,
)

logger = logging.getLogger(__name__)


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per identifier in fixed windows.

    Important:
        Records live in ``store``, a process-local mapping. Expiry is checked
        lazily on every call, so ``purge_expired`` only reclaims memory and is
        not needed for correctness.
    """

    def __init__(
        self,
        *,
        store: MutableMapping[str, RateLimitRecord] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            store: Mapping holding one record per identifier. A fresh dict by default.
            clock: Time source function returning UNIX time in seconds.
        """
        self._store: MutableMapping[str, RateLimitRecord] = store if store is not None else {}
        self._clock = clock
        self._lock = threading.RLock()

    def check_rate_limit(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request for identifier and decide whether it may proceed.

        Raises:
            ValueError: If identifier is empty.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        now = self._clock()

        with self._lock:
            record = self._store.get(identifier)

            if record is None or now > record.reset_at:
                record = RateLimitRecord(count=1, reset_at=now + config.window_seconds)
                self._store[identifier] = record
                return RateLimitResult(
                    allowed=True,
                    limit=config.max_requests,
                    remaining=config.max_requests - 1,
                    reset_at=record.reset_at,
                )

            if record.count >= config.max_requests:
                return RateLimitResult(
                    allowed=False,
                    limit=config.max_requests,
                    remaining=0,
                    reset_at=record.reset_at,
                    retry_after_seconds=max(0, math.ceil(record.reset_at - now)),
                )

            record.count += 1
            return RateLimitResult(
                allowed=True,
                limit=config.max_requests,
                remaining=max(0, config.max_requests - record.count),
                reset_at=record.reset_at,
            )

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, record in self._store.items() if now > record.reset_at]
            for key in expired:
                del self._store[key]
        if expired:
            logger.debug("rate_limit.purged", extra={"removed": len(expired)})
        return len(expired)
