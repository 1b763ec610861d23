"""Rate limiter interfaces.

The API depends on this abstraction (not the concrete implementation) so the
process-local store can later be swapped for a shared one (e.g., Redis)
without touching call sites.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitConfig:
    """Budget for one class of requests.

    Attributes:
        max_requests: Requests allowed per window.
        window_seconds: Window length, measured from the first request of the window.
    """

    max_requests: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        remaining: Requests left in the current window (0 when blocked).
        reset_at: Clock seconds at which the current window ends.
        retry_after_seconds: Whole seconds to wait when blocked, else None.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None = None


@dataclass
class RateLimitRecord:
    """Request count for one identifier in its live window."""

    count: int
    reset_at: float


# Default budgets per endpoint class.
RATE_LIMITS: dict[str, RateLimitConfig] = {
    # Read operations - more permissive
    "read": RateLimitConfig(max_requests=100, window_seconds=60),
    # Write operations - more restrictive
    "write": RateLimitConfig(max_requests=20, window_seconds=60),
    # Upload operations - most restrictive
    "upload": RateLimitConfig(max_requests=10, window_seconds=60),
    # Sync operations - expensive, very restrictive
    "sync": RateLimitConfig(max_requests=5, window_seconds=60),
    "default": RateLimitConfig(max_requests=60, window_seconds=60),
}


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check_rate_limit(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request for identifier against config.

        Args:
            identifier: Unique requester key (e.g., "ip:method:path").
            config: Budget to apply.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def purge_expired(self) -> int:
        """Forget identifiers whose window has ended. Returns the number removed."""
        raise NotImplementedError
