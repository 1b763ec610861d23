"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer. Every route
declares which budget it draws from (``read``, ``write``, ``upload``,
``sync``); the limiter itself lives on the application container so its
state survives across requests without a module-level global.

Requesters are keyed by client IP, HTTP method and path, so each endpoint
has its own budget per client.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Awaitable, Callable

from fastapi import HTTPException, Request, Response, status

from aviary.adapters.rate_limit.base import RATE_LIMITS, RateLimitConfig, RateLimitResult

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Best-effort client address, honouring common proxy headers."""

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value

    return request.client.host if request.client else "unknown"


def build_rate_limit_identifier(request: Request) -> str:
    return f"{get_client_ip(request)}:{request.method}:{request.url.path}"


def _hash_identifier(identifier: str) -> str:
    """Hash the identifier for logging without exposing client addresses."""
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(result.reset_at)),
    }
    if result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


def enforce_rate_limit(policy: str = "default") -> Callable[[Request, Response], Awaitable[None]]:
    """Build a FastAPI dependency enforcing the named rate limit policy.

    Raises:
        KeyError: If ``policy`` is not one of ``RATE_LIMITS``.
    """

    config: RateLimitConfig = RATE_LIMITS[policy]

    async def dependency(request: Request, response: Response) -> None:
        container = request.app.state.container
        app_settings = container.settings.app
        if not app_settings.rate_limit_enabled:
            return

        identifier = build_rate_limit_identifier(request)
        result = container.rate_limiter.check_rate_limit(identifier, config)
        log_extra = {
            "policy": policy,
            "key_hash": _hash_identifier(identifier),
            "limit": result.limit,
            "remaining": result.remaining,
        }

        if result.allowed:
            logger.debug("rate_limit.allowed", extra=log_extra)
            if app_settings.rate_limit_include_headers:
                response.headers.update(rate_limit_headers(result))
            return

        logger.warning(
            "rate_limit.exceeded",
            extra={**log_extra, "retry_after_s": result.retry_after_seconds},
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers=rate_limit_headers(result) if app_settings.rate_limit_include_headers else None,
        )

    return dependency
