"""HTTP middleware for request ID propagation.

Every response carries a correlation id: the caller's own id when it sent a
usable one (header name from LOG_REQUEST_ID_HEADER), otherwise a fresh UUID.
The id is bound to contextvars for log correlation while the request runs.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from aviary.core.config import settings
from aviary.core.logging import clear_request_id, set_request_id

# Longer incoming ids are replaced, so log lines stay bounded.
MAX_REQUEST_ID_LENGTH = 128


def resolve_request_id(incoming: str | None) -> str:
    """Return the caller's id if it is non-blank and printable, else a new UUID."""
    candidate = (incoming or "").strip()
    if candidate and len(candidate) <= MAX_REQUEST_ID_LENGTH and candidate.isprintable():
        return candidate
    return uuid.uuid4().hex


async def request_id_middleware(request: Request, call_next) -> Response:
    header_name = settings.log.request_id_header
    request_id = resolve_request_id(request.headers.get(header_name))

    set_request_id(request_id)
    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers["X-Request-Duration-ms"] = f"{elapsed_ms:.2f}"
    return response
