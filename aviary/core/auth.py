"""Caller identity at the HTTP edge.

Authentication happens upstream (session middleware or an auth proxy),
which forwards the resolved user id in a header. This module only reads
that header; it never validates credentials itself.
"""

from __future__ import annotations

from fastapi import Request

from aviary.core.errors import AuthenticationAppError


async def get_current_user_id(request: Request) -> str:
    """FastAPI dependency returning the authenticated user's id.

    Raises:
        AuthenticationAppError: If the upstream layer did not supply a user id.
    """
    header_name = request.app.state.container.settings.app.user_id_header
    user_id = (request.headers.get(header_name) or "").strip()
    if not user_id:
        raise AuthenticationAppError(
            code="unauthenticated",
            message="Authentication required.",
        )
    return user_id
