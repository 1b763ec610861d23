from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness probe. Not rate limited.

    Reports whether each background sweeper is running alongside the status.
    """

    container = request.app.state.container
    return {
        "status": "ok",
        "sweepers": {s.name: s.is_running for s in container.sweepers},
    }
