"""Application factory for the FastAPI app.

Centralizes app construction (container, lifespan, middleware, handlers,
routers) so tests can build an app around their own container.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from aviary.api.routes import gallery_router, health_router, suggestions_router
from aviary.core.config import settings
from aviary.core.container import AppContainer, build_container
from aviary.core.exception_handlers import setup_exception_handlers
from aviary.core.logging import configure_logging
from aviary.core.middleware import request_id_middleware

logger = logging.getLogger(__name__)


def create_app(container: AppContainer | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        container: Prebuilt dependencies; ``build_container()`` when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    resolved = container or build_container()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await resolved.open_resources()
        logger.info("app.started", extra={"app_env": resolved.settings.app_env})
        try:
            yield
        finally:
            await resolved.close_resources()
            logger.info("app.stopped")

    app = FastAPI(
        title="Aviary API",
        description=(
            "Decision layer of a bird photo catalog: ranks which species to "
            "photograph next from acoustic detections and enforces curated "
            "gallery capacity."
        ),
        version="0.1.0",
        debug=resolved.settings.app.debug,
        lifespan=lifespan,
    )
    app.state.container = resolved

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(suggestions_router, prefix="/v1")
    app.include_router(gallery_router, prefix="/v1")
    app.include_router(health_router)

    return app
