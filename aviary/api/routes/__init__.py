from __future__ import annotations

from aviary.api.routes.gallery import router as gallery_router
from aviary.api.routes.health import router as health_router
from aviary.api.routes.suggestions import router as suggestions_router

__all__ = ["gallery_router", "health_router", "suggestions_router"]
