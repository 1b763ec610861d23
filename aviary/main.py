import os

import uvicorn

from aviary.core.app_factory import create_app

app = create_app()


def run() -> None:
    """Serve the API with uvicorn (``aviary-api`` console script)."""
    uvicorn.run(
        "aviary.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_config=None,
    )
