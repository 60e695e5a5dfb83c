"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) to
improve testability.
"""

from __future__ import annotations

from fastapi import FastAPI

from rate_bastion import __version__
from rate_bastion.api.routes import health_router, ping_router
from rate_bastion.core.config import settings
from rate_bastion.core.exception_handlers import setup_exception_handlers
from rate_bastion.core.logging import configure_logging
from rate_bastion.core.middleware import request_id_middleware


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Rate Bastion",
        description=(
            "Per-key token bucket admission control with state shared through "
            "a key-value store. Protected routes answer 429 when the bucket is "
            "empty and 503 when the store is unavailable."
        ),
        version=__version__,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(ping_router, prefix="/v1")
    app.include_router(health_router)

    return app
