"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers,
lifespan) so tests can build isolated instances.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api.routes import health_router, rate_limit_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.rate_limit import close_rate_limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Release counter store connections on shutdown."""
    logger.info(
        "app.startup",
        extra={
            "app_env": settings.app_env,
            "backend": settings.app.rate_limit_backend,
            "rate_limit_enabled": settings.app.rate_limit_enabled,
        },
    )
    try:
        yield
    finally:
        await close_rate_limiter()
        logger.info("app.shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Rate Barrier API",
        description=(
            "Distributed fixed-window rate limit checks for (client, user, resource) "
            "tuples. Counters live in a shared Redis so every instance enforces the "
            "same window. Store failures deny by default."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(rate_limit_router, prefix="/v1")
    app.include_router(health_router)

    return app
