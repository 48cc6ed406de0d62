from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, lifespan, middleware, handlers,
routers) to improve testability and separation of concerns.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from authgate.adapters.persistence.database import close_db, init_db
from authgate.api.dependencies import build_refresh_token_service
from authgate.api.routes import auth_router, health_router, users_router
from authgate.core.config import settings
from authgate.core.exception_handlers import setup_exception_handlers
from authgate.core.logging import configure_logging
from authgate.core.middleware import request_id_middleware
from authgate.core.openapi import apply_openapi_customizations
from authgate.services.refresh_token_service import sweep_expired_forever
from authgate.services.token_codec import init_token_codec

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: derive the signing key, create tables, start the sweeper."""

    init_token_codec(settings.jwt)
    init_db()

    sweeper: asyncio.Task[None] | None = None
    interval = settings.database.refresh_token_sweep_interval_seconds
    if interval > 0:
        sweeper = asyncio.create_task(sweep_expired_forever(build_refresh_token_service, interval))
        logger.info("refresh_token.sweeper_started", extra={"interval_s": interval})

    logger.info("app.started", extra={"app_env": settings.app_env})
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
        close_db()
        logger.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title=settings.app.title,
        description=(
            "Authentication service issuing short-lived HS512 access tokens and "
            "long-lived refresh tokens, with per-client fixed-window rate limits "
            "on the login, refresh and logout endpoints."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(auth_router, prefix="/v1")
    app.include_router(users_router, prefix="/v1")
    app.include_router(health_router)

    # OpenAPI customizations (tags, public endpoints)
    apply_openapi_customizations(app)

    return app
