"""Livetrack API service.

FastAPI application providing:
- Delivery detail, status/position updates and courier assignment
- Tracking history and live server-sent-event feeds
- Session-based identification of staff, couriers and customers

This module provides the app factory pattern for creating configured
FastAPI instances suitable for testing and production deployment.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from livetrack.api.middleware import (
    ErrorHandlerMiddleware,
    RequestIDMiddleware,
    SessionAuthMiddleware,
)
from livetrack.api.middleware.errors import http_exception_handler, request_validation_handler
from livetrack.api.routers import courier_router, deliveries_router
from livetrack.db import close_engine, get_async_session
from livetrack.services.live_feed import LiveFeedBridge

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncSession

    from livetrack.core.config import Settings

logger = logging.getLogger(__name__)

API_TITLE = "Livetrack API"
API_DESCRIPTION = """
Live order-delivery tracking.

## Namespaces

- **/api/deliveries/** - Delivery detail, updates, assignment, history, live feed
- **/api/courier/** - The calling courier's assigned deliveries

## Documentation

- OpenAPI spec: `/api/openapi.json`
- Swagger UI: `/api/docs`
- ReDoc: `/api/redoc`
"""

DEV_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:8000"]


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler; disposes the database engine on shutdown."""
    yield
    logger.info("Shutting down Livetrack API")
    await close_engine()


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]] | None = None,
) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Args:
        settings: Optional Settings instance. Without it the app runs with
            development defaults (5 second feed interval, localhost CORS).
        session_factory: Source of DB sessions for session-token validation.
            Defaults to the application engine.

    Returns:
        Configured FastAPI application ready to serve requests.

    Example:
        app = create_app()

        # For testing
        test_settings = Settings(environment="dev", debug=True)
        app = create_app(test_settings)
    """
    version = settings.app_version if settings else "0.1.0"

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=version,
        debug=bool(settings and settings.debug),
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # Store settings in app state for access in routes
    app.state.settings = settings
    app.state.live_feed = LiveFeedBridge.from_settings(settings)

    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # Add middleware (order matters - last added is outermost)
    _add_middleware(app, settings, session_factory or get_async_session)

    _include_routers(app)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint for container orchestration."""
        return {"status": "healthy"}

    logger.info(
        "Livetrack API application created (version=%s, feed_interval=%ss)",
        version,
        app.state.live_feed.interval_seconds,
    )

    return app


def _add_middleware(
    app: FastAPI,
    settings: Settings | None,
    session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
) -> None:
    """Add middleware to the application.

    Resulting order, outermost first: CORS, request ID, error handler,
    session authentication.
    """
    app.add_middleware(SessionAuthMiddleware, session_factory=session_factory)

    # Converts exceptions to JSON responses; sits inside the request ID
    # middleware so error bodies carry the request ID
    app.add_middleware(ErrorHandlerMiddleware)

    app.add_middleware(RequestIDMiddleware)

    allowed_origins = settings.cors_origins if settings else DEV_CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


def _include_routers(app: FastAPI) -> None:
    """Include API namespace routers under /api."""
    app.include_router(deliveries_router, prefix="/api")
    app.include_router(courier_router, prefix="/api")
