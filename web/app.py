"""FastAPI application factory and main app.

This module creates the FastAPI application with all routers, the upload
size boundary, and the build service wired into application state.

Web routes are thin proxies to core APIs.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from web.limits import BodySizeLimitMiddleware
from web.routers import builds, config, health
from webgame_builder import __version__
from webgame_builder.builds.service import BuildService
from webgame_builder.config import Settings, get_settings


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment if omitted.

    Returns:
        Configured FastAPI application.
    """
    app_settings = settings if settings is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Start the build service on startup and stop it on shutdown."""
        service = BuildService(app_settings)
        app.state.build_service = service
        try:
            yield
        finally:
            service.shutdown(wait=False)

    application = FastAPI(
        title="Web Game Builder API",
        description="HTTP API for packaging web games as Android or desktop builds",
        version=__version__,
        lifespan=lifespan,
    )
    application.state.settings = app_settings

    application.add_middleware(
        BodySizeLimitMiddleware,
        max_body_bytes=app_settings.max_upload_bytes,
    )

    # Include routers
    application.include_router(health.router, tags=["health"])
    application.include_router(config.router, prefix="/config", tags=["config"])
    application.include_router(builds.router, prefix="/builds", tags=["builds"])

    return application


# Create the default application instance
app = create_app()
