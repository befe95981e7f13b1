"""Dependencies for FastAPI route handlers.

Provides the build service and settings held in application state.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request

from webgame_builder.builds.service import BuildService
from webgame_builder.config import Settings


def get_build_service(request: Request) -> BuildService:
    """Get the build service from app state.

    Args:
        request: FastAPI request object.

    Returns:
        BuildService started by the application lifespan.
    """
    service: Any = request.app.state.build_service
    return service  # type: ignore[no-any-return]


def get_app_settings(request: Request) -> Settings:
    """Get the settings the application was created with."""
    settings: Any = request.app.state.settings
    return settings  # type: ignore[no-any-return]
