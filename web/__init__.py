"""FastAPI web application for Web Game Builder.

This module provides the HTTP API over the core build services.

All business logic is delegated to core modules in webgame_builder/.
"""

from web.app import app, create_app

__all__ = ["app", "create_app"]
