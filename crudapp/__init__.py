"""User records service: CRUD endpoints and an HTML view over a ``users`` table."""

from __future__ import annotations

from typing import Any

from .config import Settings
from .database import Database, StoreError, UserConflictError, UserNotFoundError


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the ASGI application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


def create_application(*args: Any, **kwargs: Any):
    """Factory function that builds the application from environment settings."""

    from .application import create_application as _create_application

    return _create_application(*args, **kwargs)


__all__ = [
    "Database",
    "Settings",
    "StoreError",
    "UserConflictError",
    "UserNotFoundError",
    "create_app",
    "create_application",
]
