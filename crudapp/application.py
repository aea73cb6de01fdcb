"""Application factory that builds the service from environment settings."""
from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from .config import Settings
from .database import Database
from .service import create_app


def create_database(settings: Settings, *, database_url: Optional[str] = None) -> Database:
    return Database(
        database_url or settings.database_url(),
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )


def create_application(*, settings: Optional[Settings] = None) -> FastAPI:
    """Create the ASGI application, e.g. ``uvicorn crudapp.application:create_application --factory``."""

    settings = settings or Settings.from_env()
    return create_app(database=create_database(settings))


__all__ = ["create_application", "create_database"]
