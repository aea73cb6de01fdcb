"""FastAPI application factory for the user records service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import anyio
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .database import Database, StoreError
from .web import register_routes

logger = logging.getLogger("crudapp.service")

STATIC_DIR = Path(__file__).resolve().parent / "static"


def create_app(*, database: Database, initialize_schema: bool = True) -> FastAPI:
    """Return the ASGI application bound to ``database``.

    The schema is ensured during startup, before the first request is
    served. On shutdown the connection pool owned by ``database`` is closed.
    """

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if initialize_schema:
            try:
                await anyio.to_thread.run_sync(database.initialize)
            except StoreError:
                logger.exception("Error initialising database %s", database.describe())
                await anyio.to_thread.run_sync(database.close)
                raise
        try:
            yield
        finally:
            await anyio.to_thread.run_sync(database.close)

    app = FastAPI(
        title="User Records",
        version="1.0.0",
        description="CRUD service for user records with a server-rendered view.",
        lifespan=lifespan,
    )
    app.state.database = database

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    register_routes(app, database)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "Unhandled error while serving %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    return app


__all__ = ["create_app"]
