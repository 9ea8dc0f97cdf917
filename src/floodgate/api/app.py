"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from floodgate.api.routes import health, maint, status
from floodgate.core.config import AppSettings
from floodgate.core.logging import get_logger, setup_logging
from floodgate.core.protocols import IBlobStore, ICacheBackend
from floodgate.persistence import create_blob_store, create_cache


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wire settings, logging and persistence not injected by the caller."""
    settings = getattr(app.state, "settings", None) or AppSettings()
    app.state.settings = settings
    setup_logging(settings.log_level, settings.json_logs)
    if getattr(app.state, "store", None) is None:
        app.state.store = create_blob_store(settings)
    if getattr(app.state, "cache", None) is None:
        app.state.cache = create_cache(settings)
    get_logger(__name__, component="api").info(
        "app_started", environment=settings.environment, storage=settings.storage_backend,
    )
    yield


def create_app(
    settings: AppSettings | None = None,
    store: IBlobStore | None = None,
    cache: ICacheBackend | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Floodgate Batching Service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.cache = cache
    app.include_router(health.router)
    app.include_router(status.router, prefix="/status")
    app.include_router(maint.router, prefix="/maint")
    return app
