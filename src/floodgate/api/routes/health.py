"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from floodgate.api.deps import get_cache, get_settings, get_store
from floodgate.core.config import AppSettings
from floodgate.core.exceptions import FloodgateError
from floodgate.core.protocols import IBlobStore, ICacheBackend

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def ready(
    settings: AppSettings = Depends(get_settings),
    store: IBlobStore = Depends(get_store),
    cache: ICacheBackend = Depends(get_cache),
) -> dict[str, str]:
    try:
        store.list(f"{settings.batch.batch_files_path}/")
        cache.get("ready")
    except FloodgateError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"status": "ready"}
