"""Status and tracker endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from floodgate.api.deps import get_cache, get_settings, get_store
from floodgate.batching.batch_manager import BatchManager
from floodgate.core.config import AppSettings
from floodgate.core.protocols import IBlobStore, ICacheBackend
from floodgate.status.tracker import StatusTracker

router = APIRouter(tags=["status"])


@router.get("/{action}")
async def get_status(
    action: str,
    status_key: str = Query(..., min_length=1),
    settings: AppSettings = Depends(get_settings),
    cache: ICacheBackend = Depends(get_cache),
) -> dict:
    """Return the latest status record of an action run."""
    record = StatusTracker(cache, action, status_key, ttl=settings.status.ttl_seconds).get_status()
    if record is None:
        raise HTTPException(status_code=404, detail=f"No status for {action} / {status_key}")
    return record.model_dump(by_alias=True, mode="json")


@router.get("/{action}/tracker")
async def get_tracker(
    action: str,
    settings: AppSettings = Depends(get_settings),
    store: IBlobStore = Depends(get_store),
) -> dict:
    """Return the instance tracker of an action."""
    manager = BatchManager(action, store=store, config=settings.batch).init()
    return manager.read_tracker().to_store()
