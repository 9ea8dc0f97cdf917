"""Maintenance endpoints over the batch files path.

Disabled unless ``FLOODGATE_MAINT_ENABLED`` is set. Paths are relative to
the batch files root, e.g. ``promoteAction/instance_milo_pink/batch_2``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from floodgate.api.deps import get_settings, get_store
from floodgate.core.config import AppSettings
from floodgate.core.exceptions import BlobNotFoundError
from floodgate.core.logging import get_logger
from floodgate.core.protocols import IBlobStore

log = get_logger(__name__, component="maint")


def require_enabled(settings: AppSettings = Depends(get_settings)) -> AppSettings:
    if not settings.maint.enabled:
        raise HTTPException(status_code=403, detail="Permission Denied")
    return settings


router = APIRouter(tags=["maint"], dependencies=[Depends(require_enabled)])


@router.get("/files")
async def list_files(
    path: str = "",
    settings: AppSettings = Depends(get_settings),
    store: IBlobStore = Depends(get_store),
) -> dict:
    root = settings.batch.batch_files_path
    search_path = f"{root}/{path}/" if path else f"{root}/"
    log.info("maint_list", path=search_path)
    return {"fileList": store.list(search_path)}


@router.get("/data")
async def data_file(
    file: str = Query(..., min_length=1),
    settings: AppSettings = Depends(get_settings),
    store: IBlobStore = Depends(get_store),
) -> dict:
    key = f"{settings.batch.batch_files_path}/{file}"
    log.info("maint_read", key=key)
    try:
        content = store.read(key)
    except BlobNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"fileData": content.decode("utf-8", errors="replace")}


@router.delete("/files")
async def delete_files(
    path: str = "",
    settings: AppSettings = Depends(get_settings),
    store: IBlobStore = Depends(get_store),
) -> dict:
    """Delete one blob, or everything below ``path`` when it ends with ``/``."""
    delete_path = f"{settings.batch.batch_files_path}/{path}"
    log.warning("maint_delete", path=delete_path)
    store.delete(delete_path)
    return {"deleteStatus": True, "path": delete_path}
