"""Protocol interfaces for all Floodgate collaborators.

The batching engine only talks to the outside world through these Protocols:
structural typing, no inheritance required, easy to test with isinstance().
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

# ---------------------------------------------------------------------------
# Persistence: Blob Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IBlobStore(Protocol):
    """Key-addressed blob storage (S3-compatible).

    ``read`` raises BlobNotFoundError for a missing key. ``delete`` with a
    key ending in ``/`` removes every blob under that prefix.
    """

    def read(self, key: str) -> bytes: ...

    def write(self, key: str, data: bytes | str, content_type: str = "application/json") -> str: ...

    def list(self, prefix: str) -> list[str]: ...

    def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: Cache Backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible cache interface backing the status store."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Work Dispatcher
# ---------------------------------------------------------------------------

@runtime_checkable
class IWorkDispatcher(Protocol):
    """Non-blocking invocation of per-batch workers.

    ``get_status`` returns the job's state name (e.g. ``running``,
    ``success``, ``failure``) or None when the job is unknown.
    """

    async def invoke(self, name: str, params: dict[str, Any]) -> str: ...

    async def get_status(self, job_id: str) -> str | None: ...


# ---------------------------------------------------------------------------
# Document Store (SharePoint-like content tree)
# ---------------------------------------------------------------------------

@runtime_checkable
class IDocumentStore(Protocol):
    """Remote document store holding the production and floodgate trees.

    ``list_children`` returns one dict per child of ``folder`` with at least
    ``path`` and ``folder`` (bool); files also carry ``downloadUrl`` and
    ``mimeType``. ``copy_file`` and ``upload`` return ``{"success": bool,
    "locked": bool}``.
    """

    async def list_children(self, folder: str) -> list[dict[str, Any]]: ...

    async def copy_file(self, src_path: str, dest_folder: str, *, is_floodgate: bool = False) -> dict[str, Any]: ...

    async def download(self, path_or_url: str, *, is_floodgate: bool = False) -> bytes | None: ...

    async def upload(
        self, path: str, content: bytes, *, mime_type: str | None = None, is_floodgate: bool = False
    ) -> dict[str, Any]: ...

    async def delete_folder(self, path: str, *, is_floodgate: bool = True) -> bool: ...


# ---------------------------------------------------------------------------
# Bulk Preview / Publish
# ---------------------------------------------------------------------------

@runtime_checkable
class IPreviewPublisher(Protocol):
    """Bulk preview/publish/unpublish job API.

    ``bulk_preview_publish`` submits one job and polls it to completion,
    returning ``[{"path": ..., "success": bool}, ...]`` for every input path.
    """

    def can_bulk_preview_publish(self, is_floodgate: bool = False) -> bool: ...

    async def bulk_preview_publish(
        self, paths: list[str], operation: str, *, is_floodgate: bool = False
    ) -> list[dict[str, Any]]: ...
