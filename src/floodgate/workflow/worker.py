"""Per-batch workers: one stateless invocation processes one batch."""

from __future__ import annotations

from typing import Any

from floodgate.batching.batch import Batch
from floodgate.batching.batch_manager import BatchManager
from floodgate.core.config import AppSettings
from floodgate.core.logging import get_logger
from floodgate.core.protocols import IBlobStore, ICacheBackend, IDocumentStore, IPreviewPublisher
from floodgate.models.batching import FileDescriptor
from floodgate.models.status import ProjectStatus
from floodgate.status.tracker import StatusTracker
from floodgate.utils.parallel import in_parallel
from floodgate.utils.paths import get_instance_key

log = get_logger(__name__, component="worker")

PATH_UNAVAILABLE = "Path Info Not available"


def descriptor_path(descriptor: FileDescriptor) -> str:
    """Document path carried by a descriptor's payload."""
    file = descriptor.file
    if isinstance(file, str):
        return file
    if isinstance(file, dict):
        return file.get("filePath") or file.get("path") or PATH_UNAVAILABLE
    return PATH_UNAVAILABLE


def failed_paths(statuses: list[dict[str, Any] | None], paths: list[str]) -> list[str]:
    """Paths whose status is missing or unsuccessful, marked when locked."""
    failed = []
    for status, path in zip(statuses, paths):
        if status and status.get("success"):
            continue
        label = (status or {}).get("path") or path
        if status and status.get("locked"):
            label = f"{label} (locked)"
        failed.append(label)
    return failed


def batch_status_tracker(cache: ICacheBackend, batch_action: str, status_key: str,
                         batch_number: int, ttl: int) -> StatusTracker:
    """Status record of one batch, keyed ``<batch_action>_<n>`` / ``<key>~Batch_<n>``."""
    return StatusTracker(cache, f"{batch_action}_{batch_number}",
                         f"{status_key}~Batch_{batch_number}", ttl=ttl)


class BatchWorker:
    """Base worker. Subclasses implement :meth:`process`."""

    action: str = ""
    batch_action: str = ""
    status_key_param: str = "fgRootFolder"
    primary_failure_list: str = ""

    def __init__(
        self,
        *,
        settings: AppSettings,
        store: IBlobStore,
        cache: ICacheBackend,
        documents: IDocumentStore,
        publisher: IPreviewPublisher,
    ) -> None:
        self._settings = settings
        self._store = store
        self._cache = cache
        self._documents = documents
        self._publisher = publisher

    async def __call__(self, params: dict[str, Any]) -> str:
        return await self.run(params)

    async def process(self, batch: Batch, params: dict[str, Any]) -> dict[str, list[Any]]:
        """Process every descriptor of ``batch`` and return its failure lists."""
        raise NotImplementedError

    def record_crash(self, batch: Batch) -> None:
        """Count every file of a batch that raised as failed for the primary operation."""
        paths = [descriptor_path(d) for d in batch.get_files()]
        batch.write_results({self.primary_failure_list: paths})

    async def fan_out(self, items: list[Any], fn) -> list[Any]:
        worker = self._settings.worker
        return await in_parallel(
            items, fn,
            concurrency=worker.num_bulk_req,
            chunk_size=worker.chunk_size or None,
            chunk_delay=worker.chunk_delay_ms / 1000,
        )

    async def run(self, params: dict[str, Any]) -> str:
        batch_number = int(params["batchNumber"])
        status_key = params.get(self.status_key_param) or ""
        manager = BatchManager.get_batch_manager_for_batch(
            self.action, batch_number, self._store,
            config=self._settings.batch, instance_key=get_instance_key(status_key),
        )
        batch = manager.get_current_batch()
        status = batch_status_tracker(self._cache, self.batch_action, status_key,
                                      batch_number, self._settings.status.ttl_seconds)
        label = f"Batch-{batch_number}"
        status.update_status(ProjectStatus.IN_PROGRESS, f"Processing {label}.")
        try:
            failures = await self.process(batch, params)
        except Exception as exc:
            log.exception("batch_failed", action=self.action, batch_number=batch_number)
            self.record_crash(batch)
            status.update_status(ProjectStatus.COMPLETED_WITH_ERROR, str(exc))
            raise

        if any(failures.values()):
            batch.write_results(failures)
            message = f"{label} completed with errors."
            status.update_status(ProjectStatus.COMPLETED_WITH_ERROR, message)
        else:
            message = f"{label} completed successfully."
            status.update_status(ProjectStatus.COMPLETED, message)
        log.info("batch_processed", action=self.action, batch_number=batch_number,
                 failures={name: len(items) for name, items in failures.items()})
        return message
