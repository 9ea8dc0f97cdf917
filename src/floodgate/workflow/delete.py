"""Delete: unpublish the floodgate tree batch by batch, then remove it."""

from __future__ import annotations

from typing import Any

from floodgate.batching.batch_manager import BatchManager
from floodgate.core.config import AppSettings
from floodgate.core.logging import get_logger
from floodgate.core.protocols import IBlobStore, ICacheBackend, IDocumentStore, IPreviewPublisher
from floodgate.core.types import DELETE_ACTION
from floodgate.models.batching import BatchInfo, InstanceManifest
from floodgate.models.status import ProjectStatus, WorkflowReport
from floodgate.status.tracker import StatusTracker
from floodgate.workflow.base import BatchWorkflow
from floodgate.workflow.worker import descriptor_path, failed_paths

log = get_logger(__name__, component="delete")

UNPUBLISH = "unpublish"
FOLDER_NOT_DELETED = "Files were unpublished but floodgate folder could not be deleted!"


class DeleteWorkflow(BatchWorkflow):
    """Processes each batch inline, one batch per trigger."""

    action = DELETE_ACTION
    required_params = ("fgRootFolder", "projectExcelPath", "adminPageUri")
    failure_lists = ("failedUnpublishings",)
    success_message = "Delete action was completed."
    error_message = "Failed to unpublish files. Check excel for details."
    empty_message = "Delete action was completed."

    def __init__(
        self,
        *,
        settings: AppSettings,
        store: IBlobStore,
        cache: ICacheBackend,
        documents: IDocumentStore,
        publisher: IPreviewPublisher,
    ) -> None:
        super().__init__(settings=settings, store=store, cache=cache)
        self._documents = documents
        self._publisher = publisher

    async def process_batch(self, manager: BatchManager, info: BatchInfo) -> None:
        batch = manager.init_batch(info.batch_number)
        if self._publisher.can_bulk_preview_publish(is_floodgate=True):
            paths = [descriptor_path(d) for d in batch.get_files()]
            statuses = await self._publisher.bulk_preview_publish(paths, UNPUBLISH, is_floodgate=True)
            failed = failed_paths(statuses, paths)
            if failed:
                batch.write_results({"failedUnpublishings": failed})
            log.info("batch_unpublished", batch_number=info.batch_number,
                     files=len(paths), failed=len(failed))
        info.done = True

    async def step(self, manager: BatchManager, manifest: InstanceManifest,
                   status: StatusTracker) -> str:
        batches_info = manifest.dtls.batches_info
        next_batch = manifest.dtls.next_pending()
        if next_batch is None:
            return "None to be processed!"
        message = f"Unpublishing batch {next_batch.batch_number} / {len(batches_info)}"
        status.update_status(ProjectStatus.IN_PROGRESS, message)
        await self.process_batch(manager, next_batch)
        manager.write_manifest(manifest)
        return message

    async def finish(self, report: WorkflowReport, params: dict[str, Any]) -> WorkflowReport:
        if report.has_failures:
            return report
        deleted = await self._documents.delete_folder(params.get("fgRootFolder", ""), is_floodgate=True)
        if not deleted:
            report.status = ProjectStatus.COMPLETED_WITH_ERROR
            report.message = FOLDER_NOT_DELETED
        return report
