"""Copy: floodgate the project's documents into the floodgate tree."""

from __future__ import annotations

from typing import Any

from floodgate.batching.batch import Batch
from floodgate.core.logging import get_logger
from floodgate.core.types import COPY_ACTION
from floodgate.models.batching import FileDescriptor
from floodgate.utils.paths import handle_extension
from floodgate.workflow.base import DispatchedBatchWorkflow
from floodgate.workflow.worker import BatchWorker, descriptor_path, failed_paths

log = get_logger(__name__, component="copy")

COPY_BATCH = "copyBatch"
COPY_WORKER_JOB = "copy-worker"
PREVIEW = "preview"


class CopyWorkflow(DispatchedBatchWorkflow):
    action = COPY_ACTION
    batch_action = COPY_BATCH
    worker_job = COPY_WORKER_JOB
    status_key_param = "projectExcelPath"
    required_params = ("projectExcelPath", "adminPageUri")
    failure_lists = ("failedCopies", "failedPreviews")
    primary_failure_list = "failedCopies"
    success_message = "All tasks for Floodgate Copy completed"
    error_message = (
        "Error occurred when floodgating content. "
        "Check project excel sheet for additional information."
    )
    failed_message = "Failed to copy any document to the floodgate tree."
    empty_message = "No documents to floodgate."


class CopyWorker(BatchWorker):
    action = COPY_ACTION
    batch_action = COPY_BATCH
    status_key_param = "projectExcelPath"
    primary_failure_list = "failedCopies"

    async def copy_file(self, descriptor: FileDescriptor) -> dict[str, Any]:
        """Copy one document, falling back to download and upload when locked."""
        src_path = descriptor_path(descriptor)
        status: dict[str, Any] = {"success": False, "path": src_path}
        try:
            dest_folder = src_path[: src_path.rfind("/")]
            copied = await self._documents.copy_file(src_path, dest_folder, is_floodgate=True)
            success = bool(copied.get("success"))
            locked = bool(copied.get("locked"))
            if not success and locked:
                log.info("copy_fallback", path=src_path)
                content = await self._documents.download(src_path)
                if content is not None:
                    saved = await self._documents.upload(src_path, content, is_floodgate=True)
                    success = bool(saved.get("success"))
            status["success"] = success
            status["locked"] = locked and not success
        except Exception as exc:
            log.error("copy_file_failed", path=src_path, error=str(exc))
        return status

    async def process(self, batch: Batch, params: dict[str, Any]) -> dict[str, list[Any]]:
        descriptors = batch.get_files()
        paths = [descriptor_path(d) for d in descriptors]
        statuses = await self.fan_out(descriptors, self.copy_file)
        failed_copies = failed_paths(statuses, paths)

        copied = [p for p, s in zip(paths, statuses) if s and s.get("success")]
        preview_paths = [handle_extension(p) for p in copied]
        failed_previews: list[str] = []
        if preview_paths and self._publisher.can_bulk_preview_publish(is_floodgate=True):
            previews = await self._publisher.bulk_preview_publish(
                preview_paths, PREVIEW, is_floodgate=True,
            )
            failed_previews = failed_paths(previews, preview_paths)
        log.info("batch_copied", batch_number=batch.get_batch_number(), files=len(descriptors),
                 failed_copies=len(failed_copies), failed_previews=len(failed_previews))
        return {"failedCopies": failed_copies, "failedPreviews": failed_previews}
