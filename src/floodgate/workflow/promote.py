"""Promote: copy the floodgate tree back into the production tree."""

from __future__ import annotations

from collections import deque
from collections.abc import AsyncIterator, Iterable
from typing import Any

from floodgate.batching.batch import Batch
from floodgate.core.logging import get_logger
from floodgate.core.protocols import IDocumentStore
from floodgate.core.types import PROMOTE_ACTION
from floodgate.models.batching import FileDescriptor
from floodgate.utils.paths import handle_extension, is_file_pattern_matched
from floodgate.workflow.base import DispatchedBatchWorkflow
from floodgate.workflow.worker import BatchWorker, descriptor_path, failed_paths

log = get_logger(__name__, component="promote")

PROMOTE_BATCH = "promoteBatch"
PROMOTE_WORKER_JOB = "promote-worker"
PREVIEW = "preview"
PUBLISH = "publish"


async def find_floodgate_files(
    documents: IDocumentStore,
    folders: Iterable[str],
    ignore_paths: Iterable[str] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Walk the floodgate tree breadth-first, yielding one payload per file.

    Folders and files matching ``ignore_paths`` are skipped.
    """
    ignore = list(ignore_paths or [])
    queue = deque(folders)
    while queue:
        folder = queue.popleft()
        for item in await documents.list_children(folder):
            path = item["path"]
            if is_file_pattern_matched(path, ignore):
                log.info("promote_path_ignored", path=path)
                continue
            if item.get("folder"):
                queue.append(path)
            else:
                yield {
                    "fileDownloadUrl": item.get("downloadUrl"),
                    "filePath": path,
                    "mimeType": item.get("mimeType"),
                }


class PromoteWorkflow(DispatchedBatchWorkflow):
    action = PROMOTE_ACTION
    batch_action = PROMOTE_BATCH
    worker_job = PROMOTE_WORKER_JOB
    required_params = ("fgRootFolder", "adminPageUri", "projectExcelPath")
    failure_lists = ("failedPromotes", "failedPreviews", "failedPublishes")
    primary_failure_list = "failedPromotes"
    success_message = "Promoted floodgate tree successfully."
    error_message = (
        "Error occurred when promoting floodgated content. "
        "Check project excel sheet for additional information."
    )
    failed_message = "Failed to promote floodgated content."
    empty_message = "No floodgated files to promote."

    async def create_batches_from_tree(self, documents: IDocumentStore,
                                       params: dict[str, Any]) -> str:
        worker = self._settings.worker
        files = find_floodgate_files(documents, worker.promote_root_folders,
                                     worker.promote_ignore_paths)
        return await self.create_batches(files, params)


class PromoteWorker(BatchWorker):
    action = PROMOTE_ACTION
    batch_action = PROMOTE_BATCH
    primary_failure_list = "failedPromotes"

    async def promote_file(self, descriptor: FileDescriptor) -> dict[str, Any]:
        file = descriptor.file if isinstance(descriptor.file, dict) else {}
        path = descriptor_path(descriptor)
        status: dict[str, Any] = {"success": False, "path": path}
        try:
            content = await self._documents.download(file.get("fileDownloadUrl") or path,
                                                     is_floodgate=True)
            if content is None:
                return status
            upload = await self._documents.upload(path, content, mime_type=file.get("mimeType"))
            status["success"] = bool(upload.get("success"))
            status["locked"] = bool(upload.get("locked"))
        except Exception as exc:
            log.error("promote_file_failed", path=path, error=str(exc))
        return status

    async def process(self, batch: Batch, params: dict[str, Any]) -> dict[str, list[Any]]:
        descriptors = batch.get_files()
        paths = [descriptor_path(d) for d in descriptors]
        statuses = await self.fan_out(descriptors, self.promote_file)
        failed_promotes = failed_paths(statuses, paths)
        log.info("batch_promoted", batch_number=batch.get_batch_number(),
                 files=len(descriptors), failed=len(failed_promotes))

        promoted = [p for p, s in zip(paths, statuses) if s and s.get("success")]
        preview_paths = [handle_extension(p) for p in promoted]
        failed_previews: list[str] = []
        failed_publishes: list[str] = []
        if preview_paths and self._publisher.can_bulk_preview_publish():
            previews = await self._publisher.bulk_preview_publish(preview_paths, PREVIEW)
            failed_previews = failed_paths(previews, preview_paths)
            if params.get("doPublish", self._settings.worker.do_publish):
                publishes = await self._publisher.bulk_preview_publish(preview_paths, PUBLISH)
                failed_publishes = failed_paths(publishes, preview_paths)

        return {
            "failedPromotes": failed_promotes,
            "failedPreviews": failed_previews,
            "failedPublishes": failed_publishes,
        }
