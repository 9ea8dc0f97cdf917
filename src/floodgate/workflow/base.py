"""Resumable multi-invocation workflow driver shared by all actions.

Every call is one short-lived step that rebuilds its state from the store:

    VALIDATE -> CREATE_BATCHES -> FINALIZE
    TRIGGER_NEXT_BATCH -> WAIT/POLL -> ... -> AGGREGATE -> COMPLETE

``create_batches`` runs once per request; ``trigger_and_track`` is called
repeatedly (e.g. by a timer) until the instance is complete.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable
from typing import Any

from floodgate.batching.batch_manager import BatchManager
from floodgate.core.config import AppSettings
from floodgate.core.exceptions import DispatchError, InvalidParamsError
from floodgate.core.logging import get_logger
from floodgate.core.protocols import IBlobStore, ICacheBackend, IWorkDispatcher
from floodgate.models.batching import BatchInfo, InstanceDetails, InstanceManifest
from floodgate.models.status import ProjectStatus, WorkflowReport
from floodgate.status.tracker import StatusTracker
from floodgate.workflow.dispatch import job_in_progress
from floodgate.workflow.worker import batch_status_tracker

log = get_logger(__name__, component="workflow")

SKIPPED_RUNNING = "Skipping, Instance is running!"
NONE_TO_RUN = "None to run!"


def derive_status(failures: dict[str, list[Any]], total_files: int,
                  primary_list: str | None = None) -> ProjectStatus:
    """COMPLETED, COMPLETED_WITH_ERROR, or FAILED when every file of the primary operation failed."""
    if not any(failures.values()):
        return ProjectStatus.COMPLETED
    if primary_list and total_files > 0 and len(failures.get(primary_list, [])) >= total_files:
        return ProjectStatus.FAILED
    return ProjectStatus.COMPLETED_WITH_ERROR


def aggregate_results(
    batch_manager: BatchManager,
    batches_info: list[BatchInfo],
    failure_lists: Iterable[str],
    primary_list: str | None = None,
) -> tuple[dict[str, list[Any]], ProjectStatus]:
    """Concatenate the failure lists recorded by every batch."""
    failures: dict[str, list[Any]] = {name: [] for name in failure_lists}
    for info in batches_info:
        batch = batch_manager.init_batch(info.batch_number)
        results = batch.get_results_content() if batch else None
        for name in failures:
            failures[name].extend((results or {}).get(name) or [])
    total_files = InstanceDetails(batches_info=batches_info).total_files()
    return failures, derive_status(failures, total_files, primary_list)


class BatchWorkflow:
    """Base driver. Subclasses set the class attributes and implement :meth:`step`."""

    action: str = ""
    status_key_param: str = "fgRootFolder"
    required_params: tuple[str, ...] = ("fgRootFolder",)
    failure_lists: tuple[str, ...] = ()
    primary_failure_list: str | None = None
    success_message = "Completed successfully."
    error_message = "Completed with errors. Check the failure lists for details."
    failed_message = "Failed to process every file."
    empty_message = "No files to process."

    def __init__(self, *, settings: AppSettings, store: IBlobStore, cache: ICacheBackend) -> None:
        self._settings = settings
        self._store = store
        self._cache = cache

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def batch_manager(self, instance_key: str | None = None) -> BatchManager:
        return BatchManager(
            self.action, store=self._store, config=self._settings.batch, instance_key=instance_key,
        ).init()

    def status_tracker(self, status_key: str) -> StatusTracker:
        return StatusTracker(self._cache, self.action, status_key, ttl=self._settings.status.ttl_seconds)

    def validate(self, params: dict[str, Any]) -> None:
        missing = [name for name in self.required_params if not params.get(name)]
        if missing:
            raise InvalidParamsError(self.action, missing)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_batches(self, files: Iterable[Any] | AsyncIterable[Any],
                             params: dict[str, Any]) -> str:
        """Batch ``files`` into a fresh instance and hand it to the trigger step."""
        status_key = params.get(self.status_key_param)
        if not status_key:
            message = str(InvalidParamsError(self.action, [self.status_key_param]))
            log.error("create_batches_rejected", action=self.action, error=message)
            return message

        manager = self.batch_manager(status_key)
        status = self.status_tracker(status_key)
        try:
            self.validate(params)
        except InvalidParamsError as exc:
            status.update_status(ProjectStatus.FAILED, str(exc))
            log.error("create_batches_rejected", action=self.action, error=str(exc))
            return str(exc)

        try:
            manager.cleanup_files()
            status.reset()
            status.update_status(ProjectStatus.STARTED, "Creating batches.")
            count = 0
            if isinstance(files, AsyncIterable):
                async for item in files:
                    count += manager.add_file(item)
            else:
                for item in files:
                    count += manager.add_file(item)
            manifest = manager.finalize_instance(params)
            if count == 0:
                report = await self.complete(manager, manifest, status)
                return report.message
            message = f"Created {len(manifest.dtls.batches_info)} batches for {count} files."
            status.update_status(ProjectStatus.IN_PROGRESS, message,
                                 batches_info=manifest.dtls.batches_info)
            log.info("batches_created", action=self.action, instance_key=manager.instance_key,
                     files=count, batches=len(manifest.dtls.batches_info))
            return message
        except Exception as exc:
            log.exception("create_batches_failed", action=self.action, error=str(exc))
            status.update_status(ProjectStatus.COMPLETED_WITH_ERROR, str(exc))
            return str(exc)

    # ------------------------------------------------------------------
    # Trigger and track
    # ------------------------------------------------------------------

    async def step(self, manager: BatchManager, manifest: InstanceManifest,
                   status: StatusTracker) -> str:
        """Advance the instance by one step and persist the manifest."""
        raise NotImplementedError

    async def trigger_and_track(self) -> str:
        manager = self.batch_manager()
        if manager.is_instance_running():
            return SKIPPED_RUNNING
        manifest = manager.get_instance_data()
        if manifest is None:
            return NONE_TO_RUN

        params = manifest.dtls.invocation_params
        status = self.status_tracker(params.get(self.status_key_param) or manager.instance_key)
        try:
            manager.mark_instance_running()
            self.validate(params)
            message = await self.step(manager, manifest, status)
            if not manifest.dtls.pending_batches():
                report = await self.complete(manager, manifest, status)
                message = report.message
        except InvalidParamsError as exc:
            log.error("trigger_rejected", action=self.action, error=str(exc))
            status.update_status(ProjectStatus.FAILED, str(exc))
            message = str(exc)
        except Exception as exc:
            log.exception("trigger_failed", action=self.action, error=str(exc))
            status.update_status(ProjectStatus.COMPLETED_WITH_ERROR, str(exc))
            message = str(exc)
        finally:
            manager.mark_instance_paused()
        return message

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def aggregate_results(self, manager: BatchManager, batches_info: list[BatchInfo]) -> WorkflowReport:
        failures, overall = aggregate_results(
            manager, batches_info, self.failure_lists, self.primary_failure_list,
        )
        return WorkflowReport(
            action=self.action,
            status=overall,
            message=self._message_for(overall, batches_info),
            failures=failures,
            total_files=InstanceDetails(batches_info=batches_info).total_files(),
        )

    def _message_for(self, overall: ProjectStatus, batches_info: list[BatchInfo]) -> str:
        if not batches_info:
            return self.empty_message
        if overall == ProjectStatus.FAILED:
            return self.failed_message
        if overall == ProjectStatus.COMPLETED_WITH_ERROR:
            return self.error_message
        return self.success_message

    async def finish(self, report: WorkflowReport, params: dict[str, Any]) -> WorkflowReport:
        """Hook for action-specific work once every batch is done."""
        return report

    async def complete(self, manager: BatchManager, manifest: InstanceManifest,
                       status: StatusTracker) -> WorkflowReport:
        report = self.aggregate_results(manager, manifest.dtls.batches_info)
        report = await self.finish(report, manifest.dtls.invocation_params)
        record = status.update_status(report.status, report.message)
        if record is not None:
            report.start_time = record.start_time
            report.end_time = record.end_time
        manager.mark_complete(report.model_dump(by_alias=True, mode="json"))
        log.info("workflow_completed", action=self.action, instance_key=manager.instance_key,
                 status=str(report.status), total_files=report.total_files)
        return report


class DispatchedBatchWorkflow(BatchWorkflow):
    """Driver handing each batch to a worker job through the dispatcher.

    Batches run one at a time: a new job is dispatched only when no batch
    is in flight.
    """

    worker_job: str = ""
    batch_action: str = ""

    def __init__(self, *, settings: AppSettings, store: IBlobStore, cache: ICacheBackend,
                 dispatcher: IWorkDispatcher) -> None:
        super().__init__(settings=settings, store=store, cache=cache)
        self._dispatcher = dispatcher

    def _batch_status(self, status_key: str, batch_number: int) -> StatusTracker:
        return batch_status_tracker(self._cache, self.batch_action, status_key, batch_number,
                                    self._settings.status.ttl_seconds)

    async def check_batches_in_progress(self, status_key: str,
                                        batches_info: list[BatchInfo]) -> tuple[bool, bool]:
        """Mark finished in-flight batches done; return ``(any_in_progress, all_done)``."""
        any_in_progress = False
        all_done = True
        for info in batches_info:
            if info.activation_id and not info.done:
                record = self._batch_status(status_key, info.batch_number).get_status()
                # no record (expired or unreadable): the dispatcher decides
                in_progress = record is None or record.status.in_progress
                if in_progress:
                    in_progress = await job_in_progress(self._dispatcher, info.activation_id, True)
                info.done = not in_progress
                all_done = all_done and not in_progress
                if in_progress:
                    any_in_progress = True
                    break
            else:
                all_done = all_done and info.done
        return any_in_progress, all_done

    async def trigger_batch(self, info: BatchInfo, params: dict[str, Any],
                            status: StatusTracker) -> None:
        status_key = params.get(self.status_key_param) or ""
        try:
            job_id = await self._dispatcher.invoke(
                self.worker_job, {**params, "batchNumber": info.batch_number},
            )
        except DispatchError as exc:
            log.error("batch_dispatch_failed", action=self.action,
                      batch_number=info.batch_number, error=str(exc))
            status.update_status(ProjectStatus.IN_PROGRESS, str(exc))
            return
        info.activation_id = job_id
        self._batch_status(status_key, info.batch_number).update_status(
            ProjectStatus.STARTED, f"Triggered Batch-{info.batch_number}.", activation_id=job_id,
        )
        status.update_status(ProjectStatus.IN_PROGRESS,
                             f"Triggered Batch-{info.batch_number}.", activation_id=job_id)

    async def step(self, manager: BatchManager, manifest: InstanceManifest,
                   status: StatusTracker) -> str:
        params = manifest.dtls.invocation_params
        batches_info = manifest.dtls.batches_info
        status.update_status(ProjectStatus.IN_PROGRESS, "Getting status of all batches.")
        any_in_progress, all_done = await self.check_batches_in_progress(
            params.get(self.status_key_param) or "", batches_info,
        )
        manager.write_manifest(manifest)
        if all_done:
            return "All batches processed."
        if not any_in_progress:
            next_item = next((b for b in batches_info if not b.activation_id), None)
            if next_item is not None:
                await self.trigger_batch(next_item, params, status)
                manager.write_manifest(manifest)
        return "Trigger and track completed."
