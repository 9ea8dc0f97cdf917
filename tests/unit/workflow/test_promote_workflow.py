"""End-to-end tests for the promote workflow over in-memory backends."""

from __future__ import annotations

import pytest

from floodgate.batching.batch_manager import BatchManager
from floodgate.core.types import PROMOTE_ACTION
from floodgate.core.exceptions import CacheError
from floodgate.models.status import ProjectStatus
from floodgate.workflow.base import NONE_TO_RUN, SKIPPED_RUNNING
from floodgate.workflow.dispatch import LocalDispatcher
from floodgate.workflow.promote import PromoteWorkflow, find_floodgate_files
from floodgate.workflow.runner import create_local_dispatcher
from tests.fakes import MemoryCacheBackend, MemoryDocumentStore, MemoryPreviewPublisher
from tests.unit.workflow.conftest import PROMOTE_PARAMS

FG_TREE = {
    "/drafts/a.docx": b"A",
    "/drafts/c.xlsx": b"C",
    "/drafts/sub/b.docx": b"B",
}


@pytest.fixture
def documents():
    return MemoryDocumentStore(fg_files=FG_TREE)


@pytest.fixture
def dispatcher(settings, store, cache, documents, publisher):
    return create_local_dispatcher(settings=settings, store=store, cache=cache,
                                   documents=documents, publisher=publisher)


@pytest.fixture
def workflow(settings, store, cache, dispatcher):
    return PromoteWorkflow(settings=settings, store=store, cache=cache, dispatcher=dispatcher)


async def run_to_completion(workflow, dispatcher, max_steps=10):
    messages = []
    for _ in range(max_steps):
        message = await workflow.trigger_and_track()
        messages.append(message)
        if message == NONE_TO_RUN:
            break
        await dispatcher.join()
    return messages


class TestFindFiles:
    async def test_breadth_first_walk(self, documents):
        files = [f async for f in find_floodgate_files(documents, ["/drafts"])]
        assert [f["filePath"] for f in files] == ["/drafts/a.docx", "/drafts/c.xlsx", "/drafts/sub/b.docx"]
        assert files[0]["fileDownloadUrl"] == "fg:///drafts/a.docx"

    async def test_ignore_paths(self, documents):
        files = [f async for f in find_floodgate_files(documents, ["/drafts"], ["/drafts/sub"])]
        assert [f["filePath"] for f in files] == ["/drafts/a.docx", "/drafts/c.xlsx"]


class TestPromoteWorkflow:
    async def test_promotes_every_file(self, workflow, dispatcher, documents, publisher, store, settings):
        message = await workflow.create_batches_from_tree(documents, PROMOTE_PARAMS)
        assert message == "Created 2 batches for 3 files."
        status = workflow.status_tracker("/milo-pink")
        assert status.get_status().status == ProjectStatus.IN_PROGRESS

        messages = await run_to_completion(workflow, dispatcher)
        assert messages[-1] == NONE_TO_RUN
        assert messages[-2] == PromoteWorkflow.success_message

        assert documents.files == FG_TREE
        assert publisher.calls == [
            ("preview", ["/drafts/a", "/drafts/c.json"], False),
            ("preview", ["/drafts/sub/b"], False),
        ]
        record = status.get_status()
        assert record.status == ProjectStatus.COMPLETED
        assert record.end_time is not None

        manager = BatchManager(PROMOTE_ACTION, store=store, config=settings.batch,
                               instance_key="/milo-pink").init()
        results = manager.get_results_content()
        assert results["status"] == "COMPLETED"
        assert results["totalFiles"] == 3

    async def test_batches_run_one_at_a_time(self, workflow, dispatcher, documents):
        await workflow.create_batches_from_tree(documents, PROMOTE_PARAMS)
        await workflow.trigger_and_track()
        await workflow.trigger_and_track()
        manifest = workflow.batch_manager().get_instance_data()
        assert [b.activation_id is not None for b in manifest.dtls.batches_info] == [True, False]
        await dispatcher.join()

    async def test_publish_when_requested(self, workflow, dispatcher, documents, publisher):
        await workflow.create_batches_from_tree(documents, {**PROMOTE_PARAMS, "doPublish": True})
        await run_to_completion(workflow, dispatcher)
        assert ("publish", ["/drafts/a", "/drafts/c.json"], False) in publisher.calls

    async def test_preview_failure_completes_with_error(self, settings, store, cache, documents):
        publisher = MemoryPreviewPublisher(failing={"/drafts/a"})
        dispatcher = create_local_dispatcher(settings=settings, store=store, cache=cache,
                                             documents=documents, publisher=publisher)
        workflow = PromoteWorkflow(settings=settings, store=store, cache=cache, dispatcher=dispatcher)
        await workflow.create_batches_from_tree(documents, PROMOTE_PARAMS)
        messages = await run_to_completion(workflow, dispatcher)

        assert messages[-2] == PromoteWorkflow.error_message
        record = workflow.status_tracker("/milo-pink").get_status()
        assert record.status == ProjectStatus.COMPLETED_WITH_ERROR

    async def test_every_promote_failing_is_failed(self, settings, store, cache, publisher):
        documents = MemoryDocumentStore(fg_files=FG_TREE, locked=set(FG_TREE))
        dispatcher = create_local_dispatcher(settings=settings, store=store, cache=cache,
                                             documents=documents, publisher=publisher)
        workflow = PromoteWorkflow(settings=settings, store=store, cache=cache, dispatcher=dispatcher)
        await workflow.create_batches_from_tree(documents, PROMOTE_PARAMS)
        await run_to_completion(workflow, dispatcher)

        record = workflow.status_tracker("/milo-pink").get_status()
        assert record.status == ProjectStatus.FAILED
        manager = workflow.batch_manager("/milo-pink")
        failed = manager.get_results_content()["failures"]["failedPromotes"]
        assert sorted(failed) == sorted(f"{p} (locked)" for p in FG_TREE)
        assert publisher.calls == []

    async def test_empty_tree_completes_immediately(self, workflow, dispatcher):
        message = await workflow.create_batches_from_tree(MemoryDocumentStore(), PROMOTE_PARAMS)
        assert message == PromoteWorkflow.empty_message
        assert workflow.status_tracker("/milo-pink").get_status().status == ProjectStatus.COMPLETED
        assert await workflow.trigger_and_track() == NONE_TO_RUN

    async def test_missing_params_fail(self, workflow, documents):
        message = await workflow.create_batches_from_tree(documents, {"fgRootFolder": "/milo-pink"})
        assert "adminPageUri" in message
        record = workflow.status_tracker("/milo-pink").get_status()
        assert record.status == ProjectStatus.FAILED

    async def test_missing_status_key_is_rejected(self, workflow, documents, cache):
        message = await workflow.create_batches_from_tree(documents, {})
        assert "fgRootFolder" in message
        assert workflow.batch_manager().get_instance_data() is None

    async def test_running_instance_is_skipped(self, workflow, documents):
        await workflow.create_batches_from_tree(documents, PROMOTE_PARAMS)
        manager = workflow.batch_manager("/milo-pink")
        manager.mark_instance_running()
        assert await workflow.trigger_and_track() == SKIPPED_RUNNING

    async def test_nothing_to_run(self, workflow):
        assert await workflow.trigger_and_track() == NONE_TO_RUN

    async def test_dispatch_failure_retries_next_trigger(self, settings, store, cache, documents, dispatcher):
        broken = PromoteWorkflow(settings=settings, store=store, cache=cache, dispatcher=LocalDispatcher())
        await broken.create_batches_from_tree(documents, PROMOTE_PARAMS)
        await broken.trigger_and_track()
        manifest = broken.batch_manager().get_instance_data()
        assert all(b.activation_id is None for b in manifest.dtls.batches_info)
        assert "no handler registered" in broken.status_tracker("/milo-pink").get_status().message

        working = PromoteWorkflow(settings=settings, store=store, cache=cache, dispatcher=dispatcher)
        messages = await run_to_completion(working, dispatcher)
        assert messages[-2] == PromoteWorkflow.success_message


class CrashingPublisher(MemoryPreviewPublisher):
    """Raises for any bulk call that touches one of ``crash_on``."""

    def __init__(self, crash_on):
        super().__init__()
        self.crash_on = set(crash_on)

    async def bulk_preview_publish(self, paths, operation, *, is_floodgate=False):
        if self.crash_on & set(paths):
            raise RuntimeError("preview service unavailable")
        return await super().bulk_preview_publish(paths, operation, is_floodgate=is_floodgate)


class FlakyCache(MemoryCacheBackend):
    def __init__(self):
        super().__init__()
        self.failing = False

    def get(self, key):
        if self.failing:
            raise CacheError("redis down")
        return super().get(key)


class HeldDispatcher:
    """Dispatcher whose jobs never run; their state is set by the test."""

    def __init__(self):
        self.status = "running"
        self.invoked = []

    async def invoke(self, name, params):
        self.invoked.append(params["batchNumber"])
        return f"job-{len(self.invoked)}"

    async def get_status(self, job_id):
        return self.status


class TestBatchFailures:
    def _workflow(self, settings, store, cache, documents, publisher):
        dispatcher = create_local_dispatcher(settings=settings, store=store, cache=cache,
                                             documents=documents, publisher=publisher)
        workflow = PromoteWorkflow(settings=settings, store=store, cache=cache, dispatcher=dispatcher)
        return workflow, dispatcher

    async def test_crashing_worker_fails_every_file(self, settings, store, cache, documents):
        publisher = CrashingPublisher(crash_on=["/drafts/a", "/drafts/sub/b"])
        workflow, dispatcher = self._workflow(settings, store, cache, documents, publisher)
        await workflow.create_batches_from_tree(documents, PROMOTE_PARAMS)
        messages = await run_to_completion(workflow, dispatcher)

        assert messages[-2] == PromoteWorkflow.failed_message
        assert workflow.status_tracker("/milo-pink").get_status().status == ProjectStatus.FAILED
        failed = workflow.batch_manager("/milo-pink").get_results_content()["failures"]["failedPromotes"]
        assert failed == list(FG_TREE)

    async def test_one_crashing_batch_completes_with_error(self, settings, store, cache, documents):
        publisher = CrashingPublisher(crash_on=["/drafts/sub/b"])
        workflow, dispatcher = self._workflow(settings, store, cache, documents, publisher)
        await workflow.create_batches_from_tree(documents, PROMOTE_PARAMS)
        messages = await run_to_completion(workflow, dispatcher)

        assert messages[-2] == PromoteWorkflow.error_message
        results = workflow.batch_manager("/milo-pink").get_results_content()
        assert results["status"] == "COMPLETED_WITH_ERROR"
        assert results["failures"]["failedPromotes"] == ["/drafts/sub/b.docx"]
        batch_record = workflow._batch_status("/milo-pink", 2).get_status()
        assert batch_record.status == ProjectStatus.COMPLETED_WITH_ERROR


class TestUnreadableBatchStatus:
    async def test_running_job_keeps_batch_in_flight(self, settings, store, documents):
        cache = FlakyCache()
        dispatcher = HeldDispatcher()
        workflow = PromoteWorkflow(settings=settings, store=store, cache=cache, dispatcher=dispatcher)
        await workflow.create_batches_from_tree(documents, PROMOTE_PARAMS)
        await workflow.trigger_and_track()
        assert dispatcher.invoked == [1]

        cache.failing = True
        for _ in range(3):
            assert await workflow.trigger_and_track() == "Trigger and track completed."
        assert dispatcher.invoked == [1]
        manifest = workflow.batch_manager().get_instance_data()
        assert [b.done for b in manifest.dtls.batches_info] == [False, False]

        dispatcher.status = "success"
        await workflow.trigger_and_track()
        assert dispatcher.invoked == [1, 2]
        assert await workflow.trigger_and_track() == PromoteWorkflow.success_message
        assert await workflow.trigger_and_track() == NONE_TO_RUN

    async def test_expired_record_asks_dispatcher(self, settings, store, cache, documents):
        dispatcher = HeldDispatcher()
        workflow = PromoteWorkflow(settings=settings, store=store, cache=cache, dispatcher=dispatcher)
        await workflow.create_batches_from_tree(documents, PROMOTE_PARAMS)
        await workflow.trigger_and_track()
        workflow._batch_status("/milo-pink", 1).reset()

        await workflow.trigger_and_track()
        assert dispatcher.invoked == [1]
        manifest = workflow.batch_manager().get_instance_data()
        assert manifest.dtls.batches_info[0].done is False
