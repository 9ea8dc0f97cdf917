"""Wire workflows and workers together for a single process."""

from __future__ import annotations

from floodgate.core.config import AppSettings
from floodgate.core.protocols import IBlobStore, ICacheBackend, IDocumentStore, IPreviewPublisher
from floodgate.workflow.copy import COPY_WORKER_JOB, CopyWorker
from floodgate.workflow.dispatch import LocalDispatcher
from floodgate.workflow.promote import PROMOTE_WORKER_JOB, PromoteWorker


def create_local_dispatcher(
    *,
    settings: AppSettings,
    store: IBlobStore,
    cache: ICacheBackend,
    documents: IDocumentStore,
    publisher: IPreviewPublisher,
) -> LocalDispatcher:
    """LocalDispatcher with the promote and copy workers registered."""
    deps = dict(settings=settings, store=store, cache=cache, documents=documents, publisher=publisher)
    dispatcher = LocalDispatcher()
    dispatcher.register(PROMOTE_WORKER_JOB, PromoteWorker(**deps))
    dispatcher.register(COPY_WORKER_JOB, CopyWorker(**deps))
    return dispatcher
