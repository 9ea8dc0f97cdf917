"""Work dispatch: in-process dispatcher and job state checks."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from floodgate.core.exceptions import DispatchError
from floodgate.core.logging import get_logger
from floodgate.core.protocols import IWorkDispatcher

log = get_logger(__name__, component="dispatch")

JOB_RUNNING = "running"
JOB_SUCCESS = "success"
JOB_FAILURE = "failure"

TERMINAL_JOB_STATUSES = frozenset({
    "success", "failure", "skipped", "developer_error", "system_error",
    "invocation_error", "application_error", "timeout",
    "action developer error", "application error",
})

JobHandler = Callable[[dict[str, Any]], Awaitable[Any]]


class LocalDispatcher:
    """IWorkDispatcher running registered async handlers as asyncio tasks.

    Job state is held per dispatcher instance. Finished tasks are released;
    their final status stays queryable.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, JobHandler] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._statuses: dict[str, str] = {}

    def register(self, name: str, handler: JobHandler) -> None:
        self._handlers[name] = handler

    async def invoke(self, name: str, params: dict[str, Any]) -> str:
        handler = self._handlers.get(name)
        if handler is None:
            raise DispatchError(name, params.get("batchNumber", 0), "no handler registered")
        job_id = uuid.uuid4().hex
        self._statuses[job_id] = JOB_RUNNING
        self._tasks[job_id] = asyncio.create_task(self._run(job_id, name, handler, dict(params)))
        log.info("job_invoked", job=name, job_id=job_id)
        return job_id

    async def _run(self, job_id: str, name: str, handler: JobHandler, params: dict[str, Any]) -> None:
        try:
            await handler(params)
            self._statuses[job_id] = JOB_SUCCESS
        except Exception as exc:
            self._statuses[job_id] = JOB_FAILURE
            log.error("job_failed", job=name, job_id=job_id, error=str(exc))
        finally:
            self._tasks.pop(job_id, None)

    async def get_status(self, job_id: str) -> str | None:
        return self._statuses.get(job_id)

    async def join(self) -> None:
        """Wait for every invoked job to finish."""
        pending = list(self._tasks.values())
        if pending:
            await asyncio.gather(*pending)


async def job_in_progress(dispatcher: IWorkDispatcher, job_id: str | None, assumed: bool = True) -> bool:
    """Ask the dispatcher whether ``job_id`` is still running.

    Only an assumed-running job with an id is checked. An unknown job or a
    failed lookup keeps the assumed state.
    """
    if not (assumed and job_id):
        return assumed
    try:
        status = await dispatcher.get_status(job_id)
    except Exception as exc:
        log.error("job_status_failed", job_id=job_id, error=str(exc))
        return assumed
    if status is None:
        return assumed
    return status not in TERMINAL_JOB_STATUSES
