"""Status sink: the latest StatusRecord per (action, status key) in the cache."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from floodgate.core.exceptions import CacheError
from floodgate.core.logging import get_logger
from floodgate.core.protocols import ICacheBackend
from floodgate.models.batching import BatchInfo
from floodgate.models.status import ProjectStatus, StatusRecord

log = get_logger(__name__, component="status")

DEFAULT_TTL_SECONDS = 30 * 24 * 3600


class StatusTracker:
    """Reads and writes the status record of one action run.

    Cache failures are logged and swallowed: a status outage must never fail
    the workflow step that reports it.
    """

    def __init__(self, cache: ICacheBackend, action: str, status_key: str,
                 ttl: int = DEFAULT_TTL_SECONDS) -> None:
        self._cache = cache
        self.action = action
        self.status_key = status_key
        self.ttl = ttl

    @property
    def cache_key(self) -> str:
        return f"status:{self.action}:{self.status_key}"

    def get_status(self) -> StatusRecord | None:
        try:
            raw = self._cache.get(self.cache_key)
            if raw is None:
                return None
            return StatusRecord.model_validate_json(raw)
        except (CacheError, ValidationError) as exc:
            log.error("status_read_failed", key=self.cache_key, error=str(exc))
            return None

    def update_status(
        self,
        status: ProjectStatus,
        message: str = "",
        batches_info: list[BatchInfo] | None = None,
        activation_id: str | None = None,
    ) -> StatusRecord | None:
        """Record a transition, stamping start and end times."""
        now = datetime.now(timezone.utc)
        current = self.get_status()
        record = current.model_copy() if current else StatusRecord(
            action=self.action, status_key=self.status_key,
        )
        if status == ProjectStatus.STARTED or (status.in_progress and record.start_time is None):
            record.start_time = now
        record.end_time = now if status.terminal else None
        record.status = status
        record.message = message
        if batches_info is not None:
            record.batches_info = list(batches_info)
        if activation_id is not None:
            record.activation_id = activation_id
        try:
            self._cache.setex(self.cache_key, self.ttl, record.model_dump_json(by_alias=True))
        except CacheError as exc:
            log.error("status_write_failed", key=self.cache_key, status=str(status), error=str(exc))
            return None
        log.info("status_updated", action=self.action, status_key=self.status_key,
                 status=str(status), message=message)
        return record

    def get_start_end_time(self) -> dict[str, Any]:
        record = self.get_status()
        return {
            "startTime": record.start_time if record else None,
            "endTime": record.end_time if record else None,
        }

    def is_in_progress(self, status: ProjectStatus | str | None = None) -> bool:
        """Whether ``status`` (or the stored status when omitted) is still running."""
        if status is None:
            record = self.get_status()
            if record is None:
                return False
            status = record.status
        return ProjectStatus(status).in_progress

    def reset(self) -> None:
        try:
            self._cache.delete(self.cache_key)
        except CacheError as exc:
            log.error("status_reset_failed", key=self.cache_key, error=str(exc))
