"""Project status and workflow report models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from floodgate.models.batching import BatchInfo


class ProjectStatus(StrEnum):
    STARTED = "STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    COMPLETED_WITH_ERROR = "COMPLETED_WITH_ERROR"
    FAILED = "FAILED"

    @property
    def in_progress(self) -> bool:
        return self in (ProjectStatus.STARTED, ProjectStatus.IN_PROGRESS)

    @property
    def terminal(self) -> bool:
        return not self.in_progress


class StatusRecord(BaseModel):
    """Latest reported state of one action run (or one batch of it)."""

    model_config = ConfigDict(populate_by_name=True)

    action: str
    status_key: str = Field(alias="statusKey")
    status: ProjectStatus = ProjectStatus.STARTED
    message: str = ""
    activation_id: Optional[str] = Field(default=None, alias="activationId")
    batches_info: list[BatchInfo] = Field(default_factory=list, alias="batchesInfo")
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")


class WorkflowReport(BaseModel):
    """Final outcome of an instance, written to ``instance_results.json``."""

    model_config = ConfigDict(populate_by_name=True)

    action: str
    status: ProjectStatus
    message: str = ""
    failures: dict[str, list[Any]] = Field(default_factory=dict)
    total_files: int = Field(default=0, alias="totalFiles")
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")

    @property
    def has_failures(self) -> bool:
        return any(self.failures.values())
