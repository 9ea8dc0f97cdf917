"""Batch, instance manifest and tracker models.

Persisted JSON keeps the camelCase field names used on the store; use
``model_dump(by_alias=True)`` when writing.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _StoreModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FileDescriptor(_StoreModel):
    """One task unit written into a batch (e.g. one document to promote)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    file: Any
    batch_fn: str = Field(alias="batchFn")
    batch_number: int = Field(alias="batchNumber")


class BatchInfo(_StoreModel):
    """Progress entry for one batch inside the instance manifest."""

    batch_number: int = Field(alias="batchNumber")
    done: bool = False
    activation_id: Optional[str] = Field(default=None, alias="activationId")
    num_files: int = Field(default=0, alias="numFiles")


class InstanceDetails(_StoreModel):
    """Resume parameters and batch progress of one instance."""

    batches_info: list[BatchInfo] = Field(default_factory=list, alias="batchesInfo")
    invocation_params: dict[str, Any] = Field(default_factory=dict, alias="invocationParams")

    def pending_batches(self) -> list[BatchInfo]:
        return [b for b in self.batches_info if not b.done]

    def next_pending(self) -> BatchInfo | None:
        return next((b for b in self.batches_info if not b.done), None)

    def total_files(self) -> int:
        return sum(b.num_files for b in self.batches_info)


class InstanceManifest(_StoreModel):
    """Contents of ``instance_info.json``."""

    last_batch: int = Field(default=0, alias="lastBatch")
    dtls: InstanceDetails = Field(default_factory=InstanceDetails)

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class TrackerEntry(_StoreModel):
    """Run state of one instance as recorded in the action's tracker."""

    params: dict[str, Any] = Field(default_factory=dict)
    batch_number: int = Field(default=1, alias="batchNumber")
    done: bool = False
    proceed: bool = True
    running: bool = False
    running_since: Optional[datetime] = Field(default=None, alias="runningSince")

    @property
    def resumable(self) -> bool:
        return not self.done and self.proceed


class Tracker(BaseModel):
    """Index of all instances of one action kind.

    Stored flat: ``{"instanceKeys": [...], "<key>": {<TrackerEntry>}, ...}``.
    """

    instance_keys: list[str] = Field(default_factory=list)
    entries: dict[str, TrackerEntry] = Field(default_factory=dict)

    @classmethod
    def from_store(cls, raw: dict[str, Any]) -> Tracker:
        keys = [k for k in raw.get("instanceKeys") or [] if k is not None]
        entries: dict[str, TrackerEntry] = {}
        for key, value in raw.items():
            if key == "instanceKeys" or not isinstance(value, dict):
                continue
            entries[key] = TrackerEntry.model_validate(value)
        return cls(instance_keys=list(dict.fromkeys(keys)), entries=entries)

    def to_store(self) -> dict[str, Any]:
        out: dict[str, Any] = {"instanceKeys": self.instance_keys}
        for key, entry in self.entries.items():
            out[key] = entry.model_dump(by_alias=True, mode="json")
        return out

    def register(self, instance_key: str, entry: TrackerEntry) -> None:
        if instance_key not in self.instance_keys:
            self.instance_keys.append(instance_key)
        self.entries[instance_key] = entry

    def find_resumable(self) -> str | None:
        """First listed instance that is not done and may proceed."""
        for key in self.instance_keys:
            entry = self.entries.get(key)
            if entry is not None and entry.resumable:
                return key
        return None
