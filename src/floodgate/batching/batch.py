"""A single capacity-bounded shard of file-level work."""

from __future__ import annotations

import json
import re
from typing import Any

from floodgate.core.exceptions import StoreError
from floodgate.core.logging import get_logger
from floodgate.core.protocols import IBlobStore
from floodgate.models.batching import FileDescriptor

log = get_logger(__name__, component="batch")

FOLDER_PREFIX = "batch"
FILENAME_PREFIX = "bfile"
RESULTS_FILENAME = "milo_batch_manifest.json"
DEFAULT_MAX_FILES = 10

_FILE_PATTERN = re.compile(rf"/{FILENAME_PREFIX}[^/]*\.json$")
_FILE_INDEX = re.compile(rf"{FILENAME_PREFIX}_(\d+)\.json$")


def _descriptor_index(key: str) -> int:
    match = _FILE_INDEX.search(key)
    return int(match.group(1)) if match else 0


class Batch:
    """Descriptor blobs of one batch plus its results blob.

    Layout under ``<instance_path>/batch_<n>/``: one ``bfile_<m>.json`` per
    descriptor and a single ``milo_batch_manifest.json`` with the worker's
    failure lists. With ``flush_size > 1`` descriptors are buffered and written
    when the buffer fills or on :meth:`save_pending_files`.
    """

    def __init__(
        self,
        store: IBlobStore | None,
        instance_path: str | None,
        batch_number: int = 1,
        max_files: int = DEFAULT_MAX_FILES,
        flush_size: int = 1,
    ) -> None:
        self._store = store
        self._instance_path = instance_path
        self.batch_number = batch_number or 1
        self.max_files = max_files
        self.flush_size = max(flush_size, 1)
        self.batch_path = f"{instance_path}/{FOLDER_PREFIX}_{self.batch_number}"
        self.results_file = f"{self.batch_path}/{RESULTS_FILENAME}"
        self.num_files = 0
        self._pending: list[FileDescriptor] = []

    def __repr__(self) -> str:
        return f"Batch(batch_number={self.batch_number}, num_files={self.num_files}, max_files={self.max_files})"

    @property
    def _bound(self) -> bool:
        return self._store is not None and bool(self._instance_path)

    def get_batch_number(self) -> int:
        return self.batch_number

    def get_batch_path(self) -> str:
        return self.batch_path

    def can_add_file(self) -> bool:
        return self._bound and self.num_files < self.max_files

    def add_file(self, file: Any) -> bool:
        """Record one task payload as the next descriptor of this batch.

        Returns False without writing anything when the batch is not bound to
        a store and path.
        """
        if not self._bound:
            return False
        descriptor = FileDescriptor(
            file=file,
            batch_fn=f"{FILENAME_PREFIX}_{self.num_files + 1}.json",
            batch_number=self.batch_number,
        )
        self.num_files += 1
        if self.flush_size == 1:
            self._write_descriptor(descriptor)
        else:
            self._pending.append(descriptor)
            if len(self._pending) >= self.flush_size:
                self.save_pending_files()
        return True

    def save_pending_files(self) -> None:
        if not self._pending:
            return
        pending, self._pending = self._pending, []
        for descriptor in pending:
            self._write_descriptor(descriptor)
        log.debug("pending_files_saved", batch_number=self.batch_number, count=len(pending))

    def _write_descriptor(self, descriptor: FileDescriptor) -> None:
        key = f"{self.batch_path}/{descriptor.batch_fn}"
        self._store.write(key, json.dumps(descriptor.model_dump(by_alias=True, mode="json")))

    def get_files(self) -> list[FileDescriptor]:
        """Read every descriptor of the batch, ordered by descriptor index."""
        if not self._bound:
            return []
        keys = [k for k in self._store.list(f"{self.batch_path}/") if _FILE_PATTERN.search(k)]
        keys.sort(key=_descriptor_index)
        log.debug("batch_files_listed", batch_number=self.batch_number, count=len(keys))
        return [
            FileDescriptor.model_validate(json.loads(self._store.read(key)))
            for key in keys
        ]

    def write_results(self, data: dict[str, Any]) -> None:
        self._store.write(self.results_file, json.dumps(data))

    def get_results_content(self) -> dict[str, Any] | None:
        """Results blob of the batch, or None when it was never written."""
        if not self._bound:
            return None
        try:
            if self.results_file not in self._store.list(self.results_file):
                return None
            return json.loads(self._store.read(self.results_file))
        except (StoreError, ValueError) as exc:
            log.warning("batch_results_unreadable", batch_number=self.batch_number, error=str(exc))
            return None
