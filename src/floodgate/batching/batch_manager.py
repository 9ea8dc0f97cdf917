"""Lifecycle of all batches of one (action, instance) pair.

The manager partitions a stream of task payloads into :class:`Batch` shards
and persists everything a later, stateless invocation needs to resume:

    <root>/<action>/tracker.json
    <root>/<action>/instance<key>/instance_info.json
    <root>/<action>/instance<key>/instance_results.json
    <root>/<action>/instance<key>/batch_<n>/...

Concurrency control is advisory. ``running`` flags live in the tracker and
are updated with read-modify-write on a store without conditional writes,
so two triggers racing inside the same window can both proceed.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError

from floodgate.batching.batch import Batch
from floodgate.core.config import BatchConfig
from floodgate.core.exceptions import StoreError
from floodgate.core.logging import get_logger
from floodgate.core.protocols import IBlobStore
from floodgate.models.batching import BatchInfo, InstanceManifest, Tracker, TrackerEntry
from floodgate.utils.paths import get_instance_key

log = get_logger(__name__, component="batch-manager")

TRACKER_FILENAME = "tracker.json"
INSTANCE_FILENAME = "instance_info.json"
RESULTS_FILENAME = "instance_results.json"
INSTANCE_PREFIX = "instance"
MAX_ADD_ATTEMPTS = 2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchManager:
    """Creates, persists and resumes the batches of one workflow instance."""

    def __init__(
        self,
        action: str,
        store: IBlobStore | None = None,
        config: BatchConfig | None = None,
        instance_key: str | None = None,
    ) -> None:
        self.config = config or BatchConfig()
        self.action = action
        self.max_files = self.config.max_files_for(action)
        self.batch_files_path = self.config.batch_files_path
        self.bm_path = f"{self.batch_files_path}/{action}"
        self.tracker_file = f"{self.bm_path}/{TRACKER_FILENAME}"
        self.store: IBlobStore | None = None
        self.batches: list[Batch] = []
        self.current_batch: Batch | None = None
        self.current_batch_number: int | None = None
        self.manifest = InstanceManifest()
        self.dropped_files = 0
        self._store_arg = store
        self.init_instance(instance_key)

    def __repr__(self) -> str:
        return f"BatchManager(action={self.action!r}, instance_key={self.instance_key!r})"

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    def init(self, store: IBlobStore | None = None) -> BatchManager:
        """Bind the blob store. Safe to call more than once."""
        if store is not None:
            self._store_arg = store
        self.store = self._store_arg
        return self

    def init_instance(self, instance_key: str | None = None) -> BatchManager:
        self.instance_key = get_instance_key(instance_key)
        self.instance_path = f"{self.bm_path}/{INSTANCE_PREFIX}{self.instance_key}"
        self.instance_file = f"{self.instance_path}/{INSTANCE_FILENAME}"
        self.results_file = f"{self.instance_path}/{RESULTS_FILENAME}"
        return self

    def init_batch(self, batch_number: int | None) -> Batch | None:
        """Bind to an already created batch. No-op without a batch number."""
        if not batch_number:
            return None
        self.current_batch_number = batch_number
        self.current_batch = self._new_batch(batch_number)
        self.batches.append(self.current_batch)
        return self.current_batch

    @classmethod
    def get_batch_manager_for_batch(
        cls,
        action: str,
        batch_number: int,
        store: IBlobStore,
        config: BatchConfig | None = None,
        instance_key: str | None = None,
    ) -> BatchManager:
        """Rebuild a manager bound to one existing batch, for a per-batch worker."""
        manager = cls(action, store=store, config=config, instance_key=instance_key).init()
        manager.init_batch(batch_number)
        return manager

    def _new_batch(self, batch_number: int) -> Batch:
        return Batch(
            self.store,
            self.instance_path,
            batch_number=batch_number,
            max_files=self.max_files,
            flush_size=self.config.flush_size,
        )

    # ------------------------------------------------------------------
    # Batch creation
    # ------------------------------------------------------------------

    def get_new_batch_number(self) -> int:
        return (self.current_batch.get_batch_number() if self.current_batch else 0) + 1

    def create_batch(self) -> Batch:
        self.current_batch_number = self.get_new_batch_number()
        self.current_batch = self._new_batch(self.current_batch_number)
        self.batches.append(self.current_batch)
        self.manifest.last_batch = self.current_batch_number
        self.manifest.dtls.batches_info = self.get_batches_info()
        if self.store is not None:
            self.write_manifest(self.manifest)
        log.info("batch_created", action=self.action, instance_key=self.instance_key,
                 batch_number=self.current_batch_number)
        return self.current_batch

    def get_current_batch(self) -> Batch:
        if self.current_batch is None:
            self.create_batch()
        return self.current_batch

    def add_file(self, file: Any) -> bool:
        """Add one task payload, opening a new batch when the current one is full.

        Returns False when the payload was dropped: the store is not bound,
        or a freshly opened batch still cannot take it (capacity 0).
        """
        if self.store is not None:
            for attempt in range(MAX_ADD_ATTEMPTS):
                batch = self.current_batch
                if batch is not None and batch.can_add_file():
                    return batch.add_file(file)
                if attempt + 1 < MAX_ADD_ATTEMPTS:
                    if batch is not None:
                        batch.save_pending_files()
                    self.create_batch()
        self.dropped_files += 1
        log.warning("file_dropped", action=self.action, instance_key=self.instance_key,
                    max_files=self.max_files, store_bound=self.store is not None,
                    dropped_files=self.dropped_files)
        return False

    def save_remaining(self) -> None:
        if self.current_batch is not None:
            self.current_batch.save_pending_files()

    def get_batches(self) -> list[Batch]:
        return self.batches

    def get_batches_info(self) -> list[BatchInfo]:
        return [
            BatchInfo(batch_number=b.get_batch_number(), num_files=b.num_files)
            for b in self.batches
        ]

    def finalize_instance(self, invocation_params: dict[str, Any] | None = None) -> InstanceManifest:
        """Persist the final manifest and hand the instance to the trigger step."""
        self.save_remaining()
        self.manifest.last_batch = self.current_batch_number or 0
        self.manifest.dtls.batches_info = self.get_batches_info()
        self.manifest.dtls.invocation_params = dict(invocation_params or {})
        self.write_manifest(self.manifest)
        self.write_to_tracker(TrackerEntry(params=self.manifest.dtls.invocation_params))
        log.info("instance_finalized", action=self.action, instance_key=self.instance_key,
                 batches=len(self.batches), dropped_files=self.dropped_files)
        return self.manifest

    # ------------------------------------------------------------------
    # Tracker
    # ------------------------------------------------------------------

    def read_tracker(self) -> Tracker:
        """Tracker of this action; empty when absent or unreadable."""
        try:
            return Tracker.from_store(json.loads(self.store.read(self.tracker_file)))
        except (StoreError, ValueError, AttributeError) as exc:
            log.info("tracker_unavailable", action=self.action, error=str(exc))
            return Tracker()

    def write_to_tracker(self, entry: TrackerEntry) -> Tracker:
        """Record ``entry`` for the bound instance, keeping all other instances."""
        tracker = self.read_tracker()
        tracker.register(self.instance_key, entry)
        self.store.write(self.tracker_file, json.dumps(tracker.to_store()))
        return tracker

    def _tracker_entry(self, tracker: Tracker | None = None) -> TrackerEntry | None:
        if tracker is None:
            tracker = self.read_tracker()
        return tracker.entries.get(self.instance_key)

    def is_instance_running(self) -> bool:
        """Whether the next resumable instance holds a fresh running flag."""
        tracker = self.read_tracker()
        key = tracker.find_resumable()
        if key is None:
            return False
        entry = tracker.entries[key]
        if not entry.running:
            return False
        timeout = timedelta(seconds=self.config.running_timeout_seconds)
        if entry.running_since is not None and _utcnow() - entry.running_since > timeout:
            log.warning("stale_running_flag", action=self.action, instance_key=key,
                        running_since=entry.running_since.isoformat())
            return False
        return True

    def mark_instance_running(self) -> None:
        self._set_running(True)

    def mark_instance_paused(self) -> None:
        self._set_running(False)

    def _set_running(self, running: bool) -> None:
        entry = self._tracker_entry()
        if entry is None:
            log.info("running_flag_skipped", action=self.action, instance_key=self.instance_key)
            return
        entry.running = running
        entry.running_since = _utcnow() if running else None
        self.write_to_tracker(entry)

    def mark_complete(self, results: Any = None) -> None:
        """Mark the instance done for good and store its aggregate results."""
        entry = self._tracker_entry() or TrackerEntry()
        entry.done = True
        entry.proceed = False
        entry.running = False
        entry.running_since = None
        self.write_to_tracker(entry)
        if results is not None:
            self.write_results(results)
        log.info("instance_completed", action=self.action, instance_key=self.instance_key)

    # ------------------------------------------------------------------
    # Instance manifest
    # ------------------------------------------------------------------

    def write_manifest(self, manifest: InstanceManifest) -> None:
        self.store.write(self.instance_file, json.dumps(manifest.to_store()))

    def get_manifest_content(self) -> InstanceManifest | None:
        """Manifest of the bound instance; None when absent or invalid."""
        try:
            raw = json.loads(self.store.read(self.instance_file))
            return InstanceManifest.model_validate(raw)
        except (StoreError, ValueError, ValidationError, AttributeError) as exc:
            log.info("manifest_unavailable", action=self.action,
                     instance_key=self.instance_key, error=str(exc))
            return None

    def add_to_manifest(self, invocation_params: dict[str, Any]) -> InstanceManifest:
        """Merge extra resume parameters into the stored manifest."""
        manifest = self.get_manifest_content() or InstanceManifest()
        manifest.dtls.invocation_params = {**manifest.dtls.invocation_params, **invocation_params}
        self.write_manifest(manifest)
        return manifest

    def get_instance_data(self) -> InstanceManifest | None:
        """Bind to the first resumable instance and return its manifest."""
        tracker = self.read_tracker()
        key = tracker.find_resumable()
        if key is None:
            return None
        self.init_instance(key)
        return self.get_manifest_content()

    def resume_batch(self) -> InstanceManifest | None:
        """Like :meth:`get_instance_data`, also binding the tracked batch."""
        manifest = self.get_instance_data()
        if manifest is None:
            return None
        entry = self._tracker_entry()
        self.init_batch(entry.batch_number if entry else 1)
        return manifest

    # ------------------------------------------------------------------
    # Results and cleanup
    # ------------------------------------------------------------------

    def write_results(self, data: Any) -> None:
        self.store.write(self.results_file, json.dumps(data))

    def get_results_content(self) -> Any:
        try:
            if self.results_file not in self.store.list(self.results_file):
                return None
            return json.loads(self.store.read(self.results_file))
        except (StoreError, ValueError) as exc:
            log.warning("instance_results_unreadable", action=self.action,
                        instance_key=self.instance_key, error=str(exc))
            return None

    def cleanup_files(self) -> None:
        """Delete everything stored under the bound instance."""
        self.store.delete(f"{self.instance_path}/")
        log.info("instance_files_deleted", action=self.action, instance_key=self.instance_key)
