"""Floodgate exception hierarchy."""

from __future__ import annotations


class FloodgateError(Exception):
    """Base exception for all Floodgate errors."""


class StoreError(FloodgateError):
    """Blob store operation failed."""


class BlobNotFoundError(StoreError):
    """The requested key does not exist in the blob store."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Blob not found: {key!r}")


class CacheError(FloodgateError):
    """Cache (status store) operation failed."""


class WorkflowError(FloodgateError):
    """Error while driving a batching workflow."""


class InvalidParamsError(WorkflowError):
    """Required invocation parameters are missing."""

    def __init__(self, action: str, missing: list[str]) -> None:
        self.action = action
        self.missing = missing
        super().__init__(
            f"Required data is not available to proceed with {action}: {', '.join(missing)}"
        )


class DispatchError(WorkflowError):
    """A batch could not be handed to the work dispatcher."""

    def __init__(self, job_name: str, batch_number: int, message: str) -> None:
        self.job_name = job_name
        self.batch_number = batch_number
        super().__init__(f"Failed to invoke {job_name} for batch {batch_number}: {message}")
