"""Shared test doubles: re-export the memory backends."""

from __future__ import annotations

from floodgate.persistence.memory_backend import (
    MemoryBlobStore,
    MemoryCacheBackend,
    MemoryDocumentStore,
    MemoryPreviewPublisher,
)

__all__ = ["MemoryBlobStore", "MemoryCacheBackend", "MemoryDocumentStore", "MemoryPreviewPublisher"]
