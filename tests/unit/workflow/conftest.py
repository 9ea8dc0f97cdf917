"""Shared fixtures for workflow tests."""

from __future__ import annotations

import pytest

from floodgate.core.config import AppSettings, BatchConfig, StatusConfig, WorkerConfig
from tests.fakes import MemoryBlobStore, MemoryCacheBackend, MemoryDocumentStore, MemoryPreviewPublisher

PROMOTE_PARAMS = {
    "fgRootFolder": "/milo-pink",
    "adminPageUri": "https://admin.example.com/milo",
    "projectExcelPath": "/milo-pink/project.xlsx",
}


@pytest.fixture
def settings():
    return AppSettings(
        storage_backend="memory",
        batch=BatchConfig(batch_files_path="fg", max_files_per_batch=2, delete_max_files_per_batch=2),
        worker=WorkerConfig(promote_root_folders=["/drafts"], chunk_delay_ms=0),
        status=StatusConfig(backend="memory"),
    )


@pytest.fixture
def store():
    return MemoryBlobStore()


@pytest.fixture
def cache():
    return MemoryCacheBackend()


@pytest.fixture
def documents():
    return MemoryDocumentStore()


@pytest.fixture
def publisher():
    return MemoryPreviewPublisher()
