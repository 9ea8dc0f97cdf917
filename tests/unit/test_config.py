"""Tests for configuration defaults and env overrides."""

from __future__ import annotations

from floodgate.core.config import AppSettings, BatchConfig, WorkerConfig
from floodgate.core.types import COPY_ACTION, DELETE_ACTION, PROMOTE_ACTION


def test_default_settings():
    settings = AppSettings()
    assert settings.environment == "dev"
    assert settings.storage_backend == "s3"
    assert settings.status.backend == "redis"
    assert settings.maint.enabled is False


def test_batch_config_defaults():
    config = BatchConfig()
    assert config.batch_files_path == "floodgate/batching"
    assert config.max_files_per_batch == 1000
    assert config.delete_max_files_per_batch == 500
    assert config.flush_size == 1


def test_delete_action_has_its_own_capacity():
    config = BatchConfig(max_files_per_batch=10, delete_max_files_per_batch=4)
    assert config.max_files_for(PROMOTE_ACTION) == 10
    assert config.max_files_for(COPY_ACTION) == 10
    assert config.max_files_for(DELETE_ACTION) == 4


def test_batch_config_env_override(monkeypatch):
    monkeypatch.setenv("FLOODGATE_BATCH_MAX_FILES_PER_BATCH", "25")
    monkeypatch.setenv("FLOODGATE_BATCH_BATCH_FILES_PATH", "custom/root")
    config = BatchConfig()
    assert config.max_files_per_batch == 25
    assert config.batch_files_path == "custom/root"


def test_worker_config_defaults():
    config = WorkerConfig()
    assert config.num_bulk_req == 20
    assert config.chunk_size == 0
    assert config.do_publish is False
