"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

from floodgate.core.types import DELETE_ACTION


class BatchConfig(BaseSettings):
    """Batch partitioning and instance tracking configuration."""

    model_config = {"env_prefix": "FLOODGATE_BATCH_"}

    batch_files_path: str = "floodgate/batching"
    max_files_per_batch: int = Field(default=1000, ge=1)
    delete_max_files_per_batch: int = Field(default=500, ge=1)
    flush_size: int = Field(default=1, ge=1)  # 1 writes every descriptor immediately
    running_timeout_seconds: int = 900

    def max_files_for(self, action: str) -> int:
        if action == DELETE_ACTION:
            return self.delete_max_files_per_batch
        return self.max_files_per_batch


class WorkerConfig(BaseSettings):
    """Per-batch worker fan-out configuration."""

    model_config = {"env_prefix": "FLOODGATE_WORKER_"}

    num_bulk_req: int = Field(default=20, ge=1)
    chunk_size: int = 0  # 0 disables chunking
    chunk_delay_ms: int = 100
    promote_ignore_paths: list[str] = Field(default_factory=list)
    promote_root_folders: list[str] = Field(default_factory=lambda: ["/drafts"])
    do_publish: bool = False


class S3Config(BaseSettings):
    """S3 blob storage configuration."""

    model_config = {"env_prefix": "FLOODGATE_S3_"}

    bucket: str = "floodgate-batching"
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis configuration for the status store."""

    model_config = {"env_prefix": "FLOODGATE_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    key_prefix: str = "floodgate:"


class StatusConfig(BaseSettings):
    """Status sink configuration."""

    model_config = {"env_prefix": "FLOODGATE_STATUS_"}

    backend: Literal["redis", "memory"] = "redis"
    ttl_seconds: int = 30 * 24 * 3600


class MaintConfig(BaseSettings):
    """Maintenance endpoints configuration."""

    model_config = {"env_prefix": "FLOODGATE_MAINT_"}

    enabled: bool = False


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "FLOODGATE_"}

    environment: Literal["dev", "stage", "prod"] = "dev"
    log_level: str = "INFO"
    json_logs: bool = True
    storage_backend: Literal["s3", "memory"] = "s3"

    batch: BatchConfig = BatchConfig()
    worker: WorkerConfig = WorkerConfig()
    s3: S3Config = S3Config()
    redis: RedisConfig = RedisConfig()
    status: StatusConfig = StatusConfig()
    maint: MaintConfig = MaintConfig()
