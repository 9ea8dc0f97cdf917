"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from floodgate.core.config import AppSettings
from floodgate.core.protocols import IBlobStore, ICacheBackend
from floodgate.persistence.memory_backend import MemoryBlobStore, MemoryCacheBackend
from floodgate.persistence.redis_backend import RedisCacheBackend
from floodgate.persistence.s3_backend import S3BlobStore


def create_blob_store(settings: AppSettings | None = None) -> IBlobStore:
    """Create the blob store selected by ``settings.storage_backend``."""
    if settings is None:
        settings = AppSettings()
    if settings.storage_backend == "memory":
        return MemoryBlobStore()
    return S3BlobStore(
        bucket=settings.s3.bucket,
        region=settings.s3.region,
        endpoint_url=settings.s3.endpoint_url,
    )


def create_cache(settings: AppSettings | None = None) -> ICacheBackend:
    """Create the cache backend used by the status store."""
    if settings is None:
        settings = AppSettings()
    if settings.status.backend == "memory":
        return MemoryCacheBackend()
    return RedisCacheBackend(
        host=settings.redis.host,
        port=settings.redis.port,
        db=settings.redis.db,
        key_prefix=settings.redis.key_prefix,
    )
