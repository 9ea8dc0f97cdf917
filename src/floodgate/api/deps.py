"""Request-scoped accessors for objects wired in the app lifespan."""

from __future__ import annotations

from fastapi import Request

from floodgate.core.config import AppSettings
from floodgate.core.protocols import IBlobStore, ICacheBackend


def get_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_store(request: Request) -> IBlobStore:
    return request.app.state.store


def get_cache(request: Request) -> ICacheBackend:
    return request.app.state.cache
