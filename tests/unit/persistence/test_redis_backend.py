"""Unit tests for RedisCacheBackend using fakeredis."""

from __future__ import annotations

import json
from unittest.mock import patch

import fakeredis
import pytest

from floodgate.core.exceptions import CacheError
from floodgate.persistence.redis_backend import RedisCacheBackend


@pytest.fixture
def fake_server():
    return fakeredis.FakeServer()


@pytest.fixture
def fake_client(fake_server):
    return fakeredis.FakeRedis(server=fake_server, decode_responses=True)


@pytest.fixture
def backend(fake_client):
    with patch("redis.Redis", return_value=fake_client):
        return RedisCacheBackend(host="localhost", port=6379, db=0, key_prefix="fg:")


class TestGet:
    def test_returns_none_on_miss(self, backend):
        assert backend.get("nonexistent") is None

    def test_returns_stored_value(self, backend):
        data = {"status": "IN_PROGRESS", "statusKey": "/milo-pink"}
        backend.setex("key1", 300, json.dumps(data))
        assert backend.get("key1") == json.dumps(data)


class TestSetex:
    def test_stores_value_with_ttl(self, backend, fake_client):
        backend.setex("mykey", 60, "v")
        assert backend.get("mykey") == "v"
        assert 0 < fake_client.ttl("fg:mykey") <= 60

    def test_keys_are_prefixed(self, backend, fake_client):
        backend.setex("status:promoteAction:/x", 60, "v")
        assert fake_client.get("fg:status:promoteAction:/x") == "v"

    def test_overwrites_existing_value(self, backend):
        backend.setex("k", 60, "old")
        backend.setex("k", 60, "new")
        assert backend.get("k") == "new"


class TestDelete:
    def test_removes_existing_key(self, backend):
        backend.setex("del_me", 60, "val")
        backend.delete("del_me")
        assert backend.get("del_me") is None

    def test_noop_on_missing_key(self, backend):
        backend.delete("never_existed")


class TestErrorWrapping:
    def test_get_wraps_redis_error(self):
        b = RedisCacheBackend.__new__(RedisCacheBackend)
        b._key_prefix = ""
        b._client = None  # AttributeError -> CacheError
        with pytest.raises(CacheError):
            b.get("k")

    def test_setex_wraps_connection_error(self, backend):
        with patch.object(backend._client, "setex", side_effect=ConnectionError("down")):
            with pytest.raises(CacheError):
                backend.setex("k", 1, "v")
