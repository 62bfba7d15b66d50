"""Unit tests for the memorial record stores."""

from __future__ import annotations

import json
from unittest.mock import Mock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.backend.src.core import record_store as record_store_module
from app.backend.src.core.errors import StorageError
from app.backend.src.core.record_store import InMemoryRecordStore, RedisRecordStore

RECORD = {"slug": "milo-1", "petName": "Milo", "images": [], "editKey": "k"}


@pytest.fixture()
def redis_client(monkeypatch: pytest.MonkeyPatch) -> Mock:
    client = Mock()
    monkeypatch.setattr(
        record_store_module.Redis, "from_url", lambda *args, **kwargs: client
    )
    return client


def test_redis_put_if_absent_uses_set_nx(redis_client: Mock) -> None:
    redis_client.set.side_effect = [True, None]
    store = RedisRecordStore("redis://localhost:6379/0", key_prefix="memorial")

    assert store.put_if_absent("milo-1", RECORD) is True
    assert store.put_if_absent("milo-1", RECORD) is False

    redis_client.set.assert_called_with("memorial:milo-1", json.dumps(RECORD), nx=True)


def test_redis_get_many_uses_single_mget(redis_client: Mock) -> None:
    redis_client.mget.return_value = [json.dumps(RECORD), None, "{broken"]
    store = RedisRecordStore("redis://localhost:6379/0")

    records = store.get_many(["milo-1", "ghost-99", "corrupt"])

    redis_client.mget.assert_called_once_with(
        ["memorial:milo-1", "memorial:ghost-99", "memorial:corrupt"]
    )
    assert records == [RECORD, None, None]


def test_redis_errors_become_storage_errors(redis_client: Mock) -> None:
    redis_client.get.side_effect = RedisConnectionError("down")
    redis_client.delete.side_effect = RedisConnectionError("down")
    redis_client.ping.side_effect = RedisConnectionError("down")
    store = RedisRecordStore("redis://localhost:6379/0")

    with pytest.raises(StorageError):
        store.get("milo-1")
    with pytest.raises(StorageError):
        store.delete("milo-1")
    assert store.ping() is False


def test_redis_get_many_empty_skips_round_trip(redis_client: Mock) -> None:
    store = RedisRecordStore("redis://localhost:6379/0")

    assert store.get_many([]) == []
    redis_client.mget.assert_not_called()


def test_in_memory_store_round_trip() -> None:
    store = InMemoryRecordStore()

    assert store.put_if_absent("milo-1", RECORD) is True
    assert store.put_if_absent("milo-1", {**RECORD, "petName": "Other"}) is False
    assert store.get("milo-1") == RECORD

    store.delete("milo-1")
    store.delete("milo-1")
    assert store.get("milo-1") is None


def test_in_memory_get_many_drops_unreadable_records() -> None:
    store = InMemoryRecordStore([RECORD])
    store._data["corrupt"] = "{broken"

    assert store.get_many(["milo-1", "corrupt", "ghost-99"]) == [RECORD, None, None]
    with pytest.raises(StorageError):
        store.get("corrupt")
