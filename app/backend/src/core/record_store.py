"""Memorial record storage backed by Redis."""

from __future__ import annotations

import json
import threading
from functools import lru_cache
from typing import Any, Iterable, Mapping

import structlog
from redis import Redis
from redis.exceptions import RedisError

from .config import get_settings
from .errors import StorageError

LOGGER = structlog.get_logger(__name__)


class RecordStore:
    """Interface for a key/value namespace holding one JSON record per slug."""

    def get(self, slug: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def get_many(self, slugs: list[str]) -> list[dict[str, Any] | None]:
        raise NotImplementedError

    def put_if_absent(self, slug: str, record: Mapping[str, Any]) -> bool:
        """Store ``record`` unless ``slug`` exists; return ``True`` if written."""
        raise NotImplementedError

    def put(self, slug: str, record: Mapping[str, Any]) -> None:
        raise NotImplementedError

    def delete(self, slug: str) -> None:
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError


def _decode(slug: str, raw: str | bytes | None) -> dict[str, Any] | None:
    if raw is None:
        return None
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        LOGGER.error("record_json_error", slug=slug, error=str(exc))
        raise StorageError(f'Stored memorial "{slug}" is unreadable.') from exc
    if not isinstance(payload, dict):
        LOGGER.error("record_not_an_object", slug=slug)
        raise StorageError(f'Stored memorial "{slug}" is unreadable.')
    return payload


class RedisRecordStore(RecordStore):
    """Redis-backed record store; uniqueness relies on ``SET NX``."""

    def __init__(self, url: str, *, key_prefix: str = "memorial") -> None:
        self.client = Redis.from_url(url, decode_responses=True)
        self.key_prefix = key_prefix

    def get(self, slug: str) -> dict[str, Any] | None:
        key = self._key(slug)
        try:
            raw = self.client.get(key)
        except RedisError as exc:
            LOGGER.error("record_read_failed", key=key, error=str(exc))
            raise StorageError("Unable to read memorial from storage.") from exc
        return _decode(slug, raw)

    def get_many(self, slugs: list[str]) -> list[dict[str, Any] | None]:
        if not slugs:
            return []
        try:
            raw_values = self.client.mget([self._key(slug) for slug in slugs])
        except RedisError as exc:
            LOGGER.error("record_batch_read_failed", count=len(slugs), error=str(exc))
            raise StorageError("Unable to read memorials from storage.") from exc

        records: list[dict[str, Any] | None] = []
        for slug, raw in zip(slugs, raw_values):
            try:
                records.append(_decode(slug, raw))
            except StorageError:
                records.append(None)
        return records

    def put_if_absent(self, slug: str, record: Mapping[str, Any]) -> bool:
        key = self._key(slug)
        try:
            written = self.client.set(key, json.dumps(record), nx=True)
        except RedisError as exc:
            LOGGER.error("record_create_failed", key=key, error=str(exc))
            raise StorageError("Unable to save memorial to storage.") from exc
        return bool(written)

    def put(self, slug: str, record: Mapping[str, Any]) -> None:
        key = self._key(slug)
        try:
            self.client.set(key, json.dumps(record))
        except RedisError as exc:
            LOGGER.error("record_write_failed", key=key, error=str(exc))
            raise StorageError("Unable to save memorial to storage.") from exc

    def delete(self, slug: str) -> None:
        key = self._key(slug)
        try:
            self.client.delete(key)
        except RedisError as exc:
            LOGGER.error("record_delete_failed", key=key, error=str(exc))
            raise StorageError("Unable to delete memorial from storage.") from exc

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except RedisError as exc:
            LOGGER.warning("record_store_ping_failed", error=str(exc))
            return False

    def _key(self, slug: str) -> str:
        return f"{self.key_prefix}:{slug}"


class InMemoryRecordStore(RecordStore):
    """Process-local store used when Redis is disabled (local dev, tests)."""

    def __init__(self, initial: Iterable[Mapping[str, Any]] = ()) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, str] = {}
        for record in initial:
            self._data[record["slug"]] = json.dumps(record)

    def get(self, slug: str) -> dict[str, Any] | None:
        with self._lock:
            raw = self._data.get(slug)
        return _decode(slug, raw)

    def get_many(self, slugs: list[str]) -> list[dict[str, Any] | None]:
        with self._lock:
            raw_values = [self._data.get(slug) for slug in slugs]

        records: list[dict[str, Any] | None] = []
        for slug, raw in zip(slugs, raw_values):
            try:
                records.append(_decode(slug, raw))
            except StorageError:
                records.append(None)
        return records

    def put_if_absent(self, slug: str, record: Mapping[str, Any]) -> bool:
        with self._lock:
            if slug in self._data:
                return False
            self._data[slug] = json.dumps(record)
            return True

    def put(self, slug: str, record: Mapping[str, Any]) -> None:
        with self._lock:
            self._data[slug] = json.dumps(record)

    def delete(self, slug: str) -> None:
        with self._lock:
            self._data.pop(slug, None)

    def ping(self) -> bool:
        return True

    def raw(self, slug: str) -> str | None:
        """Return the serialized record exactly as stored."""

        with self._lock:
            return self._data.get(slug)


@lru_cache()
def get_record_store() -> RecordStore:
    """Return the configured record store instance."""

    settings = get_settings()
    if settings.redis_enabled:
        return RedisRecordStore(settings.redis_url, key_prefix=settings.record_key_prefix)
    LOGGER.warning("redis_disabled_using_memory_store")
    return InMemoryRecordStore()


__all__ = [
    "RecordStore",
    "RedisRecordStore",
    "InMemoryRecordStore",
    "get_record_store",
]
