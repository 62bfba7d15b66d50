"""Shared fixtures for memorial unit tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Sequence

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("REDIS_ENABLED", "false")

import pytest

from app.backend.src.core.config import Settings
from app.backend.src.core.errors import StorageError
from app.backend.src.core.record_store import InMemoryRecordStore
from app.backend.src.services.s3 import object_key_from_url

PUBLIC_BASE_URL = "https://images.example.com"


class FakeObjectStore:
    """Records presign and delete calls; keys in ``fail_keys`` refuse to delete."""

    def __init__(self, public_base_url: str = PUBLIC_BASE_URL) -> None:
        self.public_base_url = public_base_url
        self.blobs: set[str] = set()
        self.fail_keys: set[str] = set()
        self.delete_calls: list[list[str]] = []
        self.presign_calls: list[tuple[str, str, int]] = []

    def presign_put(self, key: str, *, content_type: str, expires_in: int) -> str:
        self.presign_calls.append((key, content_type, expires_in))
        return f"https://upload.example.com/{key}?X-Amz-Signature=test"

    def delete_keys(self, keys: Sequence[str]) -> None:
        keys = list(keys)
        self.delete_calls.append(keys)
        failed = [key for key in keys if key in self.fail_keys]
        for key in keys:
            if key not in self.fail_keys:
                self.blobs.discard(key)
        if failed:
            raise StorageError(
                "Failed to remove images from storage: " + ", ".join(failed),
                failed_keys=failed,
            )

    def key_for_url(self, url: str) -> str | None:
        return object_key_from_url(url, public_base_url=self.public_base_url)

    @property
    def deleted_keys(self) -> list[str]:
        return [key for call in self.delete_calls for key in call]


def image_url(key: str) -> str:
    return f"{PUBLIC_BASE_URL}/{key}"


@pytest.fixture()
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture()
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        s3_bucket="pet-memorials",
        public_base_url=PUBLIC_BASE_URL,
        upload_url_expires_seconds=360,
        batch_max_slugs=5,
        redis_enabled_flag=False,
    )
