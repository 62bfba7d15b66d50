"""Minimal S3 client helpers."""

from __future__ import annotations

import re
import urllib.parse
from typing import Sequence

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
import structlog

from app.backend.src.core.config import get_settings
from app.backend.src.core.errors import ConfigurationError, StorageError

LOGGER = structlog.get_logger(__name__)

# S3 (and R2) accept at most this many keys per DeleteObjects request.
DELETE_BATCH_SIZE = 1000


def _bucket() -> str:
    bucket = get_settings().s3_bucket
    if not bucket:
        LOGGER.error("s3_bucket_not_configured")
        raise ConfigurationError("Storage bucket is not configured.")
    return bucket


def _client() -> BaseClient:
    settings = get_settings()
    addressing_style = "path" if settings.s3_endpoint_url else "virtual"
    client_kwargs: dict[str, object] = {
        "config": Config(
            signature_version="s3v4",
            s3={"addressing_style": addressing_style},
        ),
        "region_name": settings.aws_region,
    }

    if settings.s3_endpoint_url:
        client_kwargs["endpoint_url"] = settings.s3_endpoint_url

    if settings.aws_access_key_id and settings.aws_secret_access_key:
        client_kwargs["aws_access_key_id"] = settings.aws_access_key_id
        client_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key

    return boto3.client("s3", **client_kwargs)


def sanitize_object_key(key: str) -> str:
    """Minimal, safe normalization that preserves exact S3 key semantics."""

    if not key:
        return ""

    sanitized = str(key).strip().strip('"').strip("'")
    sanitized = urllib.parse.unquote(sanitized)
    sanitized = re.sub(r"/+", "/", sanitized)
    if sanitized.startswith("/"):
        sanitized = sanitized[1:]
    return sanitized


def object_key_from_url(url: str, *, public_base_url: str | None = None) -> str | None:
    """Return the object key a public URL points at.

    When ``public_base_url`` is configured only URLs under it map to a key,
    resolved relative to the base so a base with a path component
    (``https://cdn.example.com/pets``) works. Without a base the URL path is
    used. ``None`` means the URL does not point into the bucket.
    """

    if not isinstance(url, str) or not url.strip():
        return None

    candidate = url.strip()
    if public_base_url:
        base = public_base_url.rstrip("/") + "/"
        if not candidate.startswith(base):
            return None
        return sanitize_object_key(candidate[len(base):].split("?", 1)[0]) or None

    try:
        parsed = urllib.parse.urlsplit(candidate)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return sanitize_object_key(parsed.path) or None


def generate_presigned_upload_url(
    key: str,
    *,
    content_type: str,
    expires_in: int = 360,
) -> str:
    """Generate a presigned PUT URL bound to ``content_type``."""

    bucket = _bucket()
    sanitized_key = sanitize_object_key(key)
    params = {"Bucket": bucket, "Key": sanitized_key, "ContentType": content_type}

    try:
        client = _client()
        url = client.generate_presigned_url(
            "put_object",
            Params=params,
            ExpiresIn=expires_in,
        )
    except (BotoCoreError, NoCredentialsError, ClientError) as exc:
        LOGGER.error("s3_presign_failed", bucket=bucket, key=sanitized_key, error=str(exc))
        raise StorageError("Unable to prepare the upload.") from exc

    LOGGER.info("s3_presign_put", bucket=bucket, key=sanitized_key, expires_in=expires_in)
    return url


def delete_objects(keys: Sequence[str]) -> None:
    """Delete ``keys`` from the bucket, raising if any of them fail.

    Partial failures are reported with every key that was not removed, so a
    caller can retry without guessing which blobs still exist.
    """

    unique_keys = list(dict.fromkeys(key for key in keys if key))
    if not unique_keys:
        return

    bucket = _bucket()
    client = _client()
    failures: list[str] = []
    messages: list[str] = []

    for start in range(0, len(unique_keys), DELETE_BATCH_SIZE):
        batch = unique_keys[start : start + DELETE_BATCH_SIZE]
        try:
            response = client.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
        except (BotoCoreError, NoCredentialsError, ClientError) as exc:
            LOGGER.error("s3_delete_request_failed", bucket=bucket, keys=batch, error=str(exc))
            failures.extend(batch)
            messages.append(str(exc))
            continue

        for error in response.get("Errors") or []:
            failed_key = error.get("Key", "")
            failures.append(failed_key)
            messages.append(f"{failed_key}: {error.get('Message') or error.get('Code') or 'unknown error'}")

    if failures:
        LOGGER.error("s3_delete_failed", bucket=bucket, failed_keys=failures)
        raise StorageError(
            "Failed to remove images from storage: " + ", ".join(messages),
            failed_keys=failures,
        )

    LOGGER.info("s3_objects_deleted", bucket=bucket, count=len(unique_keys))


class S3ObjectStore:
    """Object store bound to the configured S3-compatible bucket."""

    def __init__(self, *, public_base_url: str | None = None) -> None:
        self.public_base_url = public_base_url

    def presign_put(self, key: str, *, content_type: str, expires_in: int) -> str:
        return generate_presigned_upload_url(
            key, content_type=content_type, expires_in=expires_in
        )

    def delete_keys(self, keys: Sequence[str]) -> None:
        delete_objects(keys)

    def key_for_url(self, url: str) -> str | None:
        return object_key_from_url(url, public_base_url=self.public_base_url)


def get_object_store() -> S3ObjectStore:
    """Return an object store using the current settings."""

    return S3ObjectStore(public_base_url=get_settings().public_base_url)


__all__ = [
    "DELETE_BATCH_SIZE",
    "S3ObjectStore",
    "delete_objects",
    "generate_presigned_upload_url",
    "get_object_store",
    "object_key_from_url",
    "sanitize_object_key",
]
