"""Presigned upload URL issuance."""

from __future__ import annotations

import re
from uuid import uuid4

import structlog

from app.backend.src.core.config import Settings, get_settings
from app.backend.src.core.errors import (
    ConfigurationError,
    StorageError,
    ValidationError,
)
from app.backend.src.core.storage import ObjectStore
from app.backend.src.services.metrics import upload_urls_issued_total

LOGGER = structlog.get_logger(__name__)

DEFAULT_EXTENSION = "jpg"


def file_extension(filename: str) -> str:
    """Return a lowercase alphanumeric extension for ``filename``."""

    if "." not in filename:
        return DEFAULT_EXTENSION
    extension = re.sub(r"[^a-z0-9]", "", filename.rsplit(".", 1)[-1].lower())
    return extension or DEFAULT_EXTENSION


def build_object_key(filename: str, *, prefix: str = "") -> str:
    """Return a unique object key that does not embed the original filename."""

    normalized_prefix = prefix.strip("/")
    key = f"{uuid4().hex}.{file_extension(filename)}"
    return f"{normalized_prefix}/{key}" if normalized_prefix else key


def issue_upload_url(
    filename: str | None,
    content_type: str | None,
    *,
    object_store: ObjectStore,
    settings: Settings | None = None,
) -> dict[str, str]:
    """Return ``{"uploadUrl", "publicUrl"}`` for a single direct upload."""

    if not (filename or "").strip() or not (content_type or "").strip():
        raise ValidationError("Filename and contentType are required.")

    settings = settings or get_settings()
    if not settings.s3_bucket or not settings.public_base_url:
        LOGGER.error(
            "upload_url_config_missing",
            bucket_configured=bool(settings.s3_bucket),
            public_base_url_configured=bool(settings.public_base_url),
        )
        raise ConfigurationError("Image uploads are not available right now.")

    key = build_object_key(filename, prefix=settings.s3_key_prefix)
    try:
        upload_url = object_store.presign_put(
            key,
            content_type=content_type.strip(),
            expires_in=settings.upload_url_expires_seconds,
        )
    except StorageError as exc:
        LOGGER.error("upload_url_sign_failed", key=key, error=exc.message)
        raise
    public_url = f"{settings.public_base_url.rstrip('/')}/{key}"

    upload_urls_issued_total.inc()
    LOGGER.info("upload_url_issued", key=key, content_type=content_type)
    return {"uploadUrl": upload_url, "publicUrl": public_url}


__all__ = ["build_object_key", "file_extension", "issue_upload_url"]
