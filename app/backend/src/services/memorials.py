"""Service layer for the memorial record lifecycle.

Records live in a key/value ``RecordStore`` keyed by slug; the images they
reference live in an ``ObjectStore``. The ``images`` and ``avatar`` fields of
a stored record are the only source of truth for which blobs are live, so
every path that drops a reference deletes the blob *before* the record change
is committed. A failed blob deletion aborts the operation and leaves the
stored record untouched.
"""

from __future__ import annotations

import hmac
import re
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

import structlog

from app.backend.src.core.errors import (
    AuthError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.backend.src.core.record_store import RecordStore
from app.backend.src.core.storage import ObjectStore
from app.backend.src.schemas.memorial import MemorialCreate, MemorialUpdate
from app.backend.src.services.metrics import (
    memorial_blob_delete_failures_total,
    memorial_blobs_deleted_total,
    memorial_operations_total,
)

LOGGER = structlog.get_logger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
SLUG_MAX_LENGTH = 100
SLUG_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
SLUG_SUFFIX_LENGTH = 6
GENERATED_SLUG_ATTEMPTS = 3

EDIT_KEY_FIELD = "editKey"
SUMMARY_FIELDS = ("slug", "petName", "createdAt")


def _utcnow_iso() -> str:
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def _public(record: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``record`` without the edit key."""

    return {key: value for key, value in record.items() if key != EDIT_KEY_FIELD}


def _count(outcome: str, operation: str) -> None:
    memorial_operations_total.labels(operation=operation, outcome=outcome).inc()


def generate_slug(pet_name: str) -> str:
    """Return ``<pet-name>-<random suffix>`` restricted to the slug alphabet."""

    base = re.sub(r"[^a-z0-9]+", "-", pet_name.lower()).strip("-") or "memorial"
    base = base[: SLUG_MAX_LENGTH - SLUG_SUFFIX_LENGTH - 1].rstrip("-")
    suffix = "".join(
        secrets.choice(SLUG_SUFFIX_ALPHABET) for _ in range(SLUG_SUFFIX_LENGTH)
    )
    return f"{base}-{suffix}"


def generate_edit_key() -> str:
    return secrets.token_urlsafe(32)


def is_valid_slug(slug: str) -> bool:
    return len(slug) <= SLUG_MAX_LENGTH and bool(SLUG_PATTERN.match(slug))


def _edit_key_matches(stored: object, supplied: str) -> bool:
    if not isinstance(stored, str):
        return False
    return hmac.compare_digest(stored.encode("utf-8"), supplied.encode("utf-8"))


def referenced_urls(record: Mapping[str, Any]) -> list[str]:
    """Return every blob URL ``record`` points at, images first, de-duplicated."""

    urls: list[str] = [url for url in record.get("images") or [] if url]
    avatar = record.get("avatar")
    if avatar:
        urls.append(avatar)
    return list(dict.fromkeys(urls))


def superseded_urls(
    previous: Mapping[str, Any], updated: Mapping[str, Any]
) -> list[str]:
    """Return URLs referenced by ``previous`` but no longer by ``updated``."""

    kept = set(referenced_urls(updated))
    return [url for url in referenced_urls(previous) if url not in kept]


def _object_keys(object_store: ObjectStore, urls: Iterable[str], *, slug: str) -> list[str]:
    keys: list[str] = []
    for url in urls:
        key = object_store.key_for_url(url)
        if key is None:
            LOGGER.warning("blob_url_unparseable", slug=slug, url=url)
            continue
        keys.append(key)
    return list(dict.fromkeys(keys))


def _delete_blobs(
    object_store: ObjectStore, urls: Iterable[str], *, slug: str, operation: str
) -> None:
    keys = _object_keys(object_store, urls, slug=slug)
    if not keys:
        return

    try:
        object_store.delete_keys(keys)
    except StorageError as exc:
        memorial_blob_delete_failures_total.inc(len(exc.failed_keys) or len(keys))
        LOGGER.error(
            "memorial_blob_delete_failed",
            slug=slug,
            operation=operation,
            failed_keys=exc.failed_keys,
            error=exc.message,
        )
        raise

    memorial_blobs_deleted_total.inc(len(keys))
    LOGGER.info("memorial_blobs_deleted", slug=slug, operation=operation, keys=keys)


def _authorize(record: Mapping[str, Any], edit_key: str) -> None:
    if not _edit_key_matches(record.get(EDIT_KEY_FIELD), edit_key):
        raise ForbiddenError("Forbidden. Invalid edit key.")


def _require_edit_key(edit_key: str | None) -> str:
    if not edit_key:
        raise AuthError("Authentication required. Edit key missing.")
    return edit_key


def create_memorial(store: RecordStore, payload: MemorialCreate) -> dict[str, Any]:
    """Persist a new memorial and return ``{"success", "slug", "editKey"}``.

    The edit key is returned here and nowhere else.
    """

    pet_name = payload.pet_name or ""
    if not pet_name.strip():
        raise ValidationError("Slug, Pet Name, and Edit Key are required.")

    if payload.edit_key is not None and not payload.edit_key.strip():
        raise ValidationError("Slug, Pet Name, and Edit Key are required.")
    edit_key = payload.edit_key or generate_edit_key()

    if payload.slug is not None:
        if not payload.slug.strip():
            raise ValidationError("Slug, Pet Name, and Edit Key are required.")
        if not is_valid_slug(payload.slug):
            raise ValidationError(
                "Slug may only contain lowercase letters, numbers and hyphens."
            )
        candidates = [payload.slug]
    else:
        candidates = [generate_slug(pet_name) for _ in range(GENERATED_SLUG_ATTEMPTS)]

    record: dict[str, Any] = {
        "slug": "",
        "petName": pet_name,
        "shortMessage": payload.short_message,
        "memorialContent": payload.memorial_content,
        "images": list(payload.images),
        "createdAt": _utcnow_iso(),
        EDIT_KEY_FIELD: edit_key,
    }
    if payload.avatar:
        record["avatar"] = payload.avatar

    for slug in candidates:
        record["slug"] = slug
        if store.put_if_absent(slug, record):
            _count("success", "create")
            LOGGER.info("memorial_created", slug=slug, images=len(record["images"]))
            return {"success": True, "slug": slug, EDIT_KEY_FIELD: edit_key}
        LOGGER.info("memorial_slug_taken", slug=slug)

    _count("conflict", "create")
    raise ConflictError(f'Slug "{candidates[-1]}" already exists.')


def get_memorial(store: RecordStore, slug: str) -> dict[str, Any]:
    """Return the public view of a memorial."""

    record = store.get(slug)
    if record is None:
        raise NotFoundError("Memorial not found.")
    return _public(record)


def summarize_memorials(
    store: RecordStore, slugs: Iterable[str], *, limit: int | None = None
) -> list[dict[str, Any]]:
    """Return ``{slug, petName, createdAt}`` for each slug that exists.

    Unknown or unreadable slugs are dropped without error.
    """

    unique_slugs = list(dict.fromkeys(slug for slug in slugs if slug))
    if limit is not None and len(unique_slugs) > limit:
        raise ValidationError(f"At most {limit} memorials can be listed at once.")

    summaries: list[dict[str, Any]] = []
    for slug, record in zip(unique_slugs, store.get_many(unique_slugs)):
        if record is None:
            continue
        summary = {field: record.get(field) for field in SUMMARY_FIELDS}
        if not all(isinstance(value, str) and value for value in summary.values()):
            LOGGER.warning("memorial_summary_incomplete", slug=slug)
            continue
        summaries.append(summary)
    return summaries


def _merge(stored: Mapping[str, Any], changes: MemorialUpdate) -> dict[str, Any]:
    merged = dict(stored)
    if changes.pet_name is not None:
        if not changes.pet_name.strip():
            raise ValidationError("Pet Name cannot be empty.")
        merged["petName"] = changes.pet_name
    if changes.short_message is not None:
        merged["shortMessage"] = changes.short_message
    if changes.memorial_content is not None:
        merged["memorialContent"] = changes.memorial_content
    if changes.images is not None:
        merged["images"] = list(changes.images)
    if "avatar" in changes.model_fields_set:
        if changes.avatar:
            merged["avatar"] = changes.avatar
        else:
            merged.pop("avatar", None)
    return merged


def update_memorial(
    store: RecordStore,
    object_store: ObjectStore,
    slug: str,
    edit_key: str | None,
    changes: MemorialUpdate,
) -> dict[str, Any]:
    """Apply a partial update, deleting images the update no longer references."""

    edit_key = _require_edit_key(edit_key)
    stored = store.get(slug)
    if stored is None:
        raise NotFoundError("Memorial not found.")
    try:
        _authorize(stored, edit_key)
    except ForbiddenError:
        _count("forbidden", "update")
        LOGGER.warning("memorial_update_forbidden", slug=slug)
        raise

    merged = _merge(stored, changes)
    removed = superseded_urls(stored, merged)
    try:
        _delete_blobs(object_store, removed, slug=slug, operation="update")
    except StorageError as exc:
        _count("storage_error", "update")
        raise StorageError(
            f"Failed to update memorial. {exc.message}", failed_keys=exc.failed_keys
        ) from exc

    store.put(slug, merged)
    _count("success", "update")
    LOGGER.info("memorial_updated", slug=slug, removed_images=len(removed))
    return _public(merged)


def delete_memorial(
    store: RecordStore,
    object_store: ObjectStore,
    slug: str,
    edit_key: str | None,
) -> None:
    """Delete a memorial's images and then the memorial itself.

    Deleting an absent memorial succeeds. If any image cannot be removed the
    record is kept, so the request can be retried.
    """

    edit_key = _require_edit_key(edit_key)
    stored = store.get(slug)
    if stored is None:
        _count("absent", "delete")
        LOGGER.info("memorial_delete_absent", slug=slug)
        return
    try:
        _authorize(stored, edit_key)
    except ForbiddenError:
        _count("forbidden", "delete")
        LOGGER.warning("memorial_delete_forbidden", slug=slug)
        raise

    try:
        _delete_blobs(object_store, referenced_urls(stored), slug=slug, operation="delete")
    except StorageError as exc:
        _count("storage_error", "delete")
        raise StorageError(
            f"Failed to delete memorial from storage. {exc.message}",
            failed_keys=exc.failed_keys,
        ) from exc

    store.delete(slug)
    _count("success", "delete")
    LOGGER.info("memorial_deleted", slug=slug)


__all__ = [
    "create_memorial",
    "delete_memorial",
    "generate_edit_key",
    "generate_slug",
    "get_memorial",
    "is_valid_slug",
    "referenced_urls",
    "summarize_memorials",
    "superseded_urls",
    "update_memorial",
]
