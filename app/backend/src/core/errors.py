"""Domain errors raised by the memorial services.

Each error carries the HTTP status it maps to; the application registers a
single handler that renders them as ``{"error": message}``.
"""

from __future__ import annotations

from typing import Iterable


class MemorialError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MemorialError):
    """Missing or malformed input."""

    status_code = 400


class AuthError(MemorialError):
    """The edit key was not supplied."""

    status_code = 401


class ForbiddenError(MemorialError):
    """The supplied edit key does not match."""

    status_code = 403


class NotFoundError(MemorialError):
    status_code = 404


class ConflictError(MemorialError):
    """The slug is already taken."""

    status_code = 409


class StorageError(MemorialError):
    """A record-store or object-store operation failed.

    ``failed_keys`` lists the object keys that could not be removed when the
    failure came from a (possibly partial) bulk delete.
    """

    status_code = 500

    def __init__(self, message: str, *, failed_keys: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.failed_keys = list(failed_keys)


class ConfigurationError(MemorialError):
    """A required setting (bucket, public URL, ...) is missing."""

    status_code = 500


__all__ = [
    "MemorialError",
    "ValidationError",
    "AuthError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "StorageError",
    "ConfigurationError",
]
