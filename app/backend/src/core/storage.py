"""Storage protocol for object-store interactions."""

from __future__ import annotations

from typing import Protocol, Sequence


class ObjectStore(Protocol):
    """Minimal protocol for blob storage backends."""

    def presign_put(self, key: str, *, content_type: str, expires_in: int) -> str:
        """Return a time-limited URL that allows a single PUT of ``key``."""

    def delete_keys(self, keys: Sequence[str]) -> None:
        """Delete ``keys``; raise ``StorageError`` if any deletion fails."""

    def key_for_url(self, url: str) -> str | None:
        """Map a public URL back to its object key, or ``None`` if unparseable."""
