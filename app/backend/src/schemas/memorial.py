"""Pydantic schemas for memorial records."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON with the browser client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MemorialCreate(CamelModel):
    """Payload for creating a memorial.

    ``slug`` and ``edit_key`` may be omitted, in which case the service mints
    them. Required-field checks happen in the service so that every client
    sees the same error message.
    """

    slug: str | None = None
    pet_name: str | None = None
    short_message: str = ""
    memorial_content: str = ""
    images: list[str] = []
    avatar: str | None = None
    edit_key: str | None = None


class MemorialUpdate(CamelModel):
    """Partial update; omitted fields keep their stored values.

    ``avatar`` sent as ``null`` removes the avatar, which is distinct from not
    sending it at all (see ``model_fields_set``).
    """

    pet_name: str | None = None
    short_message: str | None = None
    memorial_content: str | None = None
    images: list[str] | None = None
    avatar: str | None = None


class MemorialOut(CamelModel):
    """Public representation of a memorial. Never carries the edit key."""

    slug: str
    pet_name: str
    short_message: str = ""
    memorial_content: str = ""
    images: list[str] = []
    avatar: str | None = None
    created_at: str


class MemorialSummary(CamelModel):
    slug: str
    pet_name: str
    created_at: str


class MemorialCreated(CamelModel):
    """Returned once at creation; the only response containing the edit key."""

    success: bool = True
    slug: str
    edit_key: str


class MemorialListRequest(BaseModel):
    slugs: list[str]


__all__ = [
    "MemorialCreate",
    "MemorialCreated",
    "MemorialListRequest",
    "MemorialOut",
    "MemorialSummary",
    "MemorialUpdate",
]
