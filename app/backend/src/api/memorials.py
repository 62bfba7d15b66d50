"""Memorial record endpoints."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, Response, status

from app.backend.src.core.config import Settings, get_settings
from app.backend.src.core.record_store import RecordStore, get_record_store
from app.backend.src.core.storage import ObjectStore
from app.backend.src.schemas.memorial import (
    MemorialCreate,
    MemorialCreated,
    MemorialListRequest,
    MemorialOut,
    MemorialSummary,
    MemorialUpdate,
)
from app.backend.src.services import memorials as memorial_service
from app.backend.src.services.s3 import get_object_store

router = APIRouter(tags=["memorials"])

EditKeyHeader = Annotated[str | None, Header(alias="X-Edit-Key")]


@router.post(
    "/memorial",
    response_model=MemorialCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_memorial(
    payload: MemorialCreate,
    store: Annotated[RecordStore, Depends(get_record_store)],
) -> dict[str, Any]:
    """Create a memorial; the response is the only place the edit key appears."""

    return memorial_service.create_memorial(store, payload)


@router.get(
    "/memorial/{slug}",
    response_model=MemorialOut,
    response_model_exclude_none=True,
)
def read_memorial(
    slug: str,
    store: Annotated[RecordStore, Depends(get_record_store)],
) -> dict[str, Any]:
    return memorial_service.get_memorial(store, slug)


@router.post("/memorials/list", response_model=list[MemorialSummary])
def list_memorials(
    payload: MemorialListRequest,
    store: Annotated[RecordStore, Depends(get_record_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> list[dict[str, Any]]:
    """Return summaries for the requested slugs, skipping unknown ones."""

    return memorial_service.summarize_memorials(
        store, payload.slugs, limit=settings.batch_max_slugs
    )


@router.put(
    "/memorial/{slug}",
    response_model=MemorialOut,
    response_model_exclude_none=True,
)
def update_memorial(
    slug: str,
    payload: MemorialUpdate,
    store: Annotated[RecordStore, Depends(get_record_store)],
    object_store: Annotated[ObjectStore, Depends(get_object_store)],
    x_edit_key: EditKeyHeader = None,
) -> dict[str, Any]:
    """Update a memorial, removing images the new version no longer uses."""

    return memorial_service.update_memorial(
        store, object_store, slug, x_edit_key, payload
    )


@router.delete(
    "/memorial/{slug}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def delete_memorial(
    slug: str,
    store: Annotated[RecordStore, Depends(get_record_store)],
    object_store: Annotated[ObjectStore, Depends(get_object_store)],
    x_edit_key: EditKeyHeader = None,
) -> Response:
    """Delete a memorial and all of its images."""

    memorial_service.delete_memorial(store, object_store, slug, x_edit_key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
