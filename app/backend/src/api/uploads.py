"""Direct-to-storage upload endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.backend.src.core.config import Settings, get_settings
from app.backend.src.core.storage import ObjectStore
from app.backend.src.schemas.upload import UploadUrlRequest, UploadUrlResponse
from app.backend.src.services.s3 import get_object_store
from app.backend.src.services.uploads import issue_upload_url

router = APIRouter(tags=["uploads"])


@router.post("/upload-url", response_model=UploadUrlResponse)
def create_upload_url(
    payload: UploadUrlRequest,
    object_store: Annotated[ObjectStore, Depends(get_object_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict[str, str]:
    """Return a presigned PUT URL and the public URL the image will have."""

    return issue_upload_url(
        payload.filename,
        payload.content_type,
        object_store=object_store,
        settings=settings,
    )
