"""Upload schemas."""

from pydantic import BaseModel, ConfigDict, Field


class UploadUrlRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: str | None = None
    content_type: str | None = Field(default=None, alias="contentType")


class UploadUrlResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    upload_url: str = Field(alias="uploadUrl")
    public_url: str = Field(alias="publicUrl")
