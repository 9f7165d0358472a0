from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ImageReplaceOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "New image uploaded successfully"
    image_url: str = Field(..., alias="imageUrl", description="HTTPS URL of the new asset")
    public_id: str = Field(
        ...,
        alias="publicId",
        description="Provider identifier; send it back as `oldPublicId` on the next replace",
    )


class ErrorOut(BaseModel):
    error: str
