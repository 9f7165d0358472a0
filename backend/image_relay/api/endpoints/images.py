from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile as StarletteUploadFile

from image_relay.api.deps import get_app_settings, get_media_store
from image_relay.core.config import Settings
from image_relay.schemas.images import ErrorOut, ImageReplaceOut
from image_relay.services.images import ImageStore, replace_image, staged_upload


logger = logging.getLogger(__name__)

router = APIRouter()

NO_FILE_ERROR = "No file uploaded"
UPLOAD_FAILED_ERROR = "Failed to upload new image"


@router.post(
    "/upload-new-image",
    response_model=ImageReplaceOut,
    responses={400: {"model": ErrorOut}, 500: {"model": ErrorOut}},
)
async def upload_new_image(
    file: UploadFile | str | None = File(None),
    old_public_id: str | None = Form(None, alias="oldPublicId"),
    settings: Settings = Depends(get_app_settings),
    store: ImageStore = Depends(get_media_store),
):
    """
    Upload a new image and delete the previous one (if `oldPublicId` is given).

    The delete is best effort: its outcome is logged and never turns the response into an error.
    """
    started = time.perf_counter()
    logger.info(
        "Request received for /upload-new-image (file: %s, oldPublicId: %s)",
        file.filename if isinstance(file, StarletteUploadFile) else None,
        old_public_id,
    )

    # A plain text `file` field carries no payload.
    if not isinstance(file, StarletteUploadFile) or not file.filename:
        logger.warning(NO_FILE_ERROR)
        return JSONResponse(status_code=400, content=ErrorOut(error=NO_FILE_ERROR).model_dump())

    try:
        async with staged_upload(file, settings.staging_dir) as path:
            result = await replace_image(
                store,
                source=path,
                folder=settings.upload_folder,
                filename=file.filename,
                content_type=file.content_type,
                old_public_id=old_public_id,
                restrict_delete_to_folder=settings.restrict_delete_to_folder,
            )
    except Exception:
        logger.exception("Error updating image")
        return JSONResponse(status_code=500, content=ErrorOut(error=UPLOAD_FAILED_ERROR).model_dump())
    finally:
        await file.close()

    logger.info("Response sent for /upload-new-image in %.0fms", (time.perf_counter() - started) * 1000)
    return ImageReplaceOut(image_url=result.asset.secure_url, public_id=result.asset.public_id)
