from __future__ import annotations

import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from fastapi import UploadFile

from image_relay.services.media_store import DeleteOutcome, UploadedAsset


logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


class ImageStore(Protocol):
    async def upload(
        self,
        path: Path,
        *,
        folder: str,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> UploadedAsset: ...

    async def destroy(self, public_id: str) -> DeleteOutcome: ...


@dataclass(frozen=True)
class ImageReplacement:
    asset: UploadedAsset
    previous: DeleteOutcome | None


@asynccontextmanager
async def staged_upload(file: UploadFile, directory: Path) -> AsyncIterator[Path]:
    """
    Copy an incoming upload to a uniquely named file under `directory`.

    The file is removed when the block exits, whatever the outcome.
    """
    directory.mkdir(parents=True, exist_ok=True)
    suffix = Path(file.filename or "").suffix.lower()
    path = directory / f"{uuid.uuid4().hex}{suffix}"
    try:
        with path.open("wb") as fh:
            while chunk := await file.read(_CHUNK_SIZE):
                fh.write(chunk)
        yield path
    finally:
        path.unlink(missing_ok=True)


def _outside_folder(public_id: str, folder: str) -> bool:
    return not public_id.startswith(f"{folder}/")


async def _delete_previous(
    store: ImageStore,
    public_id: str,
    *,
    folder: str,
    restrict_to_folder: bool,
) -> DeleteOutcome:
    if _outside_folder(public_id, folder):
        # Callers are not verified to own the asset they ask us to delete.
        if restrict_to_folder:
            logger.warning(
                "Refusing to delete image outside upload folder (publicId: %s, folder: %s)",
                public_id,
                folder,
                extra={"public_id": public_id, "folder": folder},
            )
            return DeleteOutcome(public_id=public_id, result="skipped")
        logger.warning(
            "Deleting image outside upload folder (publicId: %s, folder: %s)",
            public_id,
            folder,
            extra={"public_id": public_id, "folder": folder},
        )

    started = time.perf_counter()
    try:
        outcome = await store.destroy(public_id)
    except Exception as e:
        logger.warning(
            "Error deleting image (publicId: %s) from Cloudinary: %s",
            public_id,
            e,
            extra={"public_id": public_id, "status_code": getattr(e, "status_code", None)},
        )
        return DeleteOutcome(public_id=public_id, result="error")

    duration_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "Old image (publicId: %s) delete requested in %.0fms. Result: %s",
        public_id,
        duration_ms,
        outcome.result,
        extra={"public_id": public_id, "result": outcome.result, "duration_ms": round(duration_ms, 2)},
    )
    if not outcome.confirmed:
        logger.warning(
            "Cloudinary did not confirm deletion of image (publicId: %s). Result: %s",
            public_id,
            outcome.result,
            extra={"public_id": public_id, "result": outcome.result},
        )
    return outcome


async def replace_image(
    store: ImageStore,
    *,
    source: Path,
    folder: str,
    filename: str | None = None,
    content_type: str | None = None,
    old_public_id: str | None = None,
    restrict_delete_to_folder: bool = False,
) -> ImageReplacement:
    """
    Upload `source` into `folder`, then best-effort delete `old_public_id`.

    Upload errors propagate as `MediaStoreError`; the delete step never raises and only runs
    after the upload has completed.
    """
    started = time.perf_counter()
    asset = await store.upload(source, folder=folder, filename=filename, content_type=content_type)
    duration_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "New image uploaded to Cloudinary in %.0fms. Secure URL: %s, Public ID: %s",
        duration_ms,
        asset.secure_url,
        asset.public_id,
        extra={"public_id": asset.public_id, "duration_ms": round(duration_ms, 2)},
    )

    previous: DeleteOutcome | None = None
    if old_public_id:
        previous = await _delete_previous(
            store,
            old_public_id,
            folder=folder,
            restrict_to_folder=restrict_delete_to_folder,
        )
    return ImageReplacement(asset=asset, previous=previous)
