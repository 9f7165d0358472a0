from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from image_relay.api.deps import get_app_settings
from image_relay.core.config import Settings


router = APIRouter()


@router.get("/ping", response_class=PlainTextResponse)
async def ping() -> str:
    return "pong"


@router.get("/healthz")
async def healthz(settings: Settings = Depends(get_app_settings)) -> dict[str, object]:
    return {
        "status": "ok",
        "checks": {
            "media_store": "configured" if settings.cloudinary_configured else "unconfigured",
        },
    }
