from __future__ import annotations

from fastapi import Request

from image_relay.core.config import Settings
from image_relay.services.images import ImageStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_media_store(request: Request) -> ImageStore:
    return request.app.state.media_store
