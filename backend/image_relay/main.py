from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from image_relay.api.router import api_router
from image_relay.core.config import Settings, get_settings
from image_relay.services.media_store import MediaStore


logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    media_store = MediaStore(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        settings.staging_dir.mkdir(parents=True, exist_ok=True)
        if not settings.cloudinary_configured:
            logger.warning("Cloudinary credentials missing; uploads will fail until CLOUD_NAME, API_KEY and API_SECRET are set")
        logger.info("Upload New Image API running on port %s (folder: %s)", settings.port, settings.upload_folder)
        try:
            yield
        finally:
            await media_store.aclose()

    app = FastAPI(title="Upload New Image API", version="1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.media_store = media_store

    origins = settings.cors_origin_list
    if origins:
        wildcard = "*" in origins
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if wildcard else origins,
            allow_credentials=not wildcard,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api_router)
    return app
