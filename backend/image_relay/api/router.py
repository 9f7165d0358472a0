from __future__ import annotations

from fastapi import APIRouter

from image_relay.api.endpoints import health, images


api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(images.router, tags=["images"])
