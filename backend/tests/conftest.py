from __future__ import annotations

import itertools
import sys
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from image_relay.api.deps import get_media_store  # noqa: E402
from image_relay.core.config import Settings, get_settings  # noqa: E402
from image_relay.main import create_app  # noqa: E402
from image_relay.services.media_store import DeleteOutcome, UploadedAsset  # noqa: E402


class FakeMediaStore:
    """Records calls in order; each upload returns a fresh public id."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.staged_paths: list[Path] = []
        self.uploaded_bytes: list[bytes] = []
        self.upload_error: Exception | None = None
        self.destroy_result = "ok"
        self.destroy_error: Exception | None = None
        self._ids = itertools.count(1)

    async def upload(self, path: Path, *, folder: str, filename=None, content_type=None) -> UploadedAsset:
        self.calls.append(("upload", folder))
        self.staged_paths.append(path)
        self.uploaded_bytes.append(path.read_bytes())
        if self.upload_error is not None:
            raise self.upload_error
        public_id = f"{folder}/img-{next(self._ids)}"
        return UploadedAsset(secure_url=f"https://res.cloudinary.test/demo/image/upload/{public_id}.png", public_id=public_id)

    async def destroy(self, public_id: str) -> DeleteOutcome:
        self.calls.append(("destroy", public_id))
        if self.destroy_error is not None:
            raise self.destroy_error
        return DeleteOutcome(public_id=public_id, result=self.destroy_result)


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Iterator[Settings]:
    monkeypatch.setenv("CLOUD_NAME", "demo")
    monkeypatch.setenv("API_KEY", "123456789012345")
    monkeypatch.setenv("API_SECRET", "test-secret")
    monkeypatch.setenv("APP_STORAGE_DIR", str(tmp_path / "storage"))
    monkeypatch.delenv("CLOUDINARY_URL", raising=False)
    monkeypatch.delenv("UPLOAD_FOLDER", raising=False)
    monkeypatch.delenv("RESTRICT_DELETE_TO_FOLDER", raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def media_store() -> FakeMediaStore:
    return FakeMediaStore()


@pytest.fixture
def app(settings: Settings, media_store: FakeMediaStore) -> FastAPI:
    app = create_app(settings)
    app.dependency_overrides[get_media_store] = lambda: media_store
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    await app.state.media_store.aclose()
