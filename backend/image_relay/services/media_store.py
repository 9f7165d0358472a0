from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from image_relay.core.config import Settings


logger = logging.getLogger(__name__)

# Parameters Cloudinary excludes from the signed string.
_UNSIGNED_PARAMS = frozenset({"file", "api_key", "resource_type", "cloud_name"})


class MediaStoreError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class UploadedAsset:
    secure_url: str
    public_id: str


@dataclass(frozen=True)
class DeleteOutcome:
    public_id: str
    result: str

    @property
    def confirmed(self) -> bool:
        return self.result == "ok"


def sign_params(params: dict[str, Any], api_secret: str) -> str:
    """
    Cloudinary request signature.

    Parameters are sorted by name and serialised as `key=value` pairs joined by `&`
    (list values comma-joined, empty values dropped); the API secret is appended and the
    result is SHA-1 hashed.
    """
    pairs: list[str] = []
    for key in sorted(params):
        if key in _UNSIGNED_PARAMS:
            continue
        value = params[key]
        if isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        if value is None or value == "":
            continue
        pairs.append(f"{key}={value}")
    to_sign = "&".join(pairs) + api_secret
    return hashlib.sha1(to_sign.encode("utf-8")).hexdigest()


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.text[:500]


class MediaStore:
    """Thin Cloudinary client: signed upload and destroy over a shared `httpx.AsyncClient`."""

    def __init__(self, settings: Settings, *, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout=settings.cloudinary_timeout_seconds),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _endpoint(self, action: str) -> str:
        base = self._settings.cloudinary_api_base_url.rstrip("/")
        return f"{base}/v1_1/{self._settings.cloud_name}/image/{action}"

    def _signed(self, params: dict[str, Any]) -> dict[str, str]:
        api_key = self._settings.api_key
        api_secret = self._settings.api_secret
        if not (self._settings.cloud_name and api_key and api_secret):
            raise MediaStoreError("Cloudinary credentials are not configured (CLOUD_NAME, API_KEY, API_SECRET)")

        params = {**params, "timestamp": int(time.time())}
        data = {k: ",".join(v) if isinstance(v, (list, tuple)) else str(v) for k, v in params.items()}
        data["api_key"] = api_key
        data["signature"] = sign_params(params, api_secret)
        return data

    async def _post(self, action: str, *, data: dict[str, str], files: dict[str, Any] | None = None) -> dict[str, Any]:
        url = self._endpoint(action)
        try:
            r = await self._client.post(url, data=data, files=files)
        except httpx.HTTPError as e:
            raise MediaStoreError(f"Cloudinary {action} request failed: {e.__class__.__name__}: {e}") from e

        logger.debug("Cloudinary %s responded %s", action, r.status_code)
        if r.status_code >= 400:
            raise MediaStoreError(
                f"Cloudinary {action} failed ({r.status_code}): {_error_message(r)}",
                status_code=r.status_code,
            )
        try:
            payload = r.json()
        except ValueError as e:
            raise MediaStoreError(f"Cloudinary {action} returned a non-JSON response", status_code=r.status_code) from e
        if not isinstance(payload, dict):
            raise MediaStoreError(f"Unexpected Cloudinary {action} response shape", status_code=r.status_code)
        return payload

    async def upload(
        self,
        path: Path,
        *,
        folder: str,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> UploadedAsset:
        data = self._signed({"folder": folder, "allowed_formats": self._settings.allowed_format_list})
        content = path.read_bytes()
        files = {"file": (filename or path.name, content, content_type or "application/octet-stream")}

        payload = await self._post("upload", data=data, files=files)
        secure_url = payload.get("secure_url")
        public_id = payload.get("public_id")
        if not secure_url or not public_id:
            raise MediaStoreError("Cloudinary upload response missing 'secure_url' or 'public_id'")
        return UploadedAsset(secure_url=str(secure_url), public_id=str(public_id))

    async def destroy(self, public_id: str) -> DeleteOutcome:
        data = self._signed({"public_id": public_id})
        payload = await self._post("destroy", data=data)
        result = payload.get("result")
        return DeleteOutcome(public_id=public_id, result=str(result) if result is not None else "unknown")
