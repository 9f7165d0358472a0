from __future__ import annotations

import tempfile
from functools import lru_cache
from pathlib import Path
from urllib.parse import unquote, urlsplit

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_UPLOAD_FOLDER = "foodie/products"
DEFAULT_ALLOWED_FORMATS = "jpg,png,jpeg"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Cloudinary ---
    cloud_name: str | None = Field(None, alias="CLOUD_NAME")
    api_key: str | None = Field(None, alias="API_KEY")
    api_secret: str | None = Field(None, alias="API_SECRET")
    # `cloudinary://<api_key>:<api_secret>@<cloud_name>`, as issued by the Cloudinary console.
    cloudinary_url: str | None = Field(None, alias="CLOUDINARY_URL")
    cloudinary_api_base_url: str = Field("https://api.cloudinary.com", alias="CLOUDINARY_API_BASE_URL")
    cloudinary_timeout_seconds: float = Field(60.0, alias="CLOUDINARY_TIMEOUT_SECONDS")

    upload_folder: str = Field(DEFAULT_UPLOAD_FOLDER, alias="UPLOAD_FOLDER")
    allowed_formats: str = Field(DEFAULT_ALLOWED_FORMATS, alias="ALLOWED_FORMATS")
    restrict_delete_to_folder: bool = Field(False, alias="RESTRICT_DELETE_TO_FOLDER")

    app_storage_dir: Path = Field(Path(tempfile.gettempdir()) / "image-relay", alias="APP_STORAGE_DIR")

    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(3000, alias="PORT")
    cors_origins: str | None = Field("*", alias="CORS_ORIGINS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    @field_validator("cloud_name", "api_key", "api_secret", "cloudinary_url", "cors_origins", mode="before")
    @classmethod
    def _blank_to_none(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("upload_folder", mode="before")
    @classmethod
    def _normalize_upload_folder(cls, v: object) -> object:
        if isinstance(v, str):
            folder = v.strip().strip("/")
            return folder or DEFAULT_UPLOAD_FOLDER
        return v

    @field_validator("allowed_formats", mode="before")
    @classmethod
    def _normalize_allowed_formats(cls, v: object) -> object:
        if isinstance(v, str):
            formats = [f.strip().lstrip(".").lower() for f in v.split(",") if f.strip()]
            return ",".join(formats) or DEFAULT_ALLOWED_FORMATS
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().upper() or "INFO"
        return v

    @model_validator(mode="after")
    def _apply_cloudinary_url(self) -> "Settings":
        # Explicit CLOUD_NAME / API_KEY / API_SECRET win over the URL form.
        if not self.cloudinary_url:
            return self
        parts = urlsplit(self.cloudinary_url)
        if parts.scheme != "cloudinary":
            raise ValueError("CLOUDINARY_URL must look like cloudinary://<api_key>:<api_secret>@<cloud_name>")
        # `hostname` lower-cases; cloud names are case-sensitive.
        cloud_name = parts.netloc.rpartition("@")[2]
        if not self.cloud_name and cloud_name:
            self.cloud_name = cloud_name
        if not self.api_key and parts.username:
            self.api_key = unquote(parts.username)
        if not self.api_secret and parts.password:
            self.api_secret = unquote(parts.password)
        return self

    @property
    def cloudinary_configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    @property
    def allowed_format_list(self) -> list[str]:
        return self.allowed_formats.split(",")

    @property
    def staging_dir(self) -> Path:
        return self.app_storage_dir / "staging"

    @property
    def cors_origin_list(self) -> list[str]:
        if not self.cors_origins:
            return []
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
