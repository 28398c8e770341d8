from __future__ import annotations

import os
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_app_root() -> Path:
    """
    Default application root.

    Docker images mount the app at /app; local/dev runs use the current working directory.
    """
    env = os.environ.get("APP_ROOT")
    if env:
        return Path(env).resolve()
    if Path("/app").exists():
        return Path("/app").resolve()
    return Path.cwd().resolve()


class PublicConfig(BaseSettings):
    """Everything that may be logged or shown in a config report. Env vars override `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- core paths ---
    app_root: Path = Field(default_factory=_default_app_root, alias="APP_ROOT")
    # Runtime-only state directory (SQLite DB). If unset, defaults to "<APP_ROOT>/_state".
    state_dir: Path | None = Field(default=None, alias="VIDTUBE_STATE_DIR")
    db_name: str = Field(default="vidtube.db", alias="VIDTUBE_DB_NAME")
    log_dir: Path = Field(
        default_factory=lambda: (Path.cwd() / "logs").resolve(), alias="VIDTUBE_LOG_DIR"
    )
    # Multipart uploads are staged here before being pushed to the media host.
    # If unset, defaults to "<APP_ROOT>/public/temp".
    temp_dir: Path | None = Field(default=None, alias="VIDTUBE_TEMP_DIR")

    # --- web server ---
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    cors_origins: str = Field(default="", alias="CORS_ORIGINS")

    # --- logging ---
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_max_bytes: int = Field(default=5 * 1024 * 1024, alias="LOG_MAX_BYTES")
    log_backup_count: int = Field(default=3, alias="LOG_BACKUP_COUNT")

    # --- auth/session behavior (non-secret toggles) ---
    jwt_alg: str = Field(default="HS256", alias="JWT_ALG")
    access_token_minutes: int = Field(
        default=15, validation_alias=AliasChoices("ACCESS_TOKEN_MINUTES", "ACCESS_TOKEN_EXPIRY_MINUTES")
    )
    refresh_token_days: int = Field(
        default=10, validation_alias=AliasChoices("REFRESH_TOKEN_DAYS", "REFRESH_TOKEN_EXPIRY_DAYS")
    )
    cookie_secure: bool = Field(default=True, alias="COOKIE_SECURE")
    cookie_samesite: str = Field(default="lax", alias="COOKIE_SAMESITE")  # lax|strict|none

    # --- uploads / media host ---
    max_upload_mb: int = Field(default=20, alias="MAX_UPLOAD_MB")
    cloudinary_cloud_name: str = Field(default="", alias="CLOUDINARY_CLOUD_NAME")
    cloudinary_upload_url: str = Field(
        default="https://api.cloudinary.com/v1_1", alias="CLOUDINARY_UPLOAD_URL"
    )
    upload_timeout_sec: float = Field(default=30.0, alias="UPLOAD_TIMEOUT_SEC")
    upload_retries: int = Field(default=2, alias="UPLOAD_RETRIES")

    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in (self.cors_origins or "").split(",") if o.strip()]

    def resolved_state_dir(self) -> Path:
        return Path(self.state_dir or (Path(self.app_root) / "_state")).resolve()

    def resolved_temp_dir(self) -> Path:
        return Path(self.temp_dir or (Path(self.app_root) / "public" / "temp")).resolve()
