from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class SecretConfig(BaseSettings):
    """
    Sensitive config.

    This module is safe to commit: it contains *no* secrets, only loading logic.
    Real secret values should come from:
      - environment variables (preferred in production)
      - optional local `.env.secrets` file (developer convenience)
    """

    model_config = SettingsConfigDict(
        env_file=".env.secrets",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- token signing secrets (access and refresh must differ) ---
    access_token_secret: SecretStr = Field(
        default=SecretStr("dev-insecure-access-secret"), alias="ACCESS_TOKEN_SECRET"
    )
    refresh_token_secret: SecretStr = Field(
        default=SecretStr("dev-insecure-refresh-secret"), alias="REFRESH_TOKEN_SECRET"
    )

    # --- media host credentials ---
    cloudinary_api_key: str | None = Field(default=None, alias="CLOUDINARY_API_KEY")
    cloudinary_api_secret: SecretStr | None = Field(default=None, alias="CLOUDINARY_API_SECRET")
