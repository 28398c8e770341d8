from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from pydantic import SecretStr

from .public_config import PublicConfig
from .secret_config import SecretConfig

_SAMESITE_VALUES = ("lax", "strict", "none")

# Shipped placeholder values; fine for local runs, never for production.
_PLACEHOLDER_SECRETS = {
    "access_token_secret": "dev-insecure-access-secret",
    "refresh_token_secret": "dev-insecure-refresh-secret",
}


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class Settings:
    """Read-only view over both config halves. Secret fields win on a name clash."""

    public: PublicConfig
    secret: SecretConfig

    def __getattr__(self, name: str) -> Any:
        if name in ("public", "secret"):
            raise AttributeError(name)
        for half in (self.secret, self.public):
            if hasattr(half, name):
                return getattr(half, name)
        raise AttributeError(name)

    def cors_origin_list(self) -> list[str]:
        return self.public.cors_origin_list()


def _env_flag(name: str) -> bool:
    return str(os.environ.get(name) or "0").strip().lower() in {"1", "true", "yes", "on"}


def _is_production() -> bool:
    env = os.environ.get("ENV") or os.environ.get("APP_ENV") or ""
    return env.strip().lower() in {"prod", "production"}


def _reveal(value: SecretStr | None) -> str:
    return value.get_secret_value() if isinstance(value, SecretStr) else ""


def _is_strong_secret(value: str) -> bool:
    """24+ chars with 3 character classes, or 32+ chars with 2."""
    if len(value) < 24:
        return False
    classes = sum(
        (
            any(c.islower() for c in value),
            any(c.isupper() for c in value),
            any(c.isdigit() for c in value),
            any(not c.isalnum() for c in value),
        )
    )
    return classes >= (2 if len(value) >= 32 else 3)


def _samesite(s: Settings) -> str:
    v = str(s.public.cookie_samesite or "lax").strip().lower()
    if v not in _SAMESITE_VALUES:
        raise ConfigError(f"COOKIE_SAMESITE must be one of {'|'.join(_SAMESITE_VALUES)} (got {v!r})")
    return v


def _weak_settings(s: Settings, *, production: bool) -> set[str]:
    """Env names of settings that are unsafe for the current environment."""
    values = {name: _reveal(getattr(s.secret, name)) for name in _PLACEHOLDER_SECRETS}
    weak: set[str] = set()

    for name, value in values.items():
        if value == _PLACEHOLDER_SECRETS[name] or (production and not _is_strong_secret(value)):
            weak.add(name.upper())

    # A refresh token must never validate as an access token.
    if values["access_token_secret"] and len(set(values.values())) == 1:
        weak.update(n.upper() for n in values)

    if _samesite(s) == "none" and not s.public.cookie_secure:
        weak.add("COOKIE_SECURE")
    if production:
        if not s.public.cookie_secure:
            weak.add("COOKIE_SECURE")
        if any("*" in o for o in s.public.cors_origin_list()):
            weak.add("CORS_ORIGINS")
    return weak


def _validate_secrets(s: Settings) -> None:
    production = _is_production()
    weak = sorted(_weak_settings(s, production=production))
    if not weak:
        return
    if production or _env_flag("STRICT_SECRETS"):
        raise ConfigError(
            f"Unsafe security configuration: {', '.join(weak)}. "
            "Set these via environment variables or `.env.secrets`."
        )
    logging.getLogger("vidtube").warning(
        "weak_secrets_detected", extra={"weak": weak, "production": production}
    )


def get_safe_config_report() -> dict[str, Any]:
    """
    Config snapshot that is safe to print or return from a diagnostics endpoint.

    Public values are included as-is (paths stringified). Secrets appear only as SET/UNSET.
    """
    s = get_settings()
    public = {k: (os.fspath(v) if hasattr(v, "__fspath__") else v) for k, v in s.public.model_dump().items()}
    secrets: dict[str, str] = {}
    for name in sorted(SecretConfig.model_fields):
        v = getattr(s.secret, name, None)
        raw = _reveal(v) if isinstance(v, SecretStr) else str(v or "")
        secrets[name] = "SET" if raw.strip() else "UNSET"
    return {"strict_secrets": _env_flag("STRICT_SECRETS"), "public": public, "secrets": secrets}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings(public=PublicConfig(), secret=SecretConfig())
    _validate_secrets(s)
    return s
