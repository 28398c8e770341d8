from __future__ import annotations

import time
from typing import Any

import jwt
from fastapi import Request

from vidtube.api.errors import AuthError
from vidtube.api.models import User
from vidtube.config import get_settings
from vidtube.utils.crypto import random_id

ACCESS = "access"
REFRESH = "refresh"


def _secret_for(typ: str) -> str:
    s = get_settings()
    if typ == ACCESS:
        return s.access_token_secret.get_secret_value()
    if typ == REFRESH:
        return s.refresh_token_secret.get_secret_value()
    raise ValueError(f"unknown token type: {typ!r}")


def create_access_token(user: User, *, minutes: int) -> str:
    now = int(time.time())
    payload: dict[str, Any] = {
        "typ": ACCESS,
        "sub": user.id,
        "username": user.username,
        "email": user.email,
        "full_name": user.full_name,
        "iat": now,
        "exp": now + int(minutes) * 60,
    }
    return jwt.encode(payload, _secret_for(ACCESS), algorithm=get_settings().jwt_alg)


def create_refresh_token(*, sub: str, days: int) -> str:
    now = int(time.time())
    payload: dict[str, Any] = {
        "typ": REFRESH,
        "sub": sub,
        "iat": now,
        "exp": now + int(days) * 86400,
        # Two tokens minted for the same user in the same second must still differ.
        "jti": random_id("r_", 16),
    }
    return jwt.encode(payload, _secret_for(REFRESH), algorithm=get_settings().jwt_alg)


def decode_token(token: str, *, expected_typ: str) -> dict[str, Any]:
    """Verify signature, expiry and token type; AuthError carries the reason."""
    label = "Access" if expected_typ == ACCESS else "Refresh"
    try:
        data = jwt.decode(
            token,
            _secret_for(expected_typ),
            algorithms=[get_settings().jwt_alg],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError(f"{label} token expired") from None
    except jwt.InvalidTokenError:
        raise AuthError(f"Invalid {label.lower()} token") from None
    if not isinstance(data, dict) or data.get("typ") != expected_typ:
        raise AuthError(f"Invalid {label.lower()} token")
    return data


def extract_bearer(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None
