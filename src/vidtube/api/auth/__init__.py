"""
Authentication helpers.

The server wires auth via:
- short-lived JWT access tokens (HS256, access secret)
- rotating refresh tokens (HS256, refresh secret) stored on the user row, one per user
- http-only cookies (`accessToken`, `refreshToken`) or an `Authorization: Bearer` header
"""

from __future__ import annotations

from .refresh_tokens import (
    TokenPair,
    issue_and_store_token_pair,
    issue_token_pair,
    revoke_refresh_token,
    rotate_refresh_token,
)

__all__ = [
    "TokenPair",
    "issue_token_pair",
    "issue_and_store_token_pair",
    "rotate_refresh_token",
    "revoke_refresh_token",
]
