from __future__ import annotations

from dataclasses import dataclass

from vidtube.api.errors import AuthError
from vidtube.api.models import User, UserStore
from vidtube.api.security import REFRESH, create_access_token, create_refresh_token, decode_token
from vidtube.config import get_settings


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str


def issue_token_pair(user: User) -> TokenPair:
    """
    Mint an access/refresh pair for `user`. Pure: nothing is persisted here.

    Callers must store `refresh_token` on the user before handing it out, or the
    next refresh will be rejected.
    """
    s = get_settings()
    return TokenPair(
        access_token=create_access_token(user, minutes=int(s.access_token_minutes)),
        refresh_token=create_refresh_token(sub=user.id, days=int(s.refresh_token_days)),
    )


def issue_and_store_token_pair(*, store: UserStore, user: User) -> TokenPair:
    """Login path: a new session replaces whatever refresh token was stored."""
    pair = issue_token_pair(user)
    store.set_refresh_token(user.id, pair.refresh_token)
    return pair


def rotate_refresh_token(*, store: UserStore, refresh_token: str | None) -> tuple[TokenPair, User]:
    """
    Exchange a refresh token for a new pair, invalidating the presented one.

    The presented token must verify against the refresh secret AND equal the value
    currently stored on the user. The swap itself is a conditional update, so two
    concurrent rotations of the same token cannot both succeed.
    """
    if not refresh_token:
        raise AuthError("Unauthorized request")

    data = decode_token(str(refresh_token), expected_typ=REFRESH)
    sub = str(data.get("sub") or "")
    user = store.get_user(sub) if sub else None
    if user is None:
        raise AuthError("Invalid refresh token")

    if user.refresh_token != refresh_token:
        raise AuthError("Refresh token is expired or used")

    pair = issue_token_pair(user)
    if not store.swap_refresh_token(user.id, expected=str(refresh_token), new=pair.refresh_token):
        raise AuthError("Refresh token is expired or used")
    return pair, user


def revoke_refresh_token(*, store: UserStore, user_id: str) -> None:
    store.set_refresh_token(user_id, None)
