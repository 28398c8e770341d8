from __future__ import annotations

from fastapi import Depends, Request

from vidtube.api.errors import AuthError, InternalError
from vidtube.api.models import User, UserStore
from vidtube.api.security import ACCESS, decode_token, extract_bearer
from vidtube.media.uploader import MediaUploader
from vidtube.utils.log import set_user_id

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def get_store(request: Request) -> UserStore:
    store = getattr(request.app.state, "user_store", None)
    if store is None:
        raise InternalError("User store not initialized")
    return store


def get_uploader(request: Request) -> MediaUploader:
    up = getattr(request.app.state, "uploader", None)
    if up is None:
        up = MediaUploader()
        request.app.state.uploader = up
    return up


async def current_user(request: Request, store: UserStore = Depends(get_store)) -> User:
    """
    Authenticated caller, from the `accessToken` cookie or an `Authorization: Bearer` header.

    The cookie wins when both are present (browser clients never send the header).
    Must stay a coroutine: a sync dependency runs in a worker thread and the bound
    user id would never reach the handler's context.
    """
    token = request.cookies.get(ACCESS_COOKIE) or extract_bearer(request)
    if not token:
        raise AuthError("Unauthorized request")
    data = decode_token(token, expected_typ=ACCESS)
    user = store.get_user(str(data.get("sub") or ""))
    if user is None:
        raise AuthError("Invalid access token")
    set_user_id(user.id)
    return user
