from __future__ import annotations

import asyncio
import json
from contextlib import suppress
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from vidtube.api.auth import issue_and_store_token_pair, revoke_refresh_token, rotate_refresh_token
from vidtube.api.deps import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    current_user,
    get_store,
    get_uploader,
)
from vidtube.api.envelope import api_response
from vidtube.api.errors import (
    AuthError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from vidtube.api.middleware import audit_event
from vidtube.api.models import DuplicateUserError, User, UserStore
from vidtube.api.pipeline import async_handler
from vidtube.config import get_settings
from vidtube.media.uploader import MediaUploader, stage_upload
from vidtube.utils.crypto import PasswordHasher
from vidtube.utils.log import logger

router = APIRouter(prefix="/api/v1/users", tags=["users"])


async def _read_body(request: Request) -> dict[str, Any]:
    """JSON or form body as a plain dict; an empty body is an empty dict."""
    ctype = (request.headers.get("content-type") or "").lower()
    if "application/x-www-form-urlencoded" in ctype or "multipart/form-data" in ctype:
        form = await request.form()
        return {str(k): form.get(k) for k in form}
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        raise ValidationError("Invalid JSON body") from None
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON body")
    return data


def _text(body: dict[str, Any], key: str) -> str:
    v = body.get(key)
    return v.strip() if isinstance(v, str) else ""


def _set_auth_cookies(resp: JSONResponse, *, access_token: str, refresh_token: str) -> None:
    s = get_settings()
    common: dict[str, Any] = {
        "httponly": True,
        "secure": bool(s.cookie_secure),
        "samesite": str(s.cookie_samesite).lower(),
        "path": "/",
    }
    resp.set_cookie(ACCESS_COOKIE, access_token, max_age=int(s.access_token_minutes) * 60, **common)
    resp.set_cookie(
        REFRESH_COOKIE, refresh_token, max_age=int(s.refresh_token_days) * 86400, **common
    )


def _clear_auth_cookies(resp: JSONResponse) -> None:
    s = get_settings()
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        resp.delete_cookie(
            name,
            path="/",
            secure=bool(s.cookie_secure),
            httponly=True,
            samesite=str(s.cookie_samesite).lower(),
        )


def _discard(*paths: Path | None) -> None:
    for p in paths:
        if p is not None:
            with suppress(FileNotFoundError):
                p.unlink()


@router.post("/register")
@async_handler
async def register(
    request: Request,
    username: str | None = Form(None),
    email: str | None = Form(None),
    fullName: str | None = Form(None),  # noqa: N803
    password: str | None = Form(None),
    avatar: UploadFile | None = File(None),
    coverImage: UploadFile | None = File(None),  # noqa: N803
    store: UserStore = Depends(get_store),
    uploader: MediaUploader = Depends(get_uploader),
) -> JSONResponse:
    fields = {
        "username": (username or "").strip(),
        "email": (email or "").strip(),
        "fullName": (fullName or "").strip(),
        "password": password or "",
    }
    missing = [k for k, v in fields.items() if not v.strip()]
    if missing:
        raise ValidationError(
            "All fields are required",
            errors=[{"field": k, "message": "required"} for k in missing],
        )

    # Fast path only; the UNIQUE constraints decide on insert.
    if store.find_user(username=fields["username"], email=fields["email"]) is not None:
        raise ConflictError("User with username or email already exists")

    if avatar is None or not avatar.filename:
        raise ValidationError("Avatar file is required")

    avatar_path: Path | None = None
    cover_path: Path | None = None
    try:
        avatar_path = await stage_upload(avatar, field="avatar")
        if coverImage is not None and coverImage.filename:
            cover_path = await stage_upload(coverImage, field="coverImage")

        avatar_res = await asyncio.to_thread(uploader.upload, avatar_path)
        if avatar_res is None:
            raise InternalError("Error while uploading avatar")
        cover_res = (
            await asyncio.to_thread(uploader.upload, cover_path) if cover_path is not None else None
        )
    finally:
        _discard(avatar_path, cover_path)

    try:
        user = store.create_user(
            username=fields["username"],
            email=fields["email"],
            full_name=fields["fullName"],
            password_hash=PasswordHasher().hash(fields["password"]),
            avatar=avatar_res.url,
            cover_image=cover_res.url if cover_res is not None else "",
        )
    except DuplicateUserError:
        raise ConflictError("User with username or email already exists") from None

    logger.info("user_registered", user_id=user.id)
    audit_event("auth.register", request=request, user_id=user.id, outcome="ok")
    return api_response(user.to_public(), message="User registered successfully", status_code=201)


@router.post("/login")
@async_handler
async def login(request: Request, store: UserStore = Depends(get_store)) -> JSONResponse:
    body = await _read_body(request)
    username = _text(body, "username")
    email = _text(body, "email")
    password = body.get("password") if isinstance(body.get("password"), str) else ""

    if not username and not email:
        raise ValidationError("username or email is required")
    if not password:
        raise ValidationError("password is required")

    user = store.find_user(username=username or None, email=email or None)
    if user is None:
        audit_event(
            "auth.login_failed",
            request=request,
            outcome="unknown_user",
            meta={"username": username, "email": email},
        )
        raise NotFoundError("User does not exist")

    if not PasswordHasher().verify(user.password_hash, password):
        audit_event("auth.login_failed", request=request, user_id=user.id, outcome="bad_password")
        raise AuthError("Invalid user credentials")

    pair = issue_and_store_token_pair(store=store, user=user)
    audit_event("auth.login_ok", request=request, user_id=user.id, outcome="ok")

    resp = api_response(
        {
            "user": user.to_public(),
            "accessToken": pair.access_token,
            "refreshToken": pair.refresh_token,
        },
        message="User logged in successfully",
    )
    _set_auth_cookies(resp, access_token=pair.access_token, refresh_token=pair.refresh_token)
    return resp


@router.post("/logout")
@async_handler
async def logout(
    request: Request,
    user: User = Depends(current_user),
    store: UserStore = Depends(get_store),
) -> JSONResponse:
    revoke_refresh_token(store=store, user_id=user.id)
    audit_event("auth.logout", request=request, user_id=user.id, outcome="ok")
    resp = api_response({}, message="User logged out")
    _clear_auth_cookies(resp)
    return resp


@router.post("/refresh-token")
@async_handler
async def refresh_token(request: Request, store: UserStore = Depends(get_store)) -> JSONResponse:
    presented = request.cookies.get(REFRESH_COOKIE)
    if not presented:
        presented = _text(await _read_body(request), "refreshToken") or None

    try:
        pair, user = rotate_refresh_token(store=store, refresh_token=presented)
    except AuthError as ex:
        audit_event("auth.refresh_failed", request=request, outcome="denied", meta={"reason": ex.message})
        raise

    audit_event("auth.refresh_ok", request=request, user_id=user.id, outcome="ok")
    resp = api_response(
        {"accessToken": pair.access_token, "refreshToken": pair.refresh_token},
        message="Access token refreshed",
    )
    _set_auth_cookies(resp, access_token=pair.access_token, refresh_token=pair.refresh_token)
    return resp


@router.post("/change-password")
@async_handler
async def change_password(
    request: Request,
    user: User = Depends(current_user),
    store: UserStore = Depends(get_store),
) -> JSONResponse:
    body = await _read_body(request)
    old = body.get("oldPassword") if isinstance(body.get("oldPassword"), str) else ""
    new = body.get("newPassword") if isinstance(body.get("newPassword"), str) else ""
    if not old or not new:
        raise ValidationError("oldPassword and newPassword are required")

    hasher = PasswordHasher()
    if not hasher.verify(user.password_hash, old):
        raise ValidationError("Invalid old password")

    if store.update_password(user.id, hasher.hash(new)) is None:
        raise NotFoundError("User does not exist")
    audit_event("auth.password_changed", request=request, user_id=user.id, outcome="ok")
    return api_response({}, message="Password changed successfully")


@router.get("/current-user")
@async_handler
async def get_current_user(user: User = Depends(current_user)) -> JSONResponse:
    return api_response(user.to_public(), message="Current user fetched successfully")


@router.patch("/update-account")
@async_handler
async def update_account(
    request: Request,
    user: User = Depends(current_user),
    store: UserStore = Depends(get_store),
) -> JSONResponse:
    body = await _read_body(request)
    full_name = _text(body, "fullName")
    email = _text(body, "email")
    if not full_name or not email:
        raise ValidationError("All fields are required")

    other = store.find_user(email=email)
    if other is not None and other.id != user.id:
        raise ConflictError("Email is already in use")
    try:
        updated = store.update_account(user.id, full_name=full_name, email=email)
    except DuplicateUserError:
        raise ConflictError("Email is already in use") from None
    if updated is None:
        raise NotFoundError("User does not exist")
    return api_response(updated.to_public(), message="Account details updated successfully")


async def _replace_image(
    upload: UploadFile | None,
    *,
    field: str,
    label: str,
    uploader: MediaUploader,
) -> str:
    if upload is None or not upload.filename:
        raise ValidationError(f"{label} file is missing")
    path: Path | None = None
    try:
        path = await stage_upload(upload, field=field)
        res = await asyncio.to_thread(uploader.upload, path)
    finally:
        _discard(path)
    if res is None:
        raise InternalError(f"Error while uploading {label.lower()}")
    return res.url


@router.patch("/update-avatar")
@async_handler
async def update_avatar(
    avatar: UploadFile | None = File(None),
    user: User = Depends(current_user),
    store: UserStore = Depends(get_store),
    uploader: MediaUploader = Depends(get_uploader),
) -> JSONResponse:
    url = await _replace_image(avatar, field="avatar", label="Avatar", uploader=uploader)
    updated = store.update_avatar(user.id, url)
    if updated is None:
        raise NotFoundError("User does not exist")
    return api_response(updated.to_public(), message="Avatar image updated successfully")


@router.patch("/update-cover-image")
@async_handler
async def update_cover_image(
    coverImage: UploadFile | None = File(None),  # noqa: N803
    user: User = Depends(current_user),
    store: UserStore = Depends(get_store),
    uploader: MediaUploader = Depends(get_uploader),
) -> JSONResponse:
    url = await _replace_image(coverImage, field="coverImage", label="Cover image", uploader=uploader)
    updated = store.update_cover_image(user.id, url)
    if updated is None:
        raise NotFoundError("User does not exist")
    return api_response(updated.to_public(), message="Cover image updated successfully")


@router.get("/c/{username}")
@async_handler
async def channel_profile(
    username: str,
    user: User = Depends(current_user),
    store: UserStore = Depends(get_store),
) -> JSONResponse:
    if not username.strip():
        raise ValidationError("username is missing")
    channel = store.get_user_by_username(username.strip())
    if channel is None:
        raise NotFoundError("Channel does not exist")
    data = channel.to_public()
    data["subscribersCount"] = store.count_subscribers(channel.id)
    data["channelsSubscribedToCount"] = store.count_subscriptions(channel.id)
    data["isSubscribed"] = store.is_subscribed(subscriber_id=user.id, channel_id=channel.id)
    return api_response(data, message="User channel fetched successfully")
