from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from vidtube.api.deps import current_user, get_store
from vidtube.api.envelope import api_response
from vidtube.api.errors import ConflictError, NotFoundError, ValidationError
from vidtube.api.models import User, UserStore
from vidtube.api.pipeline import async_handler
from vidtube.utils.log import logger

router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])


def _require_user(store: UserStore, user_id: str, *, what: str) -> User:
    uid = (user_id or "").strip()
    if not uid:
        raise ValidationError(f"{what} id is missing")
    u = store.get_user(uid)
    if u is None:
        raise NotFoundError(f"{what} does not exist")
    return u


@router.post("/c/{channel_id}")
@async_handler
async def toggle_subscription(
    channel_id: str,
    user: User = Depends(current_user),
    store: UserStore = Depends(get_store),
) -> JSONResponse:
    """Subscribe to the channel, or unsubscribe when already subscribed."""
    channel = _require_user(store, channel_id, what="Channel")
    if channel.id == user.id:
        raise ValidationError("You cannot subscribe to your own channel")

    if store.remove_subscription(subscriber_id=user.id, channel_id=channel.id):
        logger.info("unsubscribed", channel_id=channel.id)
        return api_response({"subscribed": False}, message="Unsubscribed successfully")

    if not store.add_subscription(subscriber_id=user.id, channel_id=channel.id):
        raise ConflictError("Already subscribed to this channel")
    logger.info("subscribed", channel_id=channel.id)
    return api_response({"subscribed": True}, message="Subscribed successfully", status_code=201)


@router.get("/c/{channel_id}")
@async_handler
async def channel_subscribers(
    channel_id: str,
    user: User = Depends(current_user),
    store: UserStore = Depends(get_store),
) -> JSONResponse:
    channel = _require_user(store, channel_id, what="Channel")
    subs = [u.to_public() for u in store.list_subscribers(channel.id)]
    return api_response(subs, message="Subscribers fetched successfully")


@router.get("/u/{subscriber_id}")
@async_handler
async def subscribed_channels(
    subscriber_id: str,
    user: User = Depends(current_user),
    store: UserStore = Depends(get_store),
) -> JSONResponse:
    subscriber = _require_user(store, subscriber_id, what="Subscriber")
    channels = [u.to_public() for u in store.list_subscribed_channels(subscriber.id)]
    return api_response(channels, message="Subscribed channels fetched successfully")
