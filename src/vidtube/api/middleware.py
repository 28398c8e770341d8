from __future__ import annotations

import re
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request, Response

from vidtube.api.envelope import error_response
from vidtube.api.errors import InternalError
from vidtube.ops import audit
from vidtube.utils.log import logger, request_id_var, user_id_var

# Client-supplied ids are echoed into logs and headers; keep them short and inert.
_RID_RE = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")


def _request_id_for(request: Request) -> str:
    incoming = (request.headers.get("x-request-id") or "").strip()
    if incoming and _RID_RE.match(incoming):
        return incoming
    return uuid.uuid4().hex


async def request_context_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """
    Binds a request id (X-Request-ID, generated when absent or malformed) for the
    lifetime of the request and echoes it on the response. The user id is bound
    later, by the auth dependency.

    Unexpected exceptions (e.g. from a dependency) are rendered here rather than by
    the app-level 500 handler, which runs after this context is gone.
    """
    rid = _request_id_for(request)
    request.state.request_id = rid
    rid_token = request_id_var.set(rid)
    uid_token = user_id_var.set(None)
    try:
        try:
            resp = await call_next(request)
        except Exception as ex:
            logger.exception("unhandled_error", path=request.url.path, error=type(ex).__name__)
            resp = error_response(InternalError())
        resp.headers.setdefault("x-request-id", rid)
        return resp
    finally:
        user_id_var.reset(uid_token)
        request_id_var.reset(rid_token)


def audit_event(
    event: str,
    *,
    request: Request,
    user_id: str | None = None,
    target_id: str | None = None,
    outcome: str | None = None,
    meta: dict[str, Any] | None = None,
) -> None:
    """Audit record tied to the current request's id."""
    rid = request_id_var.get() or getattr(request.state, "request_id", None)
    audit.emit(
        event,
        request_id=rid,
        user_id=user_id or user_id_var.get(),
        target_id=target_id,
        outcome=outcome,
        meta=meta,
    )
