from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from vidtube import __version__
from vidtube.api.middleware import request_context_middleware
from vidtube.api.models import UserStore
from vidtube.api.pipeline import install_error_handlers
from vidtube.api.routes_subscriptions import router as subscriptions_router
from vidtube.api.routes_users import router as users_router
from vidtube.config import get_settings
from vidtube.media.uploader import MediaUploader
from vidtube.utils.log import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    s = get_settings()
    state_root = s.resolved_state_dir()
    db_path = state_root / str(s.db_name or "vidtube.db")
    s.resolved_temp_dir().mkdir(parents=True, exist_ok=True)

    app.state.user_store = UserStore(db_path)
    # Tests install a fake uploader before startup; keep it.
    if getattr(app.state, "uploader", None) is None:
        app.state.uploader = MediaUploader(s)
    logger.info(
        "server_start",
        version=__version__,
        db=db_path.name,
        uploader_configured=bool(getattr(app.state.uploader, "configured", True)),
    )
    try:
        yield
    finally:
        logger.info("server_stop")


app = FastAPI(title="vidtube", version=__version__, lifespan=lifespan)
install_error_handlers(app)

# Strict CORS: only configured origins, credentials on for cookies
s = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=s.cors_origin_list(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)

app.include_router(users_router)
app.include_router(subscriptions_router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    t0 = time.perf_counter()
    ip = request.client.host if request.client else "unknown"
    path = request.url.path
    response = None
    try:
        response = await call_next(request)
    finally:
        dt_ms = (time.perf_counter() - t0) * 1000.0
        logger.info(
            "http_done",
            ip=ip,
            method=request.method,
            path=path,
            status=getattr(response, "status_code", 500),
            duration_ms=dt_ms,
        )
    return response


# Wraps log_requests so request_id is bound for every log line of the request.
app.middleware("http")(request_context_middleware)


# Outermost: also covers the 500 responses built by request_context_middleware.
@app.middleware("http")
async def security_headers(request: Request, call_next):
    resp = await call_next(request)
    resp.headers.setdefault("x-content-type-options", "nosniff")
    resp.headers.setdefault("x-frame-options", "DENY")
    resp.headers.setdefault("referrer-policy", "no-referrer")
    return resp


@app.get("/health")
async def health():
    return {"status": "ok"}
