"""
Request pipeline: every handler failure ends up as the same JSON error envelope.

- `async_handler` wraps a route coroutine, awaits it and normalizes anything it
  raises into an `ApiError`.
- `install_error_handlers` registers the app-level handlers that render `ApiError`
  (and framework errors raised outside a handler, e.g. by dependencies or routing)
  with `error_response`.
"""

from __future__ import annotations

import functools
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vidtube.api.envelope import error_response
from vidtube.api.errors import ApiError, InternalError, ValidationError
from vidtube.utils.log import logger

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def async_handler(fn: F) -> F:
    if not inspect.iscoroutinefunction(fn):
        raise TypeError(f"async_handler expects a coroutine function, got {fn!r}")

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await fn(*args, **kwargs)
        except ApiError:
            raise
        except StarletteHTTPException as ex:
            raise ApiError(str(ex.detail), status_code=ex.status_code) from ex
        except Exception as ex:
            logger.exception("handler_failed", handler=fn.__qualname__, error=type(ex).__name__)
            raise InternalError() from ex

    # FastAPI reads the signature of the wrapper; resolve string annotations against
    # the handler's own module so dependency injection still sees real types.
    wrapper.__signature__ = inspect.signature(fn, eval_str=True)  # type: ignore[attr-defined]
    return wrapper  # type: ignore[return-value]


def _validation_details(ex: RequestValidationError) -> list[dict[str, str]]:
    out: list[dict[str, str]] = []
    for err in ex.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        out.append({"field": ".".join(loc), "message": str(err.get("msg") or "invalid")})
    return out


async def _on_api_error(request: Request, ex: ApiError) -> JSONResponse:
    if ex.status_code >= 500:
        logger.error(
            "api_error",
            status=ex.status_code,
            path=request.url.path,
            cause=type(ex.__cause__).__name__ if ex.__cause__ else None,
        )
    else:
        logger.info("api_error", status=ex.status_code, path=request.url.path, msg_text=ex.message)
    return error_response(ex)


async def _on_http_exception(request: Request, ex: StarletteHTTPException) -> JSONResponse:
    return await _on_api_error(request, ApiError(str(ex.detail), status_code=ex.status_code))


async def _on_validation_error(request: Request, ex: RequestValidationError) -> JSONResponse:
    return await _on_api_error(
        request, ValidationError("Invalid request", errors=_validation_details(ex))
    )


async def _on_unhandled(request: Request, ex: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error=type(ex).__name__)
    return error_response(InternalError())


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _on_api_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _on_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _on_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _on_unhandled)
