from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

from vidtube.api.errors import ApiError


def api_response(data: Any = None, *, message: str = "Success", status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=int(status_code),
        content={
            "statusCode": int(status_code),
            "data": data,
            "message": str(message),
            "success": int(status_code) < 400,
        },
    )


def error_response(ex: ApiError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if ex.status_code == 401 else None
    return JSONResponse(
        status_code=int(ex.status_code),
        content={
            "statusCode": int(ex.status_code),
            "message": ex.message,
            "success": False,
            "errors": list(ex.errors),
        },
        headers=headers,
    )
