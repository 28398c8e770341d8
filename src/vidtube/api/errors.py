from __future__ import annotations

from typing import Any


class ApiError(Exception):
    """
    Structured domain error.

    Handlers raise these; `vidtube.api.pipeline` is the only place that turns them
    into HTTP responses.
    """

    status_code: int = 500
    default_message: str = "Something went wrong"

    def __init__(
        self,
        message: str | None = None,
        *,
        errors: list[Any] | None = None,
        status_code: int | None = None,
    ) -> None:
        self.message = str(message or self.default_message)
        self.errors: list[Any] = list(errors or [])
        if status_code is not None:
            self.status_code = int(status_code)
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.status_code}, {self.message!r})"


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


class AuthError(ApiError):
    status_code = 401
    default_message = "Unauthorized request"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Not found"


class ConflictError(ApiError):
    status_code = 409
    default_message = "Conflict"


class InternalError(ApiError):
    status_code = 500
    default_message = "Something went wrong"
