"""API error taxonomy and the exception handlers that render it.

Every error response is a JSON object with at least an ``error`` string.
Handlers raise the ApiError subclasses below; auth helpers and the
membership resolver return falsy values instead, leaving the status
choice to the route.
"""

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = structlog.get_logger()


class ApiError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    default_message = "internal"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        headers: Optional[dict[str, str]] = None,
        **extra: Any,
    ):
        self.message = message or self.default_message
        self.headers = headers
        self.extra = extra
        super().__init__(self.message)

    def payload(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class InvalidInput(ApiError):
    status_code = 400
    default_message = "invalid input"


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "unauthenticated"


class Forbidden(ApiError):
    status_code = 403
    default_message = "forbidden"


class NotFound(ApiError):
    status_code = 404
    default_message = "not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "conflict"


class TooManyRequests(ApiError):
    status_code = 429
    default_message = "too many requests"


class ServiceUnavailable(ApiError):
    status_code = 503
    default_message = "service unavailable"


def _validation_fields(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": err.get("msg"),
        }
        for err in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON error handlers on the app."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload(),
            headers=exc.headers,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "http error"
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": message},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "invalid input", "fields": _validation_fields(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        # Storage and logic failures: log everything, tell the client nothing.
        logger.exception("request.unhandled_error", path=request.url.path)
        return JSONResponse(status_code=500, content={"error": "internal"})
