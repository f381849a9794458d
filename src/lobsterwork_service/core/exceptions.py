"""Error taxonomy and exception handlers for consistent error responses."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lobsterwork_service.logging import get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI, Request
    from starlette.types import ExceptionHandler

__all__ = [
    "ConflictError",
    "ForbiddenError",
    "NotFoundError",
    "ServiceError",
    "StoreTimeoutError",
    "ValidationError",
    "register_exception_handlers",
]


class ServiceError(Exception):
    """
    Error carrying a machine-readable code and the HTTP status it maps to.

    Rendered as ``{"error", "message", "details"}`` by service_error_handler.
    """

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int,
        details: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code
        self.details: dict[str, object] = details if details is not None else {}


class ValidationError(ServiceError):
    """Malformed input. The caller should fix the request and retry."""

    def __init__(self, error: str, message: str, details: dict[str, object] | None = None) -> None:
        super().__init__(error, message, 400, details)


class ForbiddenError(ServiceError):
    """The caller lacks authority for the action. Not retryable."""

    def __init__(self, error: str, message: str, details: dict[str, object] | None = None) -> None:
        super().__init__(error, message, 403, details)


class NotFoundError(ServiceError):
    """A referenced entity does not exist. Not retryable."""

    def __init__(self, error: str, message: str, details: dict[str, object] | None = None) -> None:
        super().__init__(error, message, 404, details)


class ConflictError(ServiceError):
    """State changed underneath the caller. Reload, then maybe retry."""

    def __init__(self, error: str, message: str, details: dict[str, object] | None = None) -> None:
        super().__init__(error, message, 409, details)


class StoreTimeoutError(ServiceError):
    """The backing store is busy or unreachable. Retry with backoff."""

    def __init__(self, error: str, message: str, details: dict[str, object] | None = None) -> None:
        super().__init__(error, message, 503, details)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle ServiceError exceptions."""
    logger = get_logger(__name__)
    logger.warning(
        "Service error",
        extra={
            "error_code": exc.error,
            "status_code": exc.status_code,
            "path": str(request.url.path),
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": exc.message, "details": exc.details},
    )


async def unhandled_exception_handler(request: Request, _exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger = get_logger(__name__)
    logger.exception("Unhandled exception", extra={"path": str(request.url.path)})
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "details": {},
        },
    )


async def http_exception_handler(
    _request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handle Starlette HTTP exceptions (e.g., 404/405 from the router)."""
    if exc.status_code == 405:
        return JSONResponse(
            status_code=405,
            content={
                "error": "METHOD_NOT_ALLOWED",
                "message": "Method not allowed",
                "details": {},
            },
        )
    if exc.status_code == 404:
        return JSONResponse(
            status_code=404,
            content={
                "error": "NOT_FOUND",
                "message": "Resource not found",
                "details": {},
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "HTTP_ERROR",
            "message": str(exc.detail),
            "details": {},
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the app."""
    app.add_exception_handler(ServiceError, cast("ExceptionHandler", service_error_handler))
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.add_exception_handler(
        StarletteHTTPException,
        cast("ExceptionHandler", http_exception_handler),
    )
