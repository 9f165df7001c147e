"""
HTTP error mapping.

Translates service-layer exceptions into HTTP errors and renders every
error response as a JSON body with an ``error`` field.
"""

from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from modhub_core import get_logger
from modhub_core.exceptions import (
    AuthenticationError,
    CaptchaError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitExceededError,
)

logger = get_logger(__name__)

VALIDATION_MESSAGE = "Validation failed. Please check your input."


class ApiError(HTTPException):
    """HTTPException carrying extra top-level fields for the error body."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        extra: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.extra = extra or {}


def to_http_exception(error: ValueError) -> ApiError:
    """
    Map a service exception to an HTTP error.

    Args:
        error: ValueError raised by a service.

    Returns:
        Error to raise from the route.
    """
    message = str(error)
    if isinstance(error, NotFoundError):
        return ApiError(status.HTTP_404_NOT_FOUND, message)
    if isinstance(error, ConflictError):
        return ApiError(status.HTTP_409_CONFLICT, message, extra=dict(error.context))
    if isinstance(error, PermissionDeniedError):
        return ApiError(status.HTTP_403_FORBIDDEN, message)
    if isinstance(error, AuthenticationError):
        return ApiError(status.HTTP_401_UNAUTHORIZED, message, headers={"WWW-Authenticate": "Bearer"})
    if isinstance(error, RateLimitExceededError):
        extra = {"reset_at": error.reset_at.isoformat()} if error.reset_at else {}
        headers: dict[str, str] = {}
        if error.retry_after is not None:
            headers["Retry-After"] = str(error.retry_after)
        if error.limit is not None:
            headers["X-RateLimit-Limit"] = str(error.limit)
            headers["X-RateLimit-Remaining"] = "0"
        return ApiError(status.HTTP_429_TOO_MANY_REQUESTS, message, extra=extra, headers=headers or None)
    if isinstance(error, CaptchaError):
        return ApiError(status.HTTP_400_BAD_REQUEST, message, extra={"captcha_error": True})
    return ApiError(status.HTTP_400_BAD_REQUEST, message)


def _field_path(loc: tuple[Any, ...]) -> str:
    parts = [str(part) for part in loc]
    if parts and parts[0] in ("body", "query", "path"):
        parts = parts[1:]
    return ".".join(parts)


def _clean_message(message: str) -> str:
    return message.removeprefix("Value error, ")


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTP errors as {"error", "detail", ...extra}."""
    body: dict[str, Any] = {"error": exc.detail, "detail": exc.detail}
    body.update(getattr(exc, "extra", {}))
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation errors as field-scoped 400 responses."""
    errors = [
        {"field": _field_path(tuple(error.get("loc", ()))), "message": _clean_message(error.get("msg", ""))}
        for error in exc.errors()
    ]
    logger.info("Request validation failed", extra={"path": request.url.path, "errors": len(errors)})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": VALIDATION_MESSAGE,
            "detail": VALIDATION_MESSAGE,
            "errors": errors,
            "message": errors[0]["message"] if errors else VALIDATION_MESSAGE,
        },
    )
