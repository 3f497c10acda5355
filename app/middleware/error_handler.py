"""Error handling middleware."""

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import AppException, StoreException

logger = structlog.get_logger(__name__)


def error_body(request: Request, error: str, message: str, **extra) -> dict:
    """Shared shape of every JSON error response."""
    return {"error": error, "message": message, "path": str(request.url), **extra}


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom application exceptions.

    Store failures keep their operation name but never the driver message.
    """
    extra = {}
    if isinstance(exc, StoreException) and exc.operation:
        extra["operation"] = exc.operation
    if exc.status_code >= 500:
        logger.error("app_exception", error=exc.__class__.__name__, message=exc.message, path=request.url.path)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.__class__.__name__, exc.message, **extra),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, "HTTPException", exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(
            request,
            "ValidationError",
            "Request validation failed",
            details=jsonable_errors(exc),
        ),
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the non-serializable ``ctx`` payloads."""
    return [{key: value for key, value in error.items() if key != "ctx"} for error in exc.errors()]


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(request, "InternalServerError", "An unexpected error occurred"),
    )
