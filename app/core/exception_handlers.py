"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError subclasses → mapped HTTP status (400, 502, 503)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for tracing
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import (
    AppError,
    ScanAppError,
    ScanUnavailableAppError,
    ValidationAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)


_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (ValidationAppError, 400),
    (ScanAppError, 502),
    (ScanUnavailableAppError, 503),
)


def status_code_for(exc: AppError) -> int:
    """Return the HTTP status for a domain error.

    Args:
        exc: Domain error raised by a route.

    Returns:
        Mapped status code, or 400 when the error type is not mapped.
    """
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with a consistent JSON body.

    Routes domain errors to HTTP status codes:
    - ValidationAppError → 400 Bad Request (client fault)
    - ScanAppError → 502 Bad Gateway (scan engine fault)
    - ScanUnavailableAppError → 503 Service Unavailable (no engine configured)

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message
    - error.request_id: For tracing
    - error.details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance raised by a route.

    Returns:
        JSONResponse with the mapped status code and error payload.
    """
    status_code = status_code_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure with its type and returns a generic message; no stack
    trace or exception text reaches the client. The scan admission middleware
    also calls it directly so an admitted request keeps its quota headers.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with a generic 500 error.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance.

    Example:
        >>> from fastapi import FastAPI
        >>> from app.core.exception_handlers import setup_exception_handlers
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
