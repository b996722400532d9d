"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError subclasses → appropriate HTTP status (400, 429, 500, 502)
- Request parameter validation → 400
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import (
    AppError,
    ConfigurationAppError,
    RateLimitAppError,
    UpstreamAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_for_error(exc: AppError) -> int:
    """Map a domain error to its HTTP status code.

    - ValidationAppError (and the base class) → 400 Bad Request
    - RateLimitAppError → 429 Too Many Requests
    - ConfigurationAppError → 500 Internal Server Error
    - UpstreamAppError → 502 Bad Gateway
    """
    if isinstance(exc, RateLimitAppError):
        return 429
    if isinstance(exc, ConfigurationAppError):
        return 500
    if isinstance(exc, UpstreamAppError):
        return 502
    return 400


def _headers_for_error(exc: AppError) -> dict[str, str]:
    """Build response headers carried by throttling errors."""
    details = exc.details or {}
    if not isinstance(exc, RateLimitAppError):
        return {}

    headers = {"Retry-After": str(details.get("retry_after", 1))}
    if "limit" in details:
        headers["X-RateLimit-Limit"] = str(details["limit"])
        headers["X-RateLimit-Remaining"] = str(details.get("remaining", 0))
        headers["X-RateLimit-Reset"] = str(details.get("reset_at", 0))
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include:
    - error: Human-readable message
    - code: Machine-readable error code
    - request_id: For distributed tracing
    - details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code, headers and error body.
    """
    status_code = status_for_error(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        }
    )

    content = {
        "error": exc.message,
        "code": exc.code,
        "request_id": get_request_id(),
    }

    if exc.details:
        content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=_headers_for_error(exc) or None,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Turn FastAPI parameter validation failures into 400 responses."""
    errors = exc.errors()
    logger.warning(
        "request_validation_failed",
        extra={
            "error_count": len(errors),
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request parameters",
            "code": "invalid_parameter",
            "request_id": get_request_id(),
            "details": {
                "context": {
                    "errors": [
                        {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
                        for err in errors
                    ]
                }
            },
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message.
    No stack traces or upstream URLs are returned to the client.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred. Please try again later.",
            "code": "internal_server_error",
            "request_id": get_request_id(),
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization, before route registration.

    Args:
        app: FastAPI application instance.

    Example:
        >>> from fastapi import FastAPI
        >>> from app.core.exception_handlers import setup_exception_handlers
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
