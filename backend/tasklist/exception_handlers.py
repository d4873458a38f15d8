"""
Global exception handlers for the FastAPI application.

Registration (in main.py):
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from tasklist.exceptions import AppException

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, error_code: str) -> JSONResponse:
    """
    Build the error body shared by every endpoint.

    Response format:
        {
            "detail": "Human-readable error message",
            "error_code": "MACHINE_READABLE_CODE"
        }
    """
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "error_code": error_code},
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException and subclasses raised during a request."""
    # Client errors (4xx) at warning level, server errors (5xx) at error level
    log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        f"{exc.error_code}: {exc.message} [{request.method} {request.url.path}]",
        extra={"error": exc.error_code},
    )

    return error_response(exc.status_code, exc.message, exc.error_code)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unhandled exceptions.

    Logs the full stack trace and returns a generic error response.
    HTTPException is handled by FastAPI's default handler and never gets here.
    """
    logger.exception(
        f"Unhandled exception: {type(exc).__name__}: {exc} [{request.method} {request.url.path}]",
    )

    return error_response(500, "Internal server error", "UNKNOWN_ERROR")
