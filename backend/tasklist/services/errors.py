"""
Result/error normalization for the service layer.

Provides:
1. ErrorCode taxonomy and the structured ErrorInfo
2. Result, the ``{data, error}`` shape returned by the task repository
3. classify_error() / handle_error() to convert exceptions at the boundary
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

import httpx
from postgrest.exceptions import APIError as PostgrestAPIError

from tasklist.exceptions import AppException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Error taxonomy shared by the repository, controller and API layer."""
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    NOT_FOUND = "NOT_FOUND"
    REMOTE_ERROR = "REMOTE_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


STATUS_CODES: Dict[ErrorCode, int] = {
    ErrorCode.NOT_AUTHENTICATED: 401,
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.REMOTE_ERROR: 502,
    ErrorCode.UNKNOWN_ERROR: 500,
}

# Client-side mistakes are logged as warnings, everything else as errors
_WARNING_CODES = {
    ErrorCode.NOT_AUTHENTICATED,
    ErrorCode.INVALID_ARGUMENT,
    ErrorCode.NOT_FOUND,
}


# =============================================================================
# Structured Error Info
# =============================================================================

@dataclass(frozen=True)
class ErrorInfo:
    """Structured, user-facing error."""

    error_type: ErrorCode
    message: str
    remote_code: Optional[str] = None  # PostgREST / Postgres error code

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.error_type]

    def to_log_dict(self) -> Dict[str, Any]:
        """Convert to a log dict (None values dropped)."""
        return {
            k: v
            for k, v in {
                "error_type": self.error_type.value,
                "status_code": self.status_code,
                "remote_code": self.remote_code,
            }.items()
            if v is not None
        }


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a repository operation: exactly one of ``data`` / ``error``.

    Usage:
        result = await repository.create_task("buy milk")
        if result.error:
            show(result.error.message)
        else:
            task = result.data
    """

    data: Optional[T] = None
    error: Optional[ErrorInfo] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T) -> "Result[T]":
        return cls(data=data)

    @classmethod
    def failure(cls, error: ErrorInfo) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return ``data`` or raise the error as an AppException (API layer)."""
        if self.error is not None:
            raise AppException(
                self.error.message,
                status_code=self.error.status_code,
                error_code=self.error.error_type.value,
            )
        return self.data


# =============================================================================
# Error Classification
# =============================================================================

def classify_error(e: Exception) -> ErrorInfo:
    """
    Classify an exception into structured error info.

    Args:
        e: Exception raised by the store, the repository or the SDKs below

    Returns:
        ErrorInfo with a user-facing message
    """
    if isinstance(e, AppException):
        try:
            error_type = ErrorCode(e.error_code)
        except ValueError:
            error_type = ErrorCode.UNKNOWN_ERROR
        return ErrorInfo(error_type=error_type, message=e.message)

    # PostgREST rejection (RLS violation, constraint, bad filter...)
    if isinstance(e, PostgrestAPIError):
        return ErrorInfo(
            error_type=ErrorCode.REMOTE_ERROR,
            message=e.message or "Remote store request failed",
            remote_code=e.code,
        )

    if isinstance(e, httpx.TimeoutException):
        return ErrorInfo(
            error_type=ErrorCode.REMOTE_ERROR,
            message="Request to the remote store timed out, please retry",
        )

    if isinstance(e, httpx.HTTPError):
        return ErrorInfo(
            error_type=ErrorCode.REMOTE_ERROR,
            message="Could not reach the remote store, check the network",
        )

    return ErrorInfo(
        error_type=ErrorCode.UNKNOWN_ERROR,
        message=format_error_message(e),
    )


# =============================================================================
# Error Handling Utilities
# =============================================================================

def handle_error(
    e: Exception,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> Result[Any]:
    """
    Classify, log, and wrap an exception into a failed Result.

    Usage:
        try:
            ...
        except Exception as e:
            return handle_error(e, "create task", {"user_id": user_id})
    """
    info = classify_error(e)

    log_data = info.to_log_dict()
    if context:
        log_data.update(context)

    log_msg = f"{operation} failed: {info.message}"
    if log_data:
        log_msg += f" | {log_data}"

    extra = {"error": info.message}
    if context and context.get("user_id"):
        extra["user_id"] = context["user_id"]

    if info.error_type in _WARNING_CODES:
        logger.warning(log_msg, extra=extra)
    else:
        logger.error(log_msg, extra=extra, exc_info=info.error_type is ErrorCode.UNKNOWN_ERROR)

    return Result.failure(info)


def format_error_message(e: Exception, default: str = "") -> str:
    """
    Format an exception as a user-facing message.

    Args:
        e: Exception instance
        default: Fallback when the exception carries no message

    Returns:
        Formatted message
    """
    if isinstance(e, AppException):
        return e.message

    msg = str(e)
    if msg:
        return f"{type(e).__name__}: {msg}"

    if default:
        return f"{default} ({type(e).__name__})"

    return type(e).__name__
