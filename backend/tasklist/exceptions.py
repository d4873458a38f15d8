"""
Custom exception classes for the application.

Raised inside the remote store adapter and the task repository, converted
into ``Result`` errors at the repository boundary (services/errors.py), and
rendered as JSON by the global handlers in exception_handlers.py when they
reach the API layer.

Usage:
    from tasklist.exceptions import NotFoundError, InvalidArgumentError

    raise NotFoundError("Task")                       # "Task not found"
    raise NotFoundError("Task", action="delete")      # "... permission to delete it"
    raise InvalidArgumentError("Task title is required")
"""


class AppException(Exception):
    """
    Base exception class for application-level errors.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status code to return
        error_code: Machine-readable error code (matches ErrorCode values)
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or f"ERR_{status_code}"
        super().__init__(message)


class NotAuthenticatedError(AppException):
    """
    No valid session (401).

    Usage:
        raise NotAuthenticatedError()
        raise NotAuthenticatedError("Session expired")
    """

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="NOT_AUTHENTICATED",
        )


class InvalidArgumentError(AppException):
    """
    Invalid input caught before any remote call (400).

    Usage:
        raise InvalidArgumentError("Task title is required")
        raise InvalidArgumentError("Task ID is required")
    """

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=400,
            error_code="INVALID_ARGUMENT",
        )


class NotFoundError(AppException):
    """
    Resource not found, or a write affected zero rows (404).

    Usage:
        raise NotFoundError("Task")                    # "Task not found"
        raise NotFoundError("Task", action="update")
        # "Task not found or you do not have permission to update it"
    """

    def __init__(self, resource: str = "Resource", action: str | None = None):
        message = f"{resource} not found"
        if action:
            message = f"{message} or you do not have permission to {action} it"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
        )


class RemoteError(AppException):
    """
    Failure reported by the remote store (502).

    The store's own message is passed through unchanged; ``service`` is kept
    for logging.

    Usage:
        raise RemoteError("Supabase", "duplicate key value")  # "duplicate key value"
        raise RemoteError("Supabase Realtime")                # "Supabase Realtime error"
    """

    def __init__(self, service: str, reason: str | None = None):
        self.service = service
        self.reason = reason
        message = reason or f"{service} error"
        super().__init__(
            message=message,
            status_code=502,
            error_code="REMOTE_ERROR",
        )
