"""Typed errors raised by the back-office services.

Every error carries an HTTP-like status code and a stable machine-readable
code. The HTTP layer maps these onto the JSON error envelope; services never
build responses themselves.
"""

from typing import Any, Optional


class BackofficeError(Exception):
    """Base exception for all back-office service errors."""

    status_code: int = 500
    default_code: str = "INTERNAL_SERVER_ERROR"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.code = code or self.default_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "statusCode": self.status_code,
            "message": self.message,
            "errorCode": self.code,
        }


class BadRequestError(BackofficeError):
    """Malformed input."""

    status_code = 400
    default_code = "BAD_REQUEST"
    default_message = "Bad request"


class UnauthorizedError(BackofficeError):
    """Bad credentials, inactive account, or an invalid token."""

    status_code = 401
    default_code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class ForbiddenError(BackofficeError):
    """Authenticated but not permitted."""

    status_code = 403
    default_code = "FORBIDDEN"
    default_message = "Forbidden"


class NotFoundError(BackofficeError):
    """Referenced entity does not exist."""

    status_code = 404
    default_code = "NOT_FOUND"
    default_message = "Not Found"


class ConflictError(BackofficeError):
    """Duplicate unique key."""

    status_code = 409
    default_code = "CONFLICT"
    default_message = "Conflict"


class ConfigurationError(ValueError):
    """Invalid configuration value detected at startup."""


class ConstraintViolation(Exception):
    """Raised by a repository when a storage-level uniqueness or FK constraint fails."""

    def __init__(self, message: str, detail: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}
