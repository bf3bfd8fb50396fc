"""Domain-specific exceptions for the Blog API."""

from typing import Any


class BlogAPIError(Exception):
    """Base exception for all Blog API errors."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception with context."""
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result: dict[str, Any] = {
            "detail": self.message,
            "type": self.__class__.__name__,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(BlogAPIError):
    """Malformed input or a duplicate identity."""

    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(BlogAPIError):
    """Request credentials are missing or cannot be trusted."""

    status_code = 401
    default_message = "Authentication required"


class MissingTokenError(AuthenticationError):
    """No usable bearer token on the request."""

    status_code = 401
    default_message = "Access token required"


class InvalidTokenError(AuthenticationError):
    """Token signature or structure did not verify."""

    status_code = 403
    default_message = "Invalid or expired token"


class ExpiredTokenError(AuthenticationError):
    """Token verified but its lease has run out."""

    status_code = 403
    default_message = "Invalid or expired token"


class AuthorizationError(BlogAPIError):
    """Caller is authenticated but does not own the resource."""

    status_code = 403
    default_message = "Not authorized to modify this post"


class NotFoundError(BlogAPIError):
    """Requested identity or article does not exist."""

    status_code = 404
    default_message = "Resource not found"


class UploadError(BlogAPIError):
    """Image was rejected or the storage provider failed."""

    status_code = 500
    default_message = "Failed to upload image"


class StorageError(BlogAPIError):
    """Record store is unreachable or misbehaving."""

    status_code = 503
    default_message = "Storage service unavailable"


class ConfigurationError(BlogAPIError):
    """Error related to configuration issues."""
