"""
Shared error handling for the Calendar MCP Access Layer.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def utc_timestamp() -> str:
    """ISO-8601 timestamp stamped onto every JSON response."""
    return datetime.now(timezone.utc).isoformat()


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=utc_timestamp)


class AccessLayerException(Exception):
    """Base exception for Access Layer services."""

    status_code = 400
    error = "Bad Request"

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            error=self.error,
            code=self.code,
            message=self.message,
            details=self.details,
        )

    def headers(self) -> Dict[str, str]:
        """Extra response headers carried by this error."""
        return {}


class ValidationError(AccessLayerException):
    """Validation-related errors. ``field`` names the offending input when known."""

    error = "Validation Error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        details = dict(details or {})
        if field is not None:
            details.setdefault("field", field)
        super().__init__("VALIDATION_ERROR", message, details)
        self.field = field
        if error is not None:
            self.error = error


class AuthenticationError(AccessLayerException):
    """Missing or incorrect credentials."""

    status_code = 401
    error = "Unauthorized"

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class OriginDeniedError(AccessLayerException):
    """Cross-origin request from an origin outside the allow-list."""

    status_code = 403
    error = "Forbidden"

    def __init__(self, message: str = "Origin not allowed", details: Optional[Dict[str, Any]] = None):
        super().__init__("ORIGIN_DENIED", message, details)


class NotFoundError(AccessLayerException):
    """Unknown route or resource."""

    status_code = 404
    error = "Not Found"

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class PayloadTooLargeError(AccessLayerException):
    """Declared request size above the configured maximum."""

    status_code = 413
    error = "Payload Too Large"

    def __init__(self, max_bytes: int, details: Optional[Dict[str, Any]] = None):
        message = f"Request size exceeds maximum allowed size of {max_bytes} bytes"
        super().__init__("PAYLOAD_TOO_LARGE", message, details)
        self.max_bytes = max_bytes


class RateLimitError(AccessLayerException):
    """Rate limiting errors."""

    status_code = 429
    error = "Too Many Requests"

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if retry_after is not None:
            details.setdefault("retry_after", retry_after)
        super().__init__("RATE_LIMIT_ERROR", message, details)
        self.retry_after = retry_after

    def headers(self) -> Dict[str, str]:
        if self.retry_after is None:
            return {}
        return {"Retry-After": str(self.retry_after)}


class InternalServiceError(AccessLayerException):
    """Unexpected failure. The message returned to callers stays generic."""

    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str = "Internal server error", details: Optional[Dict[str, Any]] = None):
        super().__init__("INTERNAL_ERROR", message, details)


class ConfigurationError(Exception):
    """Invalid startup configuration."""
