"""
Shared error handling for the field authorization layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class AccessLayerException(Exception):
    """Base exception for the authorization layer."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthorizationError(AccessLayerException):
    """No rule allowed the caller to use the operation."""

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)


class ResolverError(AccessLayerException):
    """The wrapped resolver reported a failure."""

    def __init__(self, error: Any, details: Optional[Dict[str, Any]] = None):
        self.error = error
        super().__init__("RESOLVER_ERROR", str(error), details)


class MalformedWhitelistError(AccessLayerException):
    """A whitelist branch was applied to a value that cannot be filtered."""

    def __init__(self, path: str, value: Any, details: Optional[Dict[str, Any]] = None):
        self.path = path
        details = dict(details or {})
        details.setdefault("field", path)
        details.setdefault("value_type", type(value).__name__)
        super().__init__(
            "MALFORMED_WHITELIST",
            f"Cannot filter field '{path}': expected an object, a list or null, "
            f"got {details['value_type']}",
            details
        )


class ValidationError(AccessLayerException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)
