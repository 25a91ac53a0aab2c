"""Custom Exception Hierarchy.

Typed exceptions that map to error codes and HTTP status codes for
consistent API error responses.
"""

from typing import Any, Dict, List, Optional

from keygate.api_errors.config import ErrorCode, status_for


class KeygateAPIError(Exception):
    """Base exception for all Keygate API errors.

    All custom API exceptions inherit from this, allowing a single
    exception handler to catch the entire hierarchy.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_for(error_code)
        self.details = details or []
        self.headers = headers or {}


class NotFoundError(KeygateAPIError):
    """Raised when a requested resource does not exist."""

    def __init__(
        self,
        message: str = "Resource not found",
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
    ):
        details = []
        if resource_type or resource_id:
            details = [{"resource_type": resource_type, "resource_id": resource_id}]
        super().__init__(message, ErrorCode.NOT_FOUND, details)


class KeyLimitExceededError(KeygateAPIError):
    """Raised when an account already holds the maximum number of API keys."""

    def __init__(self, message: str = "API key limit reached", limit: Optional[int] = None):
        details = [{"limit": limit}] if limit is not None else None
        super().__init__(message, ErrorCode.KEY_LIMIT_EXCEEDED, details)
        self.limit = limit


class ServiceUnavailableError(KeygateAPIError):
    """Raised when a backing store cannot be reached."""

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message, ErrorCode.INFRASTRUCTURE_FAULT)
