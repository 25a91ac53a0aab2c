"""API error handling.

Error codes shared by the request pipeline and the HTTP layer, the
exception hierarchy, structured error responses and the ASGI error
middleware.
"""

from keygate.api_errors.config import (
    DEFAULT_ERROR_CONFIG,
    ERROR_SEVERITY_MAP,
    ERROR_STATUS_MAP,
    ErrorCode,
    ErrorConfig,
    ErrorSeverity,
    status_for,
)
from keygate.api_errors.exceptions import (
    KeygateAPIError,
    KeyLimitExceededError,
    NotFoundError,
    ServiceUnavailableError,
)
from keygate.api_errors.handlers import (
    ErrorResponse,
    create_error_response,
    log_error,
    register_exception_handlers,
)
from keygate.api_errors.middleware import ErrorHandlingMiddleware

__all__ = [
    # Config
    "DEFAULT_ERROR_CONFIG",
    "ERROR_SEVERITY_MAP",
    "ERROR_STATUS_MAP",
    "ErrorCode",
    "ErrorConfig",
    "ErrorSeverity",
    "status_for",
    # Exceptions
    "KeygateAPIError",
    "KeyLimitExceededError",
    "NotFoundError",
    "ServiceUnavailableError",
    # Handlers
    "ErrorResponse",
    "create_error_response",
    "log_error",
    "register_exception_handlers",
    # Middleware
    "ErrorHandlingMiddleware",
]
