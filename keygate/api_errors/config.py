"""API Error Configuration.

Defines the error codes shared by the request pipeline and the HTTP
layer, their HTTP status codes and severity levels.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict


class ErrorCode(str, Enum):
    """Standardized error codes for gateway rejections and API errors."""

    # Credential errors (401)
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_CREDENTIAL = "invalid_credential"
    INACTIVE_CREDENTIAL = "inactive_credential"
    EXPIRED_CREDENTIAL = "expired_credential"

    # Plan errors (403)
    INACTIVE_PLAN = "inactive_plan"

    # Balance errors (402)
    INSUFFICIENT_BALANCE = "insufficient_balance"

    # Rate limit errors (429)
    RATE_LIMITED = "rate_limited"

    # Request errors (400 / 404)
    VALIDATION_ERROR = "validation_error"
    KEY_LIMIT_EXCEEDED = "key_limit_exceeded"
    NOT_FOUND = "not_found"

    # Server errors (500 / 503)
    DOWNSTREAM_ERROR = "downstream_error"
    INTERNAL_ERROR = "internal_error"
    INFRASTRUCTURE_FAULT = "infrastructure_fault"


class ErrorSeverity(Enum):
    """Severity levels for error logging."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Map error codes to HTTP status codes
ERROR_STATUS_MAP: Dict[ErrorCode, int] = {
    ErrorCode.MISSING_CREDENTIAL: 401,
    ErrorCode.INVALID_CREDENTIAL: 401,
    ErrorCode.INACTIVE_CREDENTIAL: 401,
    ErrorCode.EXPIRED_CREDENTIAL: 401,
    ErrorCode.INACTIVE_PLAN: 403,
    ErrorCode.INSUFFICIENT_BALANCE: 402,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.KEY_LIMIT_EXCEEDED: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.DOWNSTREAM_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.INFRASTRUCTURE_FAULT: 503,
}

# Map error codes to severity
ERROR_SEVERITY_MAP: Dict[ErrorCode, ErrorSeverity] = {
    ErrorCode.MISSING_CREDENTIAL: ErrorSeverity.LOW,
    ErrorCode.INVALID_CREDENTIAL: ErrorSeverity.MEDIUM,
    ErrorCode.INACTIVE_CREDENTIAL: ErrorSeverity.MEDIUM,
    ErrorCode.EXPIRED_CREDENTIAL: ErrorSeverity.LOW,
    ErrorCode.INACTIVE_PLAN: ErrorSeverity.MEDIUM,
    ErrorCode.INSUFFICIENT_BALANCE: ErrorSeverity.LOW,
    ErrorCode.RATE_LIMITED: ErrorSeverity.MEDIUM,
    ErrorCode.VALIDATION_ERROR: ErrorSeverity.LOW,
    ErrorCode.KEY_LIMIT_EXCEEDED: ErrorSeverity.LOW,
    ErrorCode.NOT_FOUND: ErrorSeverity.LOW,
    ErrorCode.DOWNSTREAM_ERROR: ErrorSeverity.HIGH,
    ErrorCode.INTERNAL_ERROR: ErrorSeverity.CRITICAL,
    ErrorCode.INFRASTRUCTURE_FAULT: ErrorSeverity.CRITICAL,
}


def status_for(error_code: ErrorCode) -> int:
    return ERROR_STATUS_MAP.get(error_code, 500)


@dataclass
class ErrorConfig:
    """Configuration for API error handling."""

    include_request_id: bool = True
    log_all_errors: bool = True
    suppress_internal_details: bool = True
    custom_error_messages: Dict[str, str] = field(default_factory=dict)


DEFAULT_ERROR_CONFIG = ErrorConfig()
