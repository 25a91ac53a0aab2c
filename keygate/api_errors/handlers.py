"""Exception Handlers & Error Response Builder.

Provides FastAPI exception handlers and a standardized error
response builder for consistent API error formatting.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from keygate.api_errors.config import (
    DEFAULT_ERROR_CONFIG,
    ERROR_SEVERITY_MAP,
    ErrorCode,
    ErrorConfig,
    ErrorSeverity,
    status_for,
)
from keygate.api_errors.exceptions import KeygateAPIError

logger = logging.getLogger(__name__)


@dataclass
class ErrorResponse:
    """Structured error response envelope."""

    code: str
    message: str
    status_code: int = 500
    details: List[Dict[str, Any]] = field(default_factory=list)
    request_id: Optional[str] = None
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp,
            }
        }
        if self.details:
            body["error"]["details"] = self.details
        if self.request_id:
            body["error"]["request_id"] = self.request_id
        return body


def create_error_response(
    error_code: ErrorCode,
    message: str,
    details: Optional[List[Dict[str, Any]]] = None,
    request_id: Optional[str] = None,
    status_code: Optional[int] = None,
) -> ErrorResponse:
    """Build a standardized ErrorResponse from components."""
    return ErrorResponse(
        code=error_code.value,
        message=message,
        status_code=status_code or status_for(error_code),
        details=details or [],
        request_id=request_id,
    )


def _get_request_id() -> str:
    from keygate.logging_config.context import get_request_id

    return get_request_id()


def log_error(
    error_code: ErrorCode,
    message: str,
    status_code: int,
    config: Optional[ErrorConfig] = None,
) -> None:
    """Log the error at the level matching its severity."""
    config = config or DEFAULT_ERROR_CONFIG
    if not config.log_all_errors:
        return

    severity = ERROR_SEVERITY_MAP.get(error_code, ErrorSeverity.MEDIUM)
    log_msg = f"API Error [{error_code.value}] ({status_code}): {message}"

    if severity == ErrorSeverity.CRITICAL:
        logger.critical(log_msg)
    elif severity == ErrorSeverity.HIGH:
        logger.error(log_msg)
    elif severity == ErrorSeverity.MEDIUM:
        logger.warning(log_msg)
    else:
        logger.info(log_msg)


def handle_keygate_error(exc: KeygateAPIError, config: Optional[ErrorConfig] = None) -> ErrorResponse:
    """Handle a KeygateAPIError and produce an ErrorResponse."""
    config = config or DEFAULT_ERROR_CONFIG
    request_id = _get_request_id() if config.include_request_id else None
    message = config.custom_error_messages.get(exc.error_code.value, exc.message)

    log_error(exc.error_code, message, exc.status_code, config)

    return create_error_response(
        error_code=exc.error_code,
        message=message,
        details=exc.details,
        request_id=request_id,
        status_code=exc.status_code,
    )


def handle_unhandled_error(exc: Exception, config: Optional[ErrorConfig] = None) -> ErrorResponse:
    """Handle any unhandled exception with a safe 500 response."""
    config = config or DEFAULT_ERROR_CONFIG
    request_id = _get_request_id() if config.include_request_id else None

    logger.exception(f"Unhandled exception: {type(exc).__name__}: {exc}")

    message = "An internal error occurred"
    if not config.suppress_internal_details:
        message = f"{type(exc).__name__}: {str(exc)}"

    return create_error_response(
        error_code=ErrorCode.INTERNAL_ERROR,
        message=message,
        request_id=request_id,
    )


def register_exception_handlers(app: Any, config: Optional[ErrorConfig] = None) -> None:
    """Register all exception handlers on a FastAPI application.

    Args:
        app: FastAPI application instance.
        config: Error handling configuration.
    """
    config = config or DEFAULT_ERROR_CONFIG
    app.state.error_config = config

    @app.exception_handler(KeygateAPIError)
    async def _keygate_error(request: Request, exc: KeygateAPIError) -> JSONResponse:
        error_response = handle_keygate_error(exc, config)
        return JSONResponse(
            status_code=error_response.status_code,
            content=error_response.to_dict(),
            headers=exc.headers or None,
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "issue": err.get("msg", "")}
            for err in exc.errors()
        ]
        error_response = create_error_response(
            ErrorCode.VALIDATION_ERROR,
            "Request validation failed",
            details=details,
            request_id=_get_request_id() if config.include_request_id else None,
        )
        log_error(ErrorCode.VALIDATION_ERROR, error_response.message, 400, config)
        return JSONResponse(status_code=error_response.status_code, content=error_response.to_dict())

    logger.info("Registered Keygate API exception handlers")
