"""Structured logging and request tracing."""

from keygate.logging_config.config import LogFormat, LoggingConfig, LogLevel
from keygate.logging_config.context import (
    LogContext,
    bind_context,
    generate_request_id,
    get_context_dict,
    get_request_id,
)
from keygate.logging_config.middleware import RequestTracingMiddleware
from keygate.logging_config.setup import ConsoleFormatter, StructuredFormatter, configure_logging

__all__ = [
    "ConsoleFormatter",
    "LogContext",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "RequestTracingMiddleware",
    "StructuredFormatter",
    "bind_context",
    "configure_logging",
    "generate_request_id",
    "get_context_dict",
    "get_request_id",
]
