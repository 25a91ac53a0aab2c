"""Logging Configuration.

Settings for structured logging, log levels and output formats.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


@dataclass
class LoggingConfig:
    """Structured logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    include_caller: bool = True
    exclude_paths: List[str] = field(default_factory=lambda: ["/health"])
    service_name: str = "keygate"

    @classmethod
    def from_settings(cls, settings) -> "LoggingConfig":
        """Build from the application settings, ignoring unknown values."""
        level = settings.log_level.upper()
        fmt = settings.log_format.lower()
        return cls(
            level=LogLevel(level) if level in LogLevel.__members__ else LogLevel.INFO,
            format=LogFormat(fmt) if fmt in [f.value for f in LogFormat] else LogFormat.JSON,
            service_name=settings.service_name,
        )


DEFAULT_LOGGING_CONFIG = LoggingConfig()
