"""Tests for structured logging and request tracing."""

import json
import logging
import sys

import pytest

from keygate.logging_config.config import LogFormat, LoggingConfig, LogLevel
from keygate.logging_config.context import (
    LogContext,
    bind_context,
    generate_request_id,
    get_context_dict,
    get_correlation_id,
    get_request_id,
)
from keygate.logging_config.setup import (
    ConsoleFormatter,
    StructuredFormatter,
    configure_logging,
)
from keygate.settings import Settings


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("keygate.test", level, __file__, 10, msg, None, None, func="fn")
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLoggingConfig:
    def test_defaults(self):
        config = LoggingConfig()
        assert config.level == LogLevel.INFO
        assert config.format == LogFormat.JSON
        assert config.exclude_paths == ["/health"]
        assert config.service_name == "keygate"

    def test_from_settings(self):
        settings = Settings(_env_file=None, log_level="debug", log_format="console", service_name="edge")
        config = LoggingConfig.from_settings(settings)
        assert config.level == LogLevel.DEBUG
        assert config.format == LogFormat.CONSOLE
        assert config.service_name == "edge"

    def test_from_settings_ignores_unknown_values(self):
        settings = Settings(_env_file=None, log_level="loud", log_format="xml")
        config = LoggingConfig.from_settings(settings)
        assert config.level == LogLevel.INFO
        assert config.format == LogFormat.JSON


class TestContext:
    def test_generate_request_id_unique(self):
        assert generate_request_id() != generate_request_id()

    def test_log_context_binds_and_restores(self):
        assert get_request_id() == ""
        with LogContext(request_id="req-1") as ctx:
            assert get_request_id() == "req-1"
            assert get_correlation_id() == "req-1"
            ctx.bind(account_id="acct_1")
            assert get_context_dict()["account_id"] == "acct_1"
        assert get_request_id() == ""
        assert "account_id" not in get_context_dict()

    def test_nested_contexts(self):
        with LogContext(request_id="outer", correlation_id="corr"):
            with LogContext(request_id="inner", correlation_id=get_correlation_id()):
                bind_context(key_id="k1")
                assert get_context_dict() == {
                    "request_id": "inner",
                    "correlation_id": "corr",
                    "key_id": "k1",
                }
            assert get_request_id() == "outer"
            assert "key_id" not in get_context_dict()

    def test_elapsed_ms(self):
        with LogContext() as ctx:
            assert ctx.elapsed_ms >= 0


class TestFormatters:
    def test_structured_formatter(self):
        formatter = StructuredFormatter(service_name="keygate")
        with LogContext(request_id="req-9"):
            line = formatter.format(make_record(status_code=429, state="rejected"))
        data = json.loads(line)
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["service"] == "keygate"
        assert data["request_id"] == "req-9"
        assert data["status_code"] == 429
        assert data["state"] == "rejected"
        assert data["function"] == "fn"

    def test_structured_formatter_without_caller(self):
        data = json.loads(StructuredFormatter(include_caller=False).format(make_record()))
        assert "module" not in data

    def test_structured_formatter_exception(self):
        try:
            raise ValueError("bad input")
        except ValueError:
            record = make_record(level=logging.ERROR)
            record.exc_info = sys.exc_info()
        data = json.loads(StructuredFormatter().format(record))
        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "bad input"

    def test_console_formatter(self):
        with LogContext(request_id="req-7"):
            line = ConsoleFormatter().format(make_record("console line"))
        assert "console line" in line
        assert "request_id=req-7" in line
        assert "INFO" in line


class TestConfigureLogging:
    def test_json_handler_installed(self, restore_root_logger, monkeypatch):
        monkeypatch.delenv("KEYGATE_LOG_LEVEL", raising=False)
        monkeypatch.delenv("KEYGATE_LOG_FORMAT", raising=False)
        config = configure_logging(LoggingConfig(level=LogLevel.WARNING))
        assert config.level == LogLevel.WARNING
        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)

    def test_environment_overrides(self, restore_root_logger, monkeypatch):
        monkeypatch.setenv("KEYGATE_LOG_LEVEL", "debug")
        monkeypatch.setenv("KEYGATE_LOG_FORMAT", "console")
        config = configure_logging(LoggingConfig())
        assert config.level == LogLevel.DEBUG
        assert config.format == LogFormat.CONSOLE
        assert isinstance(restore_root_logger.handlers[0].formatter, ConsoleFormatter)

    def test_noisy_loggers_quieted(self, restore_root_logger):
        configure_logging(LoggingConfig(level=LogLevel.DEBUG))
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
