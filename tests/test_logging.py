"""Tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from authbridge.app.core.config import Settings
from authbridge.app.core.logging import (
    ContextFilter,
    JSONFormatter,
    get_logger,
    get_logging_config,
    reset_log_context,
    set_log_context,
    setup_logging,
)


def make_record(msg: str = "Test message", level: int = logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


def make_settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        """Test basic JSON formatting."""
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_context(self):
        """Test that request context fields are top-level."""
        record = make_record("Request processed")
        record.request_id = "req-123"
        record.client_ip = "10.0.*.*"
        record.status_code = 429

        data = json.loads(JSONFormatter().format(record))

        assert data["request_id"] == "req-123"
        assert data["client_ip"] == "10.0.*.*"
        assert data["status_code"] == 429

    def test_placeholder_context_is_omitted(self):
        record = make_record()
        ContextFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert "request_id" not in data
        assert "client_ip" not in data
        assert "path" not in data

    def test_json_format_with_extra_fields(self):
        """Test JSON formatting with extra custom fields."""
        record = make_record("Custom event")
        record.bucket = "sign-in"
        record.remaining = 0

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"]["bucket"] == "sign-in"
        assert data["extra"]["remaining"] == 0

    def test_json_format_with_exception(self):
        """Test JSON formatting with exception info."""
        try:
            raise ValueError("Test error")
        except ValueError:
            record = make_record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert "ValueError" in data["exception"]
        assert "Test error" in data["exception"]

    def test_json_format_unicode(self):
        """Test JSON formatting with unicode characters."""
        data = json.loads(JSONFormatter().format(make_record("Unicode message: 你好世界 🌍")))
        assert "你好世界 🌍" in data["message"]


class TestContextFilter:
    """Test context filter for adding default fields."""

    def test_adds_default_fields(self):
        """Test that context filter adds default fields."""
        record = make_record()

        assert ContextFilter().filter(record) is True
        assert record.request_id == "-"
        assert record.client_ip == "-"
        assert record.path is None
        assert record.method is None
        assert record.status_code is None

    def test_preserves_existing_values(self):
        """Test that context filter preserves existing values."""
        record = make_record()
        record.request_id = "existing-request-id"
        record.path = "/iam/sign-in/email"

        ContextFilter().filter(record)

        assert record.request_id == "existing-request-id"
        assert record.path == "/iam/sign-in/email"

    def test_uses_bound_context(self):
        tokens = set_log_context("req-bound", "192.168.*.*")
        try:
            record = make_record()
            ContextFilter().filter(record)
        finally:
            reset_log_context(tokens)

        assert record.request_id == "req-bound"
        assert record.client_ip == "192.168.*.*"

        record = make_record()
        ContextFilter().filter(record)
        assert record.request_id == "-"


class TestGetLoggingConfig:
    """Test logging configuration generation."""

    def test_default_text_format(self):
        """Test default text format configuration."""
        config = get_logging_config(make_settings(log_format="text", log_level="INFO"))

        assert "standard" in config["formatters"]
        assert "structured" in config["formatters"]
        assert "json" not in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "standard"

    def test_structured_format(self):
        """Test structured format configuration."""
        config = get_logging_config(make_settings(log_format="structured", log_level="debug"))

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert config["handlers"]["console"]["level"] == "DEBUG"

    def test_json_format(self):
        """Test JSON format configuration."""
        config = get_logging_config(make_settings(log_format="JSON", log_level="WARNING"))

        assert "json" in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["handlers"]["console"]["level"] == "WARNING"

    def test_context_filter_added(self):
        """Test that context filter is added to handlers."""
        config = get_logging_config(make_settings())

        assert "context" in config["filters"]
        assert "context" in config["handlers"]["console"]["filters"]
        assert config["loggers"]["authbridge"]["propagate"] is False


class TestGetLogger:
    """Test get_logger function."""

    def test_get_logger_default_name(self):
        assert get_logger().name == "authbridge"

    def test_get_logger_custom_name(self):
        assert get_logger("custom.module").name == "custom.module"


class TestIntegration:
    """Integration tests for logging system."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        yield
        setup_logging(make_settings())

    def test_json_logging_output(self, capsys):
        """Test actual JSON logging output."""
        setup_logging(make_settings(log_format="json", log_level="INFO"))
        logger = get_logger("authbridge.integration")

        tokens = set_log_context("req-integration", "10.0.*.*")
        try:
            logger.info("Integration test", extra={"bucket": "sign-in"})
        finally:
            reset_log_context(tokens)

        data = json.loads(capsys.readouterr().out.strip())

        assert data["level"] == "INFO"
        assert data["logger"] == "authbridge.integration"
        assert data["message"] == "Integration test"
        assert data["request_id"] == "req-integration"
        assert data["client_ip"] == "10.0.*.*"
        assert data["extra"]["bucket"] == "sign-in"
