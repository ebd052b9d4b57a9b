"""Structured logging configuration for authbridge.

This module provides a structured logging setup using Python's standard
logging module with JSON formatting for production environments.
"""

import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

from authbridge.app.core.config import Settings

# Request-scoped context, populated by RequestIdMiddleware
_request_id_var: ContextVar[Optional[str]] = ContextVar("authbridge_request_id", default=None)
_client_ip_var: ContextVar[Optional[str]] = ContextVar("authbridge_client_ip", default=None)

_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "asctime", "timestamp", "logger", "level", "source", "taskName",
))


def set_log_context(request_id: Optional[str] = None, client_ip: Optional[str] = None) -> tuple:
    """Bind request context for log records emitted in this task.

    Args:
        request_id: Request ID of the current request
        client_ip: Already-masked client IP

    Returns:
        Tokens to pass to ``reset_log_context``
    """
    return (_request_id_var.set(request_id), _client_ip_var.set(client_ip))


def reset_log_context(tokens: tuple) -> None:
    """Restore the log context captured by ``set_log_context``."""
    request_token, ip_token = tokens
    _request_id_var.reset(request_token)
    _client_ip_var.reset(ip_token)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Outputs log records as JSON objects for consumption by log aggregation
    systems like ELK Stack or Grafana Loki.
    """

    CONTEXT_FIELDS = [
        "request_id",    # Request ID from X-Request-ID header
        "client_ip",     # Masked client address
        "path",          # Request path
        "method",        # HTTP method
        "status_code",   # HTTP response status
    ]

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string representation of the log record
        """
        record.message = record.getMessage()

        log_data: Dict[str, Any] = {
            "timestamp": datetime.now().astimezone().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None and value != "-":
                log_data[field] = value

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in self.CONTEXT_FIELDS:
                continue
            log_data.setdefault("extra", {})[key] = value

        if record.exc_info and record.exc_info != (None, None, None):
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Logging filter that adds request context to log records.

    Values bound with ``set_log_context`` win over defaults; fields passed
    explicitly through ``extra=`` are left untouched.
    """

    CONTEXT_DEFAULTS = {
        "request_id": "-",
        "client_ip": "-",
        "path": None,
        "method": None,
        "status_code": None,
    }

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context fields to log record if not present.

        Args:
            record: Log record to enrich

        Returns:
            True to allow the record through
        """
        if not hasattr(record, "request_id"):
            record.request_id = _request_id_var.get() or "-"
        if not hasattr(record, "client_ip"):
            record.client_ip = _client_ip_var.get() or "-"
        for field, default in self.CONTEXT_DEFAULTS.items():
            if not hasattr(record, field):
                setattr(record, field, default)
        return True


def get_logging_config(settings: Settings) -> Dict[str, Any]:
    """Get logging configuration dictionary.

    Args:
        settings: Application settings providing level and format

    Returns:
        Logging configuration dict compatible with logging.config.dictConfig
    """
    log_format = settings.log_format.lower()
    log_level = settings.log_level.upper()

    formatters: Dict[str, Any] = {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "structured": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s - request_id=%(request_id)s - client_ip=%(client_ip)s"
        },
    }

    if log_format == "json":
        formatters["json"] = {
            "()": "authbridge.app.core.logging.JSONFormatter",
        }
        default_formatter = "json"
    else:
        default_formatter = "structured" if log_format == "structured" else "standard"

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": default_formatter,
            "stream": sys.stdout,
            "filters": ["context"],
        },
        "error_console": {
            "class": "logging.StreamHandler",
            "level": "ERROR",
            "formatter": default_formatter,
            "stream": sys.stderr,
            "filters": ["context"],
        },
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {
            "context": {
                "()": "authbridge.app.core.logging.ContextFilter",
            },
        },
        "handlers": handlers,
        "loggers": {
            "authbridge": {
                "level": log_level,
                "handlers": ["console", "error_console"],
                "propagate": False,
            },
            "uvicorn": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
    }


def setup_logging(settings: Settings) -> None:
    """Configure logging for the application."""
    logging.config.dictConfig(get_logging_config(settings))

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = "authbridge") -> logging.Logger:
    """Get a logger instance with the specified name.

    Args:
        name: Logger name, defaults to "authbridge"

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
