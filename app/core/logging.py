"""
app/core/logging.py

Purpose: Logging configuration

- Standardizes log format
- Controls log levels
- Structured JSON logging in production
- Context tracking (user_id, intent, state)
"""

import logging
from contextvars import ContextVar
from typing import Any, Dict
import sys
import json
from datetime import datetime
from app.core.config import settings


# Record attributes copied into structured output when present
CONTEXT_FIELDS = ("user_id", "intent", "state", "match_type", "event_id")


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for production so logs are parseable by monitoring tools.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """
    Human-readable formatter for development environment.
    """

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        message = f"{color}[{timestamp}] {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        context_parts = []
        if hasattr(record, "user_id"):
            context_parts.append(f"user={record.user_id}")
        if hasattr(record, "intent"):
            context_parts.append(f"intent={record.intent}")
        if hasattr(record, "state"):
            context_parts.append(f"state={record.state}")

        if context_parts:
            message += f" [{', '.join(context_parts)}]"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


def setup_logging():
    """
    Configures application-wide logging with appropriate formatters.
    Uses JSON format in production, human-readable in development.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)

    if settings.is_production:
        formatter = StructuredFormatter()
    else:
        formatter = DevelopmentFormatter()

    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("motor").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger = logging.getLogger("toki")
    logger.info(
        "Logging configured",
        extra={
            "environment": settings.ENVIRONMENT,
            "log_level": settings.LOG_LEVEL,
            "debug_mode": settings.DEBUG
        }
    )

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(f"toki.{name}")


_log_context: ContextVar[Dict[str, Any]] = ContextVar("toki_log_context", default={})


class ContextFilter(logging.Filter):
    """
    Copies the active LogContext onto each record.

    Keys already on the record (for example from `extra=`) are left alone.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class LogContext:
    """
    Context manager for adding structured context to logs.

    The context lives in a ContextVar, so concurrent turns on the event loop
    each see only their own fields.

    Usage:
        with LogContext(user_id="+2348012345678", intent="fund"):
            logger.info("Composing funding options")
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self._token = None

    def __enter__(self):
        self._token = _log_context.set({**_log_context.get(), **self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)


def current_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())
