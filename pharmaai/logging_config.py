"""
PharmaAI - Structured Logging Configuration
===========================================
JSON-formatted structured logging with UI-session context.

Features:
- JSON output for log aggregation
- Session-scoped context (session_id, user_id, page)
- Performance tracking around Gemini calls (duration_ms)
- Log level filtering via environment

Usage:
    from pharmaai.logging_config import get_logger, log_event

    logger = get_logger(__name__)
    logger.info("Inventory imported", extra={"product_count": 12})

    log_event("recommendation_generated", inventory_size=12, duration_ms=845)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
import time
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pharmaai.config import settings


class LogLevel(str, Enum):
    """Standard log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# Context (thread-local; Streamlit runs each session script in its own thread)
# =============================================================================


class LogContext:
    """Thread-local storage for session-scoped log context."""

    _local = threading.local()
    _FIELDS = ("session_id", "user_id", "page", "duration_ms")

    @classmethod
    def set(cls, name: str, value: Any) -> None:
        if name not in cls._FIELDS:
            raise KeyError(f"Unknown log context field: {name}")
        setattr(cls._local, name, value)

    @classmethod
    def get(cls, name: str) -> Any:
        return getattr(cls._local, name, None)

    @classmethod
    def set_session_id(cls, session_id: str | None) -> None:
        cls.set("session_id", session_id)

    @classmethod
    def get_session_id(cls) -> str | None:
        return cls.get("session_id")

    @classmethod
    def set_user_id(cls, user_id: str | None) -> None:
        cls.set("user_id", user_id)

    @classmethod
    def set_page(cls, page: str | None) -> None:
        cls.set("page", page)

    @classmethod
    def clear(cls) -> None:
        """Clear all context."""
        for name in cls._FIELDS:
            setattr(cls._local, name, None)

    @classmethod
    def get_all(cls) -> dict[str, Any]:
        """Get all context as a dict."""
        return {name: cls.get(name) for name in cls._FIELDS}


# =============================================================================
# JSON Formatter
# =============================================================================

_STANDARD_ATTRS = frozenset(
    {
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "lineno", "funcName", "created", "msecs",
        "relativeCreated", "thread", "threadName", "processName",
        "process", "getMessage", "exc_info", "exc_text", "stack_info",
        "taskName",
    }
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter with timestamps, levels and contextual fields."""

    def __init__(
        self,
        *,
        service_name: str = "pharmaai",
        environment: str = "production",
        include_extra_fields: bool = True,
    ) -> None:
        super().__init__()
        self.service_name = service_name
        self.environment = environment
        self.include_extra_fields = include_extra_fields
        self._iso_format = "%Y-%m-%dT%H:%M:%S.%fZ"

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_entry: dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
        }

        if record.pathname:
            log_entry["file"] = Path(record.pathname).name
            log_entry["line"] = record.lineno
            log_entry["function"] = record.funcName

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        for key, value in LogContext.get_all().items():
            if value is not None:
                log_entry[key] = value

        if self.include_extra_fields:
            for key, value in record.__dict__.items():
                if key not in _STANDARD_ATTRS and not key.startswith("_"):
                    log_entry[key] = value

        return json.dumps(log_entry, default=str, ensure_ascii=False)

    def _format_timestamp(self, created: float) -> str:
        """Format Unix timestamp to ISO 8601 string."""
        dt = datetime.fromtimestamp(created, tz=timezone.utc)
        return dt.strftime(self._iso_format)


# =============================================================================
# Console Formatter (human-readable, used in debug mode)
# =============================================================================


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output during development."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        level_color = self.LEVEL_COLORS.get(record.levelname, "")
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        session_id = LogContext.get_session_id() or "-"

        base = (
            f"{level_color}{record.levelname:<8}{self.RESET} "
            f"{timestamp} "
            f"[{session_id[:8]}] "
            f"{record.name}: "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            base += "\n" + "".join(traceback.format_exception(*record.exc_info))

        return base


# =============================================================================
# Logger Factory
# =============================================================================


def _get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def _should_use_json() -> bool:
    """Determine if JSON logging should be used."""
    log_format = os.environ.get("LOG_FORMAT", "").lower()
    if log_format == "console":
        return False
    if log_format == "json":
        return True
    return not settings.debug_mode


_configured = False


def configure_logging(
    *,
    level: str | int | None = None,
    service_name: str = "pharmaai",
    environment: str = "production",
    log_format: str | None = None,
) -> None:
    """
    Configure the root logger with structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Service name for log identification
        environment: Environment label (production, development)
        log_format: Format type ("json" or "console")
    """
    global _configured

    resolved_level = _get_log_level() if level is None else _convert_level(level)
    root = logging.getLogger()
    root.setLevel(resolved_level)
    root.handlers.clear()

    use_json = _should_use_json() if log_format is None else log_format == "json"

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved_level)
    if use_json:
        handler.setFormatter(StructuredFormatter(service_name=service_name, environment=environment))
    else:
        handler.setFormatter(ConsoleFormatter())

    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger, configuring structured output on first use."""
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


def _convert_level(level: str | int) -> int:
    """Convert log level string to int constant."""
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


# =============================================================================
# Helper Functions
# =============================================================================


def log_event(
    event_name: str,
    level: str | LogLevel = LogLevel.INFO,
    **extra_fields: Any,
) -> None:
    """
    Log a structured event with additional fields.

    Example:
        log_event("user_logged_in", role="pharmacist")
    """
    logger = get_logger("pharmaai.event")
    level_name = level.value if isinstance(level, LogLevel) else str(level)
    log_func = getattr(logger, level_name.lower(), logger.info)
    log_func(event_name, extra=extra_fields)


def log_error(
    event_name: str,
    exc: Exception | None = None,
    **extra_fields: Any,
) -> None:
    """Log an error event with optional exception info."""
    logger = get_logger("pharmaai.error")
    if exc is not None:
        extra_fields.setdefault("error_type", type(exc).__name__)
        logger.error(event_name, exc_info=(type(exc), exc, exc.__traceback__), extra=extra_fields)
    else:
        logger.error(event_name, extra=extra_fields)


# =============================================================================
# Context Managers
# =============================================================================


class LogContextManager:
    """
    Sets session-scoped log context for one Streamlit script run.

    Example:
        with LogContextManager(session_id=sid, page="recommend"):
            render_page()
    """

    def __init__(
        self,
        *,
        session_id: str | None = None,
        user_id: str | None = None,
        page: str | None = None,
    ) -> None:
        self.session_id = session_id or str(uuid.uuid4())
        self.user_id = user_id
        self.page = page

    def __enter__(self) -> LogContextManager:
        LogContext.set_session_id(self.session_id)
        LogContext.set_user_id(self.user_id)
        LogContext.set_page(self.page)
        return self

    def __exit__(self, *args: Any) -> None:
        LogContext.clear()


class PerformanceTracker:
    """
    Context manager for tracking operation performance.

    Example:
        with PerformanceTracker("gemini_generate", model="gemini-2.5-flash"):
            response = client.models.generate_content(...)
    """

    def __init__(self, operation: str, **extra_fields: Any) -> None:
        self.operation = operation
        self.extra = extra_fields
        self._start_time: float | None = None

    @property
    def duration_ms(self) -> float | None:
        return self.extra.get("duration_ms")

    def __enter__(self) -> PerformanceTracker:
        self._start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if self._start_time is None:
            return

        self.extra["duration_ms"] = round((time.perf_counter() - self._start_time) * 1000, 2)
        logger = get_logger("pharmaai.performance")
        if exc_type is not None:
            self.extra["error"] = str(exc)
            logger.warning(f"{self.operation}_failed", extra=self.extra)
        else:
            logger.info(f"{self.operation}_completed", extra=self.extra)
