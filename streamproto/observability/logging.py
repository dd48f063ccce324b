"""
streamproto - Structured JSON Logging

Structured logging with automatic stream context injection.

Features:
- JSON-formatted logs for easy parsing
- Automatic context injection (request_id, stream_id, provider, model)
- Log level and format configurable via environment
- Sensitive data redaction

Usage:
    from streamproto.observability.logging import setup_logging, get_logger

    setup_logging(level="INFO")

    logger = get_logger(__name__)
    logger.warning("Malformed chunk", correlation_id="chatcmpl-123")

Output:
    {"timestamp": "2024-01-15T10:30:00+00:00", "level": "WARNING",
     "logger": "streamproto.streaming.normalizer", "message": "Malformed chunk",
     "correlation_id": "chatcmpl-123", "request_id": "req_xyz"}
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Union

from ..config import get_settings

_stream_context: ContextVar[Optional["LogContext"]] = ContextVar("stream_log_context", default=None)


@dataclass
class LogContext:
    """
    Logging context with correlation IDs.

    Stored in a contextvar so concurrent streams keep separate contexts.
    """
    request_id: str = ""
    stream_id: str = ""
    provider: str = ""
    model: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def get_current(cls) -> Optional["LogContext"]:
        """Get current log context."""
        return _stream_context.get()

    @classmethod
    def set_current(cls, ctx: "LogContext"):
        """Set current log context."""
        _stream_context.set(ctx)

    @classmethod
    def clear(cls):
        """Clear current log context."""
        _stream_context.set(None)

    def update(self, **kwargs):
        """Update context fields."""
        for key, value in kwargs.items():
            if key != "extra" and hasattr(self, key):
                setattr(self, key, value)
            else:
                self.extra[key] = value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        if self.request_id:
            result["request_id"] = self.request_id
        if self.stream_id:
            result["stream_id"] = self.stream_id
        if self.provider:
            result["provider"] = self.provider
        if self.model:
            result["model"] = self.model
        result.update(self.extra)
        return result


@contextmanager
def log_context(**fields) -> Iterator[LogContext]:
    """
    Layer context fields over the current LogContext for a block.

    The outer context (e.g. a request id set by middleware) is kept and
    restored on exit.

    Usage:
        with log_context(stream_id="chatcmpl-123", provider="openai"):
            logger.info("Stream started")  # includes stream_id and provider
    """
    parent = LogContext.get_current()
    ctx = replace(parent, extra=dict(parent.extra)) if parent else LogContext()
    ctx.update(**fields)
    LogContext.set_current(ctx)
    try:
        yield ctx
    finally:
        _stream_context.set(parent)


# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename",
    "funcName", "levelname", "levelno", "lineno",
    "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info",
    "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName",
}


class JSONFormatter(logging.Formatter):
    """JSON log formatter with automatic context injection."""

    SENSITIVE_FIELDS = {
        "password", "secret", "token", "api_key", "apikey",
        "authorization", "credential", "private_key",
    }

    def __init__(
        self,
        include_location: bool = False,
        redact_sensitive: bool = True,
    ):
        super().__init__()
        self.include_location = include_location
        self.redact_sensitive = redact_sensitive

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_location:
            log_data["location"] = f"{record.filename}:{record.lineno}"

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        ctx = LogContext.get_current()
        if ctx:
            log_data.update(ctx.to_dict())

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if self.redact_sensitive and self._is_sensitive(key):
                value = "[REDACTED]"
            log_data[key] = value

        return json.dumps(log_data, default=str, ensure_ascii=False)

    def _is_sensitive(self, field_name: str) -> bool:
        """Check if field name indicates sensitive data."""
        field_lower = field_name.lower()
        # token counts are telemetry, not credentials
        if field_lower.endswith("_tokens") or field_lower == "tokens":
            return False
        return any(sensitive in field_lower for sensitive in self.SENSITIVE_FIELDS)


class StructuredLogger:
    """
    Structured logger wrapper.

    Keyword arguments other than exc_info/stack_info/stacklevel become
    structured extra fields.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def isEnabledFor(self, level: int) -> bool:
        _ensure_configured()
        return self._logger.isEnabledFor(level)

    def _log(self, level: int, msg: str, *args, **kwargs):
        extra = dict(kwargs.pop("extra", {}))

        for key in list(kwargs.keys()):
            if key not in {"exc_info", "stack_info", "stacklevel"}:
                extra[key] = kwargs.pop(key)

        kwargs["extra"] = extra
        _ensure_configured()
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        """Log exception with traceback."""
        kwargs["exc_info"] = True
        self._log(logging.ERROR, msg, *args, **kwargs)


_logging_configured = False


def setup_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = True,
    include_location: bool = False,
    redact_sensitive: bool = True,
) -> None:
    """
    Setup structured logging for the streamproto logger tree.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Use JSON formatter (True) or standard formatter (False)
        include_location: Include filename:lineno in logs
        redact_sensitive: Redact sensitive fields like api keys
    """
    global _logging_configured

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    package_logger = logging.getLogger("streamproto")
    package_logger.setLevel(level)

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if json_output:
        formatter: logging.Formatter = JSONFormatter(
            include_location=include_location,
            redact_sensitive=redact_sensitive,
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    package_logger.addHandler(handler)

    _logging_configured = True


def _ensure_configured() -> None:
    """
    Configure logging from settings the first time a record is emitted.

    Invalid LOG_LEVEL/LOG_FORMAT values fall back to the defaults and are
    reported once, so logging never breaks a stream.
    """
    if _logging_configured:
        return
    try:
        settings = get_settings()
    except ValueError as e:
        setup_logging()
        logging.getLogger("streamproto").warning(
            "Invalid logging settings, using defaults",
            extra={"error": str(e)},
        )
        return
    setup_logging(
        level=settings.log_level,
        json_output=settings.log_format == "json",
    )


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger.

    Logging is configured lazily, on the first emitted record, so importing
    a module never reads the environment.
    """
    return StructuredLogger(logging.getLogger(name))
