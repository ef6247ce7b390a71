from __future__ import annotations

import datetime as dt
import json
import logging
import socket
import sys
import uuid
from logging.handlers import RotatingFileHandler
from typing import Any

from loguru import logger as loguru_logger

from raindrop_sync.core.time_utils import UTC

# Attributes present on every LogRecord; anything else came in through ``extra``.
_STANDARD_FIELDS = frozenset(
    {
        "args",
        "msg",
        "name",
        "levelno",
        "levelname",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "message",
    }
)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if not key.startswith("_") and key not in _STANDARD_FIELDS
    }


def _to_json(value: Any) -> str:
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record.

    Structured ``extra`` fields are nested under ``extra``; a ``correlation_id``
    (or its short form ``cid``) is lifted to the top level so a whole sync run
    can be filtered with one key.
    """

    def __init__(self, *, include_location: bool = True) -> None:
        super().__init__()
        self.include_location = include_location
        self.hostname = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": dt.datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self.hostname,
        }
        if self.include_location:
            payload["location"] = f"{record.module}:{record.funcName}:{record.lineno}"

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }

        extra = _extra_fields(record)
        correlation_id = extra.pop("correlation_id", None) or extra.pop("cid", None)
        if correlation_id:
            payload["correlation_id"] = correlation_id
        if extra:
            payload["extra"] = extra
        return json.dumps(payload, ensure_ascii=False, default=_to_json, separators=(",", ":"))


class InterceptHandler(logging.Handler):
    """Bridge stdlib log records into loguru sinks, keeping ``extra`` fields."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: int | str = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        loguru_logger.bind(logger_name=record.name, **_extra_fields(record)).opt(
            exception=record.exc_info, depth=6
        ).log(level, record.getMessage())


def setup_json_logging(
    level: str = "INFO",
    *,
    use_loguru: bool = False,
    log_file: str | None = None,
    max_file_size: str = "50 MB",
    retention: str = "14 days",
) -> None:
    """Configure structured logging for CLI and scheduler processes.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_loguru: Route stdlib records through loguru sinks
        log_file: Optional log file path for persistent logging
        max_file_size: Rotation size for the loguru file sink
        retention: Retention period for the loguru file sink
    """
    lvl = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(lvl)

    if use_loguru:
        loguru_logger.remove()
        loguru_logger.add(sys.stdout, level=level.upper(), serialize=True, backtrace=False)
        if log_file:
            loguru_logger.add(
                log_file,
                level=level.upper(),
                serialize=True,
                rotation=max_file_size,
                retention=retention,
                compression="gz",
                enqueue=True,
            )
        root.addHandler(InterceptHandler())
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(JsonLogFormatter())
        root.addHandler(console_handler)

        if log_file:
            file_handler = RotatingFileHandler(log_file, maxBytes=50 * 1024 * 1024, backupCount=5)
            file_handler.setFormatter(JsonLogFormatter())
            root.addHandler(file_handler)

    # httpx logs every request at INFO; the client logs its own retries.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "logging_initialized",
        extra={"level": level, "use_loguru": use_loguru, "log_file": log_file},
    )


def generate_correlation_id() -> str:
    """Generate a short correlation ID for tracing a sync run across logs."""
    return uuid.uuid4().hex[:12]


def truncate_log_content(content: str | None, max_length: int = 500) -> str | None:
    """Truncate large content (response bodies) for logs and error messages."""
    if not content:
        return content
    if len(content) <= max_length:
        return content
    return content[:max_length] + "... [truncated]"


__all__ = [
    "JsonLogFormatter",
    "InterceptHandler",
    "generate_correlation_id",
    "setup_json_logging",
    "truncate_log_content",
]
