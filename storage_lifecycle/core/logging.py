"""
Structured logging configuration with JSON formatter.

This module provides:
- JSONFormatter for structured JSON logging
- ContextualLogger for job-scoped context (job_id, job_type, ...)
- setup_logging to configure the engine's root logger
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Attributes present on every LogRecord; anything else came from ``extra=``.
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "message", "taskName",
})


class JSONFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON documents.

    Example output:
    {
        "timestamp": "2025-01-19T10:30:45.123456+00:00",
        "level": "INFO",
        "logger": "storage_lifecycle.storage.executor",
        "message": "Phase delete finished",
        "job_id": "5f0c...",
        "job_type": "user_erasure"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_entry[key] = self._serialize_value(value)

        return json.dumps(log_entry, default=str, ensure_ascii=False)

    @staticmethod
    def _serialize_value(value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, bytes):
            return f"<binary data: {len(value)} bytes>"
        if isinstance(value, Exception):
            return {"type": type(value).__name__, "message": str(value)}
        return value


class ContextualLogger:
    """
    Wrapper for logger that adds contextual information to all log messages.

    Usage:
        logger = ContextualLogger(logging.getLogger(__name__))
        job_logger = logger.bind(job_id=job.id, job_type=job.job_type)
        job_logger.info("Processing job")  # Will include job_id and job_type
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        self.logger = logger
        self.context: Dict[str, Any] = dict(context or {})

    def bind(self, **kwargs) -> "ContextualLogger":
        """Return a new logger carrying this context plus ``kwargs``."""
        return ContextualLogger(self.logger, {**self.context, **kwargs})

    def _log_with_context(self, level: int, msg: str, *args, **kwargs):
        extra = dict(self.context)
        extra.update(kwargs.pop("extra", {}) or {})
        self.logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self._log_with_context(logging.ERROR, msg, *args, **kwargs)


def setup_logging(level: str = "INFO", json_output: bool = True) -> logging.Logger:
    """
    Configure the ``storage_lifecycle`` logger hierarchy.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Emit JSON lines instead of plain text

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("storage_lifecycle")
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str, **context) -> ContextualLogger:
    """Get a contextual logger for ``name`` (typically __name__)."""
    return ContextualLogger(logging.getLogger(name), context)
