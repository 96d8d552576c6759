"""Structured logging configuration.

JSON logs for production log aggregation, a readable format for local
development, and helpers for attaching report context and timing the
pipeline stages.
"""
import logging
import json
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import traceback


# Attributes passed through ``extra=`` that are copied into JSON output
CONTEXT_FIELDS = (
    "request_id",
    "student_id",
    "report_type",
    "range_key",
    "subject_id",
    "operation",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "error_type",
)


class JSONFormatter(logging.Formatter):
    """Render each record as a single JSON object.

    Includes timestamp, level, logger, message and source location, plus any
    of the known context fields supplied through ``extra``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_obj["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info)
            }

        for attr in CONTEXT_FIELDS:
            if hasattr(record, attr):
                log_obj[attr] = getattr(record, attr)

        return json.dumps(log_obj, default=str)


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that merges a fixed context into every record.

    Example:
        >>> logger = ContextLogger(base_logger, {"student_id": "s-1"})
        >>> logger.info("Composing report")
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(level: str = "INFO", json_format: bool = False) -> logging.Logger:
    """Configure the root logger with a single stdout handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use the JSON formatter instead of the plain one

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    if json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
    root_logger.addHandler(console_handler)

    return root_logger


def get_logger(name: str, context: Optional[Dict[str, Any]] = None):
    """Return a module logger, wrapped in a ContextLogger when context is given."""
    logger = logging.getLogger(name)
    if context:
        return ContextLogger(logger, context)
    return logger


class LogTimer:
    """Context manager that logs how long an operation took.

    Example:
        >>> with LogTimer(logger, "load_snapshot"):
        ...     repository.load()
        # Logs: "load_snapshot completed in 12.4ms"
    """

    def __init__(self, logger, operation: str, level: int = logging.DEBUG, **context: Any):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.context = context
        self.start: Optional[float] = None
        self.duration_ms: float = 0.0

    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.perf_counter() - self.start) * 1000
        extra = {"operation": self.operation, "duration_ms": round(self.duration_ms, 2), **self.context}

        if exc_type:
            self.logger.error(
                f"{self.operation} failed after {self.duration_ms:.1f}ms",
                extra={**extra, "error_type": exc_type.__name__},
                exc_info=(exc_type, exc_val, exc_tb)
            )
        else:
            self.logger.log(self.level, f"{self.operation} completed in {self.duration_ms:.1f}ms", extra=extra)
        return False
