"""Structured logging for crawler lambda compositions."""

import json
import logging
import os
import time
import uuid
from contextlib import contextmanager
from typing import Optional


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_obj = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "component": "crawler_lambdas",
        }

        # Add any extra fields from the log record
        if hasattr(record, "extra_fields"):
            log_obj.update(record.extra_fields)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class CompositionLogger:
    """Logger carrying a correlation id and per-step timing."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.correlation_id = str(uuid.uuid4())

    def info(self, message: str, **kwargs):
        self._log_with_context(logging.INFO, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log_with_context(logging.ERROR, message, **kwargs)

    def _log_with_context(self, level: int, message: str, **kwargs):
        extra_fields = {"correlation_id": self.correlation_id, **kwargs}
        self.logger.log(level, message, extra={"extra_fields": extra_fields})

    @contextmanager
    def step_timer(self, step: str, **context):
        """Log start, completion or failure of a composition step."""
        start_time = time.time()
        self.info(f"Starting composition step: {step}", step=step, **context)

        try:
            yield
        except Exception as e:
            self.error(
                f"Composition step failed: {step}",
                step=step,
                duration_seconds=time.time() - start_time,
                error=str(e),
                error_type=type(e).__name__,
                **context,
            )
            raise

        self.info(
            f"Composition step completed: {step}",
            step=step,
            duration_seconds=time.time() - start_time,
            **context,
        )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance.

    Args:
        name: Logger name (defaults to this module's name)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name or __name__)

    # Only configure if not already configured
    if not logger.handlers:
        handler = logging.StreamHandler()

        if (
            os.environ.get("ENABLE_STRUCTURED_LOGGING", "true").lower()
            == "true"
        ):
            formatter = StructuredFormatter()
        else:
            formatter = logging.Formatter(
                "[%(levelname)s] %(asctime)s.%(msecs)03dZ %(name)s - "
                "%(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )

        handler.setFormatter(formatter)
        logger.addHandler(handler)
        # Own handler; ancestors must not print the record again.
        logger.propagate = False

        level = os.environ.get("LOG_LEVEL", "INFO")
        logger.setLevel(getattr(logging, level, logging.INFO))

    return logger


def get_composition_logger(name: Optional[str] = None) -> CompositionLogger:
    """Get a composition logger with correlation and step timing."""
    return CompositionLogger(get_logger(name))
