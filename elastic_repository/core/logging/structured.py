"""Structured logging configuration.

Features:
- JSON formatted logs for aggregation
- Keyword context attached to every record
- Operation correlation across repository calls
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

# Context variables for operation tracking
operation_var: ContextVar[Optional[str]] = ContextVar("operation", default=None)
index_var: ContextVar[Optional[str]] = ContextVar("index", default=None)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(
        self,
        service_name: str = "elastic-repository",
        environment: str = "production",
        include_stack_trace: bool = True,
    ):
        super().__init__()
        self.service_name = service_name
        self.environment = environment
        self.include_stack_trace = include_stack_trace

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
        }

        if operation := operation_var.get():
            log_entry["operation"] = operation
        if index := index_var.get():
            log_entry["index"] = index

        if hasattr(record, "extra_fields"):
            log_entry["extra"] = record.extra_fields

        if record.exc_info and self.include_stack_trace:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_entry, default=str)


class StructuredLogger:
    """Logger accepting keyword context: ``logger.error("msg", index="users")``."""

    def __init__(self, name: str, level: Optional[int] = None):
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(level)
        self._extra_fields: Dict[str, Any] = {}

    @property
    def name(self) -> str:
        return self.logger.name

    def _log(
        self, level: int, message: str, extra: Optional[Dict[str, Any]] = None
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        record = self.logger.makeRecord(
            self.logger.name,
            level,
            "(unknown)",
            0,
            message,
            (),
            None,
        )
        if extra:
            record.extra_fields = {**self._extra_fields, **extra}
        elif self._extra_fields:
            record.extra_fields = self._extra_fields
        self.logger.handle(record)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, kwargs if kwargs else None)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, kwargs if kwargs else None)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, kwargs if kwargs else None)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, kwargs if kwargs else None)

    def critical(self, message: str, **kwargs: Any) -> None:
        self._log(logging.CRITICAL, message, kwargs if kwargs else None)

    def with_fields(self, **fields: Any) -> "StructuredLogger":
        """Return a new logger with additional context fields."""
        new_logger = StructuredLogger(self.logger.name)
        new_logger._extra_fields = {**self._extra_fields, **fields}
        return new_logger


def setup_structured_logging(
    service_name: str = "elastic-repository",
    environment: str = "production",
    level: int = logging.INFO,
    json_output: bool = True,
) -> None:
    """Configure structured logging for the application."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if json_output:
        formatter: logging.Formatter = StructuredFormatter(
            service_name=service_name,
            environment=environment,
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name)


@contextmanager
def operation_context(operation: str, index: Optional[str] = None) -> Iterator[None]:
    """Tag every record emitted inside the block with the repository operation."""
    operation_token = operation_var.set(operation)
    index_token = index_var.set(index)
    try:
        yield
    finally:
        index_var.reset(index_token)
        operation_var.reset(operation_token)


def configure_logging_from_settings(settings: Optional[Any] = None) -> None:
    """Configure root logging from ``LOG_LEVEL`` / ``LOG_JSON`` settings."""
    from elastic_repository.core.config import get_settings

    settings = settings or get_settings()
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    setup_structured_logging(
        level=level if isinstance(level, int) else logging.INFO,
        json_output=settings.LOG_JSON,
    )
