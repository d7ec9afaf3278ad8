"""Logging helpers."""

from elastic_repository.core.logging.structured import (
    StructuredFormatter,
    StructuredLogger,
    configure_logging_from_settings,
    get_logger,
    operation_context,
    setup_structured_logging,
)

__all__ = [
    "StructuredFormatter",
    "StructuredLogger",
    "configure_logging_from_settings",
    "get_logger",
    "operation_context",
    "setup_structured_logging",
]
