"""Logging configuration for hosts embedding the tax lot engine.

The engine modules only ever call ``logging.getLogger(__name__)``; the
host decides where records go. ``configure_logging`` is the standard
setup: JSON lines on stdout with the current correlation ID attached.

Example:
    >>> from libs.common.logging.config import configure_logging
    >>> logger = configure_logging(component="tax_lot_engine", log_level="INFO")
    >>> logger.info("engine_started", extra={"context": {"default_method": "fifo"}})
"""

import logging
import sys
from typing import Optional

from libs.common.logging.context import get_correlation_id
from libs.common.logging.formatter import JSONFormatter


class CorrelationIdFilter(logging.Filter):
    """Stamps the current correlation ID onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def configure_logging(
    component: str,
    log_level: str = "INFO",
    include_context: bool = True,
) -> logging.Logger:
    """Configure structured JSON logging on the root logger.

    Existing root handlers are replaced so repeated calls do not
    duplicate output.

    Args:
        component: Name reported in every record (e.g., "tax_lot_engine").
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        include_context: Whether to include structured fields in output.

    Returns:
        The configured root logger.

    Raises:
        ValueError: If log_level is not a known level name.
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter(component=component, include_context=include_context))
    handler.addFilter(CorrelationIdFilter())

    root_logger.addHandler(handler)
    return root_logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger by name (typically ``__name__``)."""
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context_fields: object,
) -> None:
    """Log a message with structured fields under ``"context"``.

    Example:
        >>> log_with_context(logger, "INFO", "batch_replayed", portfolio_id="p-1", count=12)
    """
    log_method = getattr(logger, level.lower())
    log_method(message, extra={"context": context_fields})
