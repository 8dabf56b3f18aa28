"""Structured logging for the tax lot engine.

Usage:
    # At host startup
    from libs.common.logging import configure_logging
    configure_logging(component="tax_lot_engine", log_level="INFO")

    # Around a batch replay
    from libs.common.logging import LogContext
    with LogContext():
        ledger.apply_transactions(transactions, lots)
"""

from libs.common.logging.config import (
    CorrelationIdFilter,
    configure_logging,
    get_logger,
    log_with_context,
)
from libs.common.logging.context import (
    LogContext,
    clear_correlation_id,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from libs.common.logging.formatter import JSONFormatter

__all__ = [
    # Configuration
    "configure_logging",
    "get_logger",
    "log_with_context",
    "CorrelationIdFilter",
    # Correlation ID management
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "LogContext",
    # Formatter
    "JSONFormatter",
]
