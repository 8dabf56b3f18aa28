"""JSON log formatter for structured engine logs.

Example log output:
    {
        "timestamp": "2023-11-01T10:30:00.000Z",
        "level": "INFO",
        "component": "tax_lot_engine",
        "correlation_id": "abc123-def456",
        "logger": "libs.tax.wash_sale_detector",
        "message": "wash_sale_detected",
        "context": {
            "symbol": "AAPL",
            "disallowed_loss": "3010.00"
        }
    }
"""

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RESERVED_FIELDS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "correlation_id",
        "context",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
        "asctime",
    }
)


class JSONFormatter(logging.Formatter):
    """Formatter that renders each record as one JSON object.

    Structured fields passed with ``extra={...}`` are collected under
    ``"context"``. Decimal and date values are rendered with ``str``.

    Attributes:
        component: Name of the component emitting logs.
        include_context: Whether to include extra context fields.

    Example:
        >>> handler = logging.StreamHandler()
        >>> handler.setFormatter(JSONFormatter(component="tax_lot_engine"))
        >>> logger.info("tax_lot_created", extra={"lot_id": "lot-1", "symbol": "AAPL"})
    """

    def __init__(
        self, component: str, include_context: bool = True, *args: Any, **kwargs: Any
    ) -> None:
        super().__init__(*args, **kwargs)
        self.component = component
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string."""
        log_entry: dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "component": self.component,
            "correlation_id": getattr(record, "correlation_id", None),
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_context:
            context = self._extract_context(record)
            if context:
                log_entry["context"] = context

        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
            }

        return json.dumps(log_entry, default=str)

    def _format_timestamp(self, created: float) -> str:
        """Format a record timestamp as ISO 8601 UTC with milliseconds."""
        dt = datetime.fromtimestamp(created, tz=UTC)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    def _extract_context(self, record: logging.LogRecord) -> dict[str, Any] | None:
        """Collect structured fields from the record.

        An explicit ``context`` dict wins; otherwise every non-reserved
        attribute that came in through ``extra=`` is used.
        """
        context = getattr(record, "context", None)
        if context and isinstance(context, dict):
            return dict(context)

        extra = {
            key: value for key, value in record.__dict__.items() if key not in _RESERVED_FIELDS
        }
        return extra or None
