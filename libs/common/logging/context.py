"""Correlation ID propagation for engine log records.

A correlation ID groups every log line emitted while one batch of
transactions is replayed, or while one transaction is recorded through
the lot service, so an audit trail can be reassembled from the logs.

Example:
    >>> from libs.common.logging.context import LogContext, get_correlation_id
    >>> with LogContext("replay-2023") as correlation_id:
    ...     get_correlation_id() == correlation_id
    True
"""

import contextvars
import uuid
from types import TracebackType

_correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def generate_correlation_id() -> str:
    """Generate a new correlation ID (UUID v4 string)."""
    return str(uuid.uuid4())


def get_correlation_id() -> str | None:
    """Get the correlation ID bound to the current context, if any."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Bind a correlation ID to the current context.

    Raises:
        ValueError: If correlation_id is empty.
    """
    if not correlation_id:
        raise ValueError("Correlation ID cannot be empty")
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    """Remove the correlation ID from the current context."""
    _correlation_id_var.set(None)


class LogContext:
    """Context manager for a scoped correlation ID.

    Restores the previously bound ID (or clears it) on exit.

    Example:
        >>> with LogContext() as correlation_id:
        ...     ledger.apply_transactions(transactions, lots)
    """

    def __init__(self, correlation_id: str | None = None) -> None:
        self.correlation_id = correlation_id or generate_correlation_id()
        self.previous_correlation_id: str | None = None

    def __enter__(self) -> str:
        self.previous_correlation_id = get_correlation_id()
        set_correlation_id(self.correlation_id)
        return self.correlation_id

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self.previous_correlation_id is not None:
            set_correlation_id(self.previous_correlation_id)
        else:
            clear_correlation_id()
