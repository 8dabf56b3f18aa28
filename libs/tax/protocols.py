"""Protocol definitions for tax lot snapshot storage.

The engine never performs I/O. Hosts persist lot snapshots through any
object satisfying ``LotStore`` (browser journal bridge, database table,
JSON file, in-memory dict for tests).
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from libs.tax.models import TaxLot


@runtime_checkable
class LotStore(Protocol):
    """Protocol for loading and saving lot snapshots.

    Snapshots are keyed by portfolio and symbol. ``save_lots`` replaces the
    stored snapshot for the key as a whole; closed lots are kept.

    Example:
        >>> lots = store.load_lots("portfolio-1", "AAPL")
        >>> result = ledger.process_transaction(tx, lots)
        >>> store.save_lots("portfolio-1", "AAPL", result.lots)
    """

    def load_lots(self, portfolio_id: str, symbol: str) -> Sequence[TaxLot]:
        """Load the snapshot for a portfolio and symbol (empty if none)."""
        ...

    def save_lots(self, portfolio_id: str, symbol: str, lots: Sequence[TaxLot]) -> None:
        """Replace the snapshot for a portfolio and symbol."""
        ...


__all__ = [
    "LotStore",
]
