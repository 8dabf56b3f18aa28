"""Service layer that commits ledger results to a lot store.

The ledger is pure; this service supplies the serialization discipline it
relies on. Each (portfolio, symbol) book has its own lock, held across
load -> process -> save, so two concurrent disposals can never allocate the
same shares. The snapshot is saved only after the ledger returns
successfully; a rejected transaction leaves the stored book untouched.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence

from libs.common.logging.context import LogContext
from libs.tax.lot_ledger import TaxLotLedger
from libs.tax.models import TaxLot, TaxLotMethod, TaxTransaction, TransactionResult
from libs.tax.protocols import LotStore

logger = logging.getLogger(__name__)


class InMemoryLotStore:
    """Dict-backed LotStore for tests and single-process hosts."""

    def __init__(self, lots: Iterable[TaxLot] = ()) -> None:
        self._books: dict[tuple[str, str], tuple[TaxLot, ...]] = {}
        self._lock = threading.Lock()
        for lot in lots:
            key = (lot.portfolio_id, lot.symbol)
            self._books[key] = self._books.get(key, ()) + (lot,)

    def load_lots(self, portfolio_id: str, symbol: str) -> tuple[TaxLot, ...]:
        with self._lock:
            return self._books.get((portfolio_id, symbol), ())

    def save_lots(self, portfolio_id: str, symbol: str, lots: Sequence[TaxLot]) -> None:
        with self._lock:
            self._books[(portfolio_id, symbol)] = tuple(lots)

    def all_lots(self) -> tuple[TaxLot, ...]:
        """Every stored lot across all books."""
        with self._lock:
            return tuple(lot for book in self._books.values() for lot in book)


class TaxLotService:
    """Records transactions against stored lot books, one book at a time.

    Example:
        >>> service = TaxLotService(InMemoryLotStore())
        >>> service.record_transaction(buy_tx)
        >>> result = service.record_transaction(sell_tx, TaxLotMethod.HIFO)
    """

    def __init__(self, store: LotStore, ledger: TaxLotLedger | None = None) -> None:
        """Initialize with a store and an optional ledger.

        Args:
            store: Any LotStore implementation (Protocol).
            ledger: Ledger to process with (default settings when omitted).

        Raises:
            TypeError: If store does not implement LotStore.
        """
        if not isinstance(store, LotStore):
            raise TypeError(f"store must implement LotStore, got {type(store).__name__}")
        self._store = store
        self._ledger = ledger or TaxLotLedger()
        self._book_locks: dict[tuple[str, str], threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, portfolio_id: str, symbol: str) -> threading.Lock:
        with self._registry_lock:
            key = (portfolio_id, symbol)
            if key not in self._book_locks:
                self._book_locks[key] = threading.Lock()
            return self._book_locks[key]

    def record_transaction(
        self,
        transaction: TaxTransaction,
        method: TaxLotMethod | None = None,
        specific_lot_ids: Sequence[str] | None = None,
    ) -> TransactionResult:
        """Load the book, apply the transaction and save the new snapshot.

        Args:
            transaction: Transaction to record.
            method: Lot selection method for disposals.
            specific_lot_ids: Lot order for SPECIFIC identification.

        Returns:
            The ledger's TransactionResult.

        Raises:
            InvalidTransactionError: If the ledger rejects the transaction.
            InsufficientLotsError: If a disposal exceeds open quantity.
        """
        with self._lock_for(transaction.portfolio_id, transaction.symbol):
            lots = self._store.load_lots(transaction.portfolio_id, transaction.symbol)
            result = self._ledger.process_transaction(
                transaction, lots, method, specific_lot_ids
            )
            self._store.save_lots(transaction.portfolio_id, transaction.symbol, result.lots)

        logger.info(
            "tax_lot_book_saved",
            extra={
                "transaction_id": transaction.transaction_id,
                "portfolio_id": transaction.portfolio_id,
                "symbol": transaction.symbol,
                "lots": len(result.lots),
            },
        )
        return result

    def record_transactions(
        self,
        transactions: Iterable[TaxTransaction],
        method: TaxLotMethod | None = None,
    ) -> list[TransactionResult]:
        """Record a feed of transactions in transaction-date order.

        Each transaction is committed on its own; the first failure stops
        the feed and leaves earlier transactions recorded.

        Args:
            transactions: Transactions in any order.
            method: Lot selection method for disposals.

        Returns:
            Results in the order the transactions were applied.
        """
        ordered = sorted(
            transactions, key=lambda tx: (tx.transaction_date, tx.settlement_date)
        )
        results: list[TransactionResult] = []

        with LogContext():
            for transaction in ordered:
                try:
                    results.append(self.record_transaction(transaction, method))
                except Exception:
                    logger.error(
                        "transaction_feed_stopped",
                        extra={
                            "transaction_id": transaction.transaction_id,
                            "recorded": len(results),
                            "remaining": len(ordered) - len(results),
                        },
                        exc_info=True,
                    )
                    raise

        return results


__all__ = [
    "InMemoryLotStore",
    "TaxLotService",
]
