"""Tax lot ledger: the single entry point for transaction processing.

The ledger takes an immutable lot snapshot for one portfolio and symbol
plus a transaction, and returns a new snapshot together with the derived
allocation and wash sale records. It performs no I/O; committing the
returned snapshot is the caller's job (see ``libs.tax.lot_service``).

Transactions against the same portfolio and symbol must be applied one at
a time, in transaction-date order, each against the previous call's
output. ``apply_transactions`` does exactly that for a batch.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal

from libs.common.exceptions import InsufficientLotsError, InvalidTransactionError
from libs.tax.allocation import allocate_disposal
from libs.tax.config import TaxLotSettings
from libs.tax.config import settings as default_settings
from libs.tax.holding_period import total_cost_basis, unrealized_pnl
from libs.tax.models import (
    TaxLot,
    TaxLotAllocation,
    TaxLotMethod,
    TaxTransaction,
    TransactionResult,
    TransactionType,
    UnrealizedPnL,
    WashSaleAnalysis,
    WashSaleStatus,
)
from libs.tax.wash_sale_detector import WashSaleDetector

logger = logging.getLogger(__name__)


def _default_lot_id() -> str:
    return f"lot_{uuid.uuid4().hex}"


@dataclass(frozen=True)
class BatchResult:
    """Output of replaying a batch of transactions.

    Attributes:
        lots: Final snapshot across every portfolio/symbol touched.
        allocations: All allocations, in application order.
        wash_sale_analyses: Analysis per disposal, keyed by transaction id.
    """

    lots: tuple[TaxLot, ...]
    allocations: tuple[TaxLotAllocation, ...] = ()
    wash_sale_analyses: dict[str, WashSaleAnalysis] = field(default_factory=dict)


class TaxLotLedger:
    """Processes acquisitions and disposals against a lot snapshot.

    Example:
        >>> ledger = TaxLotLedger()
        >>> result = ledger.process_transaction(buy_tx, [])
        >>> lots = result.lots
        >>> result = ledger.process_transaction(sell_tx, lots, TaxLotMethod.HIFO)
        >>> for alloc in result.allocations:
        ...     print(alloc.lot_id, alloc.realized_gain_loss)
    """

    def __init__(
        self,
        settings: TaxLotSettings | None = None,
        *,
        id_factory: Callable[[], str] | None = None,
        wash_sale_detector: WashSaleDetector | None = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            settings: Policy settings (module defaults when omitted).
            id_factory: Generates ids for new lots.
            wash_sale_detector: Detector to use; built from settings when omitted.
        """
        self._settings = settings or default_settings
        self._id_factory = id_factory or _default_lot_id
        self._wash_detector = wash_sale_detector or WashSaleDetector(
            window_days=self._settings.wash_sale_window_days
        )

    @property
    def default_method(self) -> TaxLotMethod:
        return self._settings.default_method

    def process_transaction(
        self,
        transaction: TaxTransaction,
        existing_lots: Sequence[TaxLot],
        method: TaxLotMethod | None = None,
        specific_lot_ids: Sequence[str] | None = None,
    ) -> TransactionResult:
        """Apply one transaction to a lot snapshot.

        Args:
            transaction: Acquisition or disposal.
            existing_lots: Snapshot for the transaction's portfolio and symbol.
            method: Lot selection method (defaults to the configured method).
            specific_lot_ids: Lot order for SPECIFIC identification.

        Returns:
            TransactionResult with the new snapshot and derived records.

        Raises:
            InvalidTransactionError: If the transaction or snapshot is invalid.
            InsufficientLotsError: If a disposal exceeds the open quantity.
        """
        transaction = self._normalize(transaction)
        existing_lots = tuple(existing_lots)
        self._validate(transaction, existing_lots)

        if transaction.transaction_type.is_acquisition:
            return self._process_acquisition(transaction, existing_lots)
        return self._process_disposal(
            transaction,
            existing_lots,
            method or self.default_method,
            specific_lot_ids,
        )

    def _normalize(self, transaction: TaxTransaction) -> TaxTransaction:
        # Broker feeds report disposals with negative quantities
        if transaction.quantity < 0:
            return replace(transaction, quantity=abs(transaction.quantity))
        return transaction

    def _validate(self, transaction: TaxTransaction, lots: Sequence[TaxLot]) -> None:
        if transaction.price < 0:
            raise InvalidTransactionError(
                f"price must be >= 0, got {transaction.price} ({transaction.transaction_id})"
            )
        if transaction.fees < 0:
            raise InvalidTransactionError(
                f"fees must be >= 0, got {transaction.fees} ({transaction.transaction_id})"
            )
        if transaction.price == 0 and transaction.transaction_type in (
            TransactionType.BUY,
            TransactionType.SELL,
        ):
            raise InvalidTransactionError(
                f"{transaction.transaction_type.value} requires a positive price "
                f"({transaction.transaction_id})"
            )
        if transaction.transaction_type.is_disposal and transaction.quantity == 0:
            raise InvalidTransactionError(
                f"disposal quantity must be positive ({transaction.transaction_id})"
            )

        for lot in lots:
            if lot.symbol != transaction.symbol or lot.portfolio_id != transaction.portfolio_id:
                raise InvalidTransactionError(
                    f"Lot {lot.lot_id} ({lot.portfolio_id}/{lot.symbol}) does not match "
                    f"transaction {transaction.transaction_id} "
                    f"({transaction.portfolio_id}/{transaction.symbol})"
                )

    def _process_acquisition(
        self,
        transaction: TaxTransaction,
        existing_lots: tuple[TaxLot, ...],
    ) -> TransactionResult:
        quantity = transaction.quantity
        if quantity == 0:
            # Zero-size lot keeps the transaction in the audit history
            cost_basis_per_share = Decimal(0)
        else:
            cost_basis_per_share = transaction.price + transaction.fees / quantity

        lot = TaxLot(
            lot_id=self._id_factory(),
            symbol=transaction.symbol,
            quantity=quantity,
            cost_basis_per_share=cost_basis_per_share,
            total_cost_basis=quantity * cost_basis_per_share,
            acquisition_date=transaction.settlement_date,
            portfolio_id=transaction.portfolio_id,
            is_open=quantity > 0,
            wash_sale_status=WashSaleStatus.NONE,
            trade_id=transaction.trade_id or transaction.transaction_id,
        )

        logger.info(
            "tax_lot_created",
            extra={
                "lot_id": lot.lot_id,
                "transaction_id": transaction.transaction_id,
                "portfolio_id": lot.portfolio_id,
                "symbol": lot.symbol,
                "quantity": str(lot.quantity),
                "cost_basis_per_share": str(lot.cost_basis_per_share),
            },
        )

        return TransactionResult(updated_lots=existing_lots, new_lots=(lot,))

    def _process_disposal(
        self,
        transaction: TaxTransaction,
        existing_lots: tuple[TaxLot, ...],
        method: TaxLotMethod,
        specific_lot_ids: Sequence[str] | None,
    ) -> TransactionResult:
        try:
            allocation = allocate_disposal(
                transaction,
                existing_lots,
                method,
                specific_lot_ids,
                long_term_threshold_days=self._settings.long_term_threshold_days,
            )
        except InsufficientLotsError as exc:
            logger.warning(
                "disposal_rejected_insufficient_lots",
                extra={
                    "transaction_id": transaction.transaction_id,
                    "portfolio_id": transaction.portfolio_id,
                    "symbol": transaction.symbol,
                    "requested": str(exc.requested),
                    "available": str(exc.available),
                    "shortfall": str(exc.shortfall),
                },
            )
            raise

        outcome = self._wash_detector.analyze(
            transaction, allocation.allocations, allocation.updated_lots
        )

        logger.info(
            "disposal_processed",
            extra={
                "transaction_id": transaction.transaction_id,
                "portfolio_id": transaction.portfolio_id,
                "symbol": transaction.symbol,
                "method": method.value,
                "quantity": str(transaction.quantity),
                "lots_consumed": len(outcome.allocations),
                "wash_sale": outcome.analysis.has_wash_sale,
            },
        )

        return TransactionResult(
            updated_lots=outcome.lots,
            allocations=outcome.allocations,
            wash_sale_analysis=outcome.analysis,
        )

    def apply_transactions(
        self,
        transactions: Iterable[TaxTransaction],
        lots: Sequence[TaxLot] = (),
        method: TaxLotMethod | None = None,
    ) -> BatchResult:
        """Replay a batch of transactions in transaction-date order.

        Transactions are sorted by (transaction_date, settlement_date), ties
        keeping feed order, and applied one at a time against the snapshot
        of their portfolio and symbol. Any failure aborts the whole batch;
        the input snapshot is never modified.

        Args:
            transactions: Transactions in any order.
            lots: Starting snapshot (may span portfolios and symbols).
            method: Lot selection method for every disposal.

        Returns:
            BatchResult with the final snapshot and all derived records.
        """
        ordered = sorted(
            transactions, key=lambda tx: (tx.transaction_date, tx.settlement_date)
        )

        books: dict[tuple[str, str], tuple[TaxLot, ...]] = {}
        for lot in lots:
            key = (lot.portfolio_id, lot.symbol)
            books[key] = books.get(key, ()) + (lot,)

        allocations: list[TaxLotAllocation] = []
        analyses: dict[str, WashSaleAnalysis] = {}

        for transaction in ordered:
            key = (transaction.portfolio_id, transaction.symbol)
            result = self.process_transaction(transaction, books.get(key, ()), method)
            books[key] = result.lots
            allocations.extend(result.allocations)
            if result.wash_sale_analysis is not None:
                analyses[transaction.transaction_id] = result.wash_sale_analysis

        logger.info(
            "transaction_batch_applied",
            extra={
                "transactions": len(ordered),
                "books": len(books),
                "allocations": len(allocations),
                "wash_sales": sum(1 for a in analyses.values() if a.has_wash_sale),
            },
        )

        return BatchResult(
            lots=tuple(lot for book in books.values() for lot in book),
            allocations=tuple(allocations),
            wash_sale_analyses=analyses,
        )

    def total_cost_basis(self, lots: Iterable[TaxLot], symbol: str) -> Decimal:
        """Total cost basis of the open lots of ``symbol``."""
        return total_cost_basis(lots, symbol)

    def unrealized_pnl(
        self,
        lots: Iterable[TaxLot],
        symbol: str,
        current_price: Decimal,
        as_of: date,
    ) -> UnrealizedPnL:
        """Unrealized P&L for ``symbol`` using the configured long-term cutoff."""
        return unrealized_pnl(
            lots,
            symbol,
            current_price,
            as_of,
            long_term_threshold_days=self._settings.long_term_threshold_days,
        )


__all__ = [
    "BatchResult",
    "TaxLotLedger",
]
