"""Disposal allocation against open tax lots.

Open lots are ordered by the chosen method and consumed greedily until the
disposal quantity is covered. All work happens on a working copy; the
input snapshot is never modified and nothing is returned unless the whole
quantity was allocated.

Ordering (stable, ties keep input/creation order):
- FIFO: ascending acquisition date
- LIFO: descending acquisition date
- HIFO: descending cost basis per share (minimizes gain / maximizes loss)
- LOFO: ascending cost basis per share
- SPECIFIC: caller-supplied order, no re-sort
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from libs.common.exceptions import InsufficientLotsError, InvalidTransactionError
from libs.tax.config import LONG_TERM_THRESHOLD_DAYS
from libs.tax.holding_period import holding_period_days, is_long_term
from libs.tax.models import TaxLot, TaxLotAllocation, TaxLotMethod, TaxTransaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationResult:
    """Lots after a disposal plus the per-lot allocations, in consumption order."""

    updated_lots: tuple[TaxLot, ...]
    allocations: tuple[TaxLotAllocation, ...]

    @property
    def consumed_lot_ids(self) -> frozenset[str]:
        return frozenset(alloc.lot_id for alloc in self.allocations)


def sort_lots_by_method(
    lots: Sequence[TaxLot],
    method: TaxLotMethod,
    specific_lot_ids: Sequence[str] | None = None,
) -> list[TaxLot]:
    """Order lots for consumption.

    Args:
        lots: Candidate lots in creation order.
        method: Selection method.
        specific_lot_ids: For SPECIFIC only, the lot ids in the order the
            caller wants them consumed. When omitted, ``lots`` is used as given.

    Returns:
        A new list in consumption order.

    Raises:
        InvalidTransactionError: If a specific lot id is not among ``lots``.
    """
    if method == TaxLotMethod.FIFO:
        return sorted(lots, key=lambda lot: lot.acquisition_date)
    if method == TaxLotMethod.LIFO:
        # reverse=True keeps equal keys in input order
        return sorted(lots, key=lambda lot: lot.acquisition_date, reverse=True)
    if method == TaxLotMethod.HIFO:
        return sorted(lots, key=lambda lot: lot.cost_basis_per_share, reverse=True)
    if method == TaxLotMethod.LOFO:
        return sorted(lots, key=lambda lot: lot.cost_basis_per_share)
    if method == TaxLotMethod.SPECIFIC:
        if specific_lot_ids is None:
            return list(lots)
        by_id = {lot.lot_id: lot for lot in lots}
        unknown = [lot_id for lot_id in specific_lot_ids if lot_id not in by_id]
        if unknown:
            raise InvalidTransactionError(
                f"Specific lot ids not found among open lots: {', '.join(unknown)}"
            )
        return [by_id[lot_id] for lot_id in dict.fromkeys(specific_lot_ids)]
    raise ValueError(f"Unsupported lot method: {method}")


def allocate_disposal(
    transaction: TaxTransaction,
    lots: Sequence[TaxLot],
    method: TaxLotMethod,
    specific_lot_ids: Sequence[str] | None = None,
    *,
    long_term_threshold_days: int = LONG_TERM_THRESHOLD_DAYS,
) -> AllocationResult:
    """Allocate a disposal against the open lots of its symbol.

    For each lot in method order, ``min(remaining, lot.quantity)`` units are
    allocated. Fees are prorated by quantity:

        realized = price * q - basis * q - fees * q / total_quantity

    Args:
        transaction: Disposal transaction (quantity already absolute, > 0).
        lots: Lot snapshot for the transaction's portfolio and symbol.
        method: Selection method.
        specific_lot_ids: Lot order for SPECIFIC identification.
        long_term_threshold_days: Long-term cutoff in days.

    Returns:
        AllocationResult with every input lot (consumed ones decremented and
        closed when emptied) and the allocations in consumption order.

    Raises:
        InsufficientLotsError: If the eligible open quantity cannot cover the
            disposal. No lot is modified.
        InvalidTransactionError: If a specific lot id is unknown.
    """
    total_quantity = transaction.quantity
    open_lots = [
        lot
        for lot in lots
        if lot.symbol == transaction.symbol
        and lot.portfolio_id == transaction.portfolio_id
        and lot.is_open
        and lot.quantity > 0
    ]
    ordered = sort_lots_by_method(open_lots, method, specific_lot_ids)

    available = sum((lot.quantity for lot in ordered), Decimal(0))
    if available < total_quantity:
        raise InsufficientLotsError(transaction.symbol, total_quantity, available)

    remaining = total_quantity
    allocations: list[TaxLotAllocation] = []
    working: dict[str, TaxLot] = {}

    for lot in ordered:
        if remaining <= 0:
            break

        quantity = min(remaining, lot.quantity)
        days_held = holding_period_days(lot.acquisition_date, transaction.settlement_date)
        fee_share = transaction.fees * quantity / total_quantity
        proceeds = transaction.price * quantity - fee_share
        basis = lot.cost_basis_per_share * quantity

        allocations.append(
            TaxLotAllocation(
                lot_id=lot.lot_id,
                symbol=lot.symbol,
                quantity_allocated=quantity,
                cost_basis_per_share=lot.cost_basis_per_share,
                total_cost_basis=basis,
                proceeds=proceeds,
                acquisition_date=lot.acquisition_date,
                disposal_date=transaction.settlement_date,
                realized_gain_loss=proceeds - basis,
                holding_period_days=days_held,
                is_long_term=is_long_term(days_held, long_term_threshold_days),
            )
        )

        left = lot.quantity - quantity
        working[lot.lot_id] = replace(
            lot,
            quantity=left,
            total_cost_basis=left * lot.cost_basis_per_share,
            is_open=left > 0,
            disposal_date=None if left > 0 else transaction.settlement_date,
        )
        remaining -= quantity

    # Unreachable after the availability check unless quantities are inconsistent.
    if remaining > 0:
        raise InsufficientLotsError(transaction.symbol, total_quantity, total_quantity - remaining)

    logger.debug(
        "disposal_allocated",
        extra={
            "transaction_id": transaction.transaction_id,
            "symbol": transaction.symbol,
            "method": method.value,
            "quantity": str(total_quantity),
            "lots_consumed": len(allocations),
        },
    )

    return AllocationResult(
        updated_lots=tuple(working.get(lot.lot_id, lot) for lot in lots),
        allocations=tuple(allocations),
    )


__all__ = [
    "AllocationResult",
    "allocate_disposal",
    "sort_lots_by_method",
]
