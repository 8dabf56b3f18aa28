"""Holding period classification and unrealized P&L.

Pure functions over a lot snapshot. "Now" is always an explicit ``as_of``
date so results are reproducible.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from libs.tax.config import LONG_TERM_THRESHOLD_DAYS
from libs.tax.models import LotUnrealizedPnL, TaxLot, UnrealizedPnL


def holding_period_days(acquisition_date: date, as_of: date) -> int:
    """Calendar days between acquisition and ``as_of``."""
    return (as_of - acquisition_date).days


def holding_period(lot: TaxLot, as_of: date) -> int:
    """Calendar days the lot has been held as of ``as_of``."""
    return holding_period_days(lot.acquisition_date, as_of)


def is_long_term(days_held: int, threshold_days: int = LONG_TERM_THRESHOLD_DAYS) -> bool:
    """True when held strictly longer than the threshold (365 days -> short-term)."""
    return days_held > threshold_days


def open_lots_for(lots: Iterable[TaxLot], symbol: str) -> list[TaxLot]:
    """Open lots of ``symbol`` in input order."""
    return [lot for lot in lots if lot.symbol == symbol and lot.is_open]


def total_cost_basis(lots: Iterable[TaxLot], symbol: str) -> Decimal:
    """Total cost basis of the open lots of ``symbol`` (0 when none)."""
    return sum((lot.total_cost_basis for lot in open_lots_for(lots, symbol)), Decimal(0))


def unrealized_pnl(
    lots: Iterable[TaxLot],
    symbol: str,
    current_price: Decimal,
    as_of: date,
    *,
    long_term_threshold_days: int = LONG_TERM_THRESHOLD_DAYS,
) -> UnrealizedPnL:
    """Value the open lots of ``symbol`` at ``current_price``.

    Each lot contributes ``(current_price - cost_basis_per_share) * quantity``
    to the short-term or long-term bucket depending on its holding period.

    Args:
        lots: Lot snapshot (may include other symbols and closed lots).
        symbol: Symbol to value.
        current_price: Current per-unit market price.
        as_of: Valuation date.
        long_term_threshold_days: Long-term cutoff in days.

    Returns:
        UnrealizedPnL with bucket totals and a per-lot breakdown.
    """
    breakdown: list[LotUnrealizedPnL] = []
    short_term = Decimal(0)
    long_term = Decimal(0)

    for lot in open_lots_for(lots, symbol):
        days_held = holding_period(lot, as_of)
        long = is_long_term(days_held, long_term_threshold_days)
        pnl = (current_price - lot.cost_basis_per_share) * lot.quantity

        if long:
            long_term += pnl
        else:
            short_term += pnl

        breakdown.append(
            LotUnrealizedPnL(
                lot_id=lot.lot_id,
                unrealized_pnl=pnl,
                holding_period_days=days_held,
                is_long_term=long,
            )
        )

    return UnrealizedPnL(
        total_unrealized=short_term + long_term,
        short_term_unrealized=short_term,
        long_term_unrealized=long_term,
        lots=tuple(breakdown),
    )


__all__ = [
    "holding_period",
    "holding_period_days",
    "is_long_term",
    "open_lots_for",
    "total_cost_basis",
    "unrealized_pnl",
]
