"""Realized gain/loss summary over disposal allocations.

IMPORTANT CONTRACT:
- realized_gain_loss on an allocation is already AFTER wash sale
  adjustment (a disallowed loss reads as 0)
- wash_sale_adjustment holds the disallowed loss (positive value)
- unadjusted_net adds the disallowed amounts back as losses, i.e. what the
  result would have been without the wash sale rule
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from libs.tax.models import TaxLotAllocation


@dataclass(frozen=True)
class HoldingPeriodTotals:
    """Gains, losses and net for one holding-period bucket."""

    gains: Decimal
    losses: Decimal

    @property
    def net(self) -> Decimal:
        return self.gains + self.losses


@dataclass(frozen=True)
class RealizedGainsSummary:
    """Realized results for a set of allocations.

    Attributes:
        year: Disposal year filter applied, or None for all years.
        allocation_count: Allocations included.
        short_term: Totals for allocations held one year or less.
        long_term: Totals for allocations held more than one year.
        wash_sale_disallowed: Total loss disallowed by wash sales.
    """

    year: int | None
    allocation_count: int
    short_term: HoldingPeriodTotals
    long_term: HoldingPeriodTotals
    wash_sale_disallowed: Decimal

    @property
    def total_net(self) -> Decimal:
        return self.short_term.net + self.long_term.net

    @property
    def unadjusted_net(self) -> Decimal:
        """Net result if no loss had been disallowed."""
        return self.total_net - self.wash_sale_disallowed


def summarize_realized_gains(
    allocations: Iterable[TaxLotAllocation],
    year: int | None = None,
) -> RealizedGainsSummary:
    """Summarize realized gains and losses by holding period.

    Args:
        allocations: Allocations from any number of disposals.
        year: Only include disposals settled in this calendar year.

    Returns:
        RealizedGainsSummary with short/long-term buckets.
    """
    selected = [
        alloc for alloc in allocations if year is None or alloc.disposal_date.year == year
    ]

    def _bucket(long_term: bool) -> HoldingPeriodTotals:
        results = [a.realized_gain_loss for a in selected if a.is_long_term == long_term]
        return HoldingPeriodTotals(
            gains=sum((r for r in results if r > 0), Decimal(0)),
            losses=sum((r for r in results if r < 0), Decimal(0)),
        )

    return RealizedGainsSummary(
        year=year,
        allocation_count=len(selected),
        short_term=_bucket(long_term=False),
        long_term=_bucket(long_term=True),
        wash_sale_disallowed=sum((a.wash_sale_adjustment for a in selected), Decimal(0)),
    )


__all__ = [
    "HoldingPeriodTotals",
    "RealizedGainsSummary",
    "summarize_realized_gains",
]
