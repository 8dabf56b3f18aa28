"""Wash sale detection and basis redistribution.

A wash sale occurs when you sell a security at a loss and buy the same
security within 30 days before or after the sale. The loss is disallowed
and added to the cost basis of the replacement shares.

This detector is a heuristic approximation of the statutory rule:
- Window is 61 days (30 before + sale day + 30 after), centered on the
  disposal's trade date, inclusive on both ends.
- Replacement candidates match on exact symbol and portfolio only; options
  and economically equivalent securities are not considered.
- The disallowed loss is split evenly across all candidate lots rather than
  matched share-for-share.

References:
- IRS Publication 550: https://www.irs.gov/publications/p550
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal

from libs.tax.config import WASH_SALE_WINDOW_DAYS
from libs.tax.models import (
    TaxLot,
    TaxLotAllocation,
    TaxTransaction,
    WashSaleAnalysis,
    WashSaleStatus,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WashSaleAdjustment:
    """Basis adjustment applied to one replacement lot.

    Attributes:
        lot_id: Replacement lot being adjusted.
        disallowed_loss: Share of the disallowed loss moved onto this lot.
        basis_adjustment_per_share: Increase of the lot's per-share basis
            (zero for a closed replacement lot with no remaining units).
    """

    lot_id: str
    disallowed_loss: Decimal
    basis_adjustment_per_share: Decimal


@dataclass(frozen=True)
class WashSaleOutcome:
    """Result of analyzing one disposal.

    When no wash sale applies, ``allocations`` and ``lots`` are the inputs
    unchanged.
    """

    analysis: WashSaleAnalysis
    allocations: tuple[TaxLotAllocation, ...]
    lots: tuple[TaxLot, ...]
    adjustments: tuple[WashSaleAdjustment, ...] = ()


class WashSaleDetector:
    """Detects wash sales for a disposal and redistributes disallowed losses.

    Example:
        >>> detector = WashSaleDetector()
        >>> outcome = detector.analyze(sell_tx, allocations, lots_after_disposal)
        >>> if outcome.analysis.has_wash_sale:
        ...     print(outcome.analysis.disallowed_loss)
    """

    def __init__(self, window_days: int = WASH_SALE_WINDOW_DAYS) -> None:
        """Initialize with the half-width of the wash sale window.

        Args:
            window_days: Days before and after the sale (default 30).

        Raises:
            ValueError: If window_days is negative.
        """
        if window_days < 0:
            raise ValueError(f"window_days must be >= 0, got {window_days}")
        self._window_days = window_days

    def find_replacement_lots(
        self,
        transaction: TaxTransaction,
        lots: Sequence[TaxLot],
        excluded_lot_ids: frozenset[str],
    ) -> list[TaxLot]:
        """Lots of the same symbol and portfolio acquired inside the window.

        Open and closed lots both qualify; lots consumed by the disposal
        itself are excluded.
        """
        window_start, window_end = self.window_for(transaction)
        return [
            lot
            for lot in lots
            if lot.symbol == transaction.symbol
            and lot.portfolio_id == transaction.portfolio_id
            and lot.lot_id not in excluded_lot_ids
            and window_start <= lot.acquisition_date <= window_end
        ]

    def window_for(self, transaction: TaxTransaction) -> tuple[date, date]:
        """Inclusive (start, end) dates of the window around the trade date."""
        delta = timedelta(days=self._window_days)
        return transaction.transaction_date - delta, transaction.transaction_date + delta

    def analyze(
        self,
        transaction: TaxTransaction,
        allocations: Sequence[TaxLotAllocation],
        lots: Sequence[TaxLot],
    ) -> WashSaleOutcome:
        """Detect a wash sale for a disposal and apply its adjustments.

        Args:
            transaction: The disposal transaction.
            allocations: Allocations produced for the disposal.
            lots: Lot snapshot after the disposal was allocated.

        Returns:
            WashSaleOutcome with the analysis, adjusted allocations (losses
            disallowed) and adjusted lots (replacement basis increased).
        """
        allocations = tuple(allocations)
        lots = tuple(lots)

        losses = [alloc for alloc in allocations if alloc.realized_gain_loss < 0]
        if not losses:
            # No loss, no wash sale possible
            return WashSaleOutcome(
                analysis=WashSaleAnalysis(
                    has_wash_sale=False,
                    wash_sale_amount=Decimal(0),
                    disallowed_loss=Decimal(0),
                    affected_lot_ids=(),
                    window_start=transaction.transaction_date,
                    window_end=transaction.transaction_date,
                ),
                allocations=allocations,
                lots=lots,
            )

        window_start, window_end = self.window_for(transaction)
        disposed_ids = frozenset(alloc.lot_id for alloc in allocations)
        replacements = self.find_replacement_lots(transaction, lots, disposed_ids)

        if not replacements:
            return WashSaleOutcome(
                analysis=WashSaleAnalysis(
                    has_wash_sale=False,
                    wash_sale_amount=Decimal(0),
                    disallowed_loss=Decimal(0),
                    affected_lot_ids=(),
                    window_start=window_start,
                    window_end=window_end,
                ),
                allocations=allocations,
                lots=lots,
            )

        disallowed_loss = sum((abs(alloc.realized_gain_loss) for alloc in losses), Decimal(0))

        adjusted_allocations = tuple(
            replace(
                alloc,
                is_wash_sale=True,
                wash_sale_adjustment=abs(alloc.realized_gain_loss),
                realized_gain_loss=Decimal(0),
            )
            if alloc.realized_gain_loss < 0
            else alloc
            for alloc in allocations
        )

        adjustment_per_lot = disallowed_loss / len(replacements)
        adjustments: list[WashSaleAdjustment] = []
        adjusted_by_id: dict[str, TaxLot] = {}

        for lot in replacements:
            # A closed replacement lot has no units left to carry the basis;
            # the adjustment is still recorded on it for the audit trail.
            if lot.quantity > 0:
                per_share = adjustment_per_lot / lot.quantity
            else:
                per_share = Decimal(0)
            new_basis_per_share = lot.cost_basis_per_share + per_share

            adjusted_by_id[lot.lot_id] = replace(
                lot,
                cost_basis_per_share=new_basis_per_share,
                total_cost_basis=new_basis_per_share * lot.quantity,
                wash_sale_status=WashSaleStatus.WASH_SALE,
                wash_sale_adjustment=lot.wash_sale_adjustment + adjustment_per_lot,
            )
            adjustments.append(
                WashSaleAdjustment(
                    lot_id=lot.lot_id,
                    disallowed_loss=adjustment_per_lot,
                    basis_adjustment_per_share=per_share,
                )
            )

        adjusted_lots = tuple(adjusted_by_id.get(lot.lot_id, lot) for lot in lots)
        adjusted_cost_basis = sum(
            (lot.total_cost_basis for lot in adjusted_by_id.values()), Decimal(0)
        )

        logger.info(
            "wash_sale_detected",
            extra={
                "transaction_id": transaction.transaction_id,
                "portfolio_id": transaction.portfolio_id,
                "symbol": transaction.symbol,
                "sale_date": transaction.transaction_date.isoformat(),
                "disallowed_loss": str(disallowed_loss),
                "replacement_lots": len(replacements),
            },
        )

        return WashSaleOutcome(
            analysis=WashSaleAnalysis(
                has_wash_sale=True,
                wash_sale_amount=disallowed_loss,
                disallowed_loss=disallowed_loss,
                affected_lot_ids=tuple(lot.lot_id for lot in replacements),
                window_start=window_start,
                window_end=window_end,
                adjusted_cost_basis=adjusted_cost_basis,
            ),
            allocations=adjusted_allocations,
            lots=adjusted_lots,
            adjustments=tuple(adjustments),
        )


__all__ = [
    "WASH_SALE_WINDOW_DAYS",
    "WashSaleAdjustment",
    "WashSaleDetector",
    "WashSaleOutcome",
]
