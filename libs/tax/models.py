"""Tax lot data model.

Records are immutable snapshots. Engine operations never modify a lot in
place; they build a new instance with ``dataclasses.replace`` and return a
new snapshot, which the caller commits.

Monetary and quantity fields are ``Decimal``; dates are calendar dates
(holding periods are counted in whole days).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum


class TaxLotMethod(str, Enum):
    """Lot selection convention for disposals."""

    FIFO = "fifo"  # First In, First Out
    LIFO = "lifo"  # Last In, First Out
    HIFO = "hifo"  # Highest Cost In, First Out
    LOFO = "lofo"  # Lowest Cost In, First Out
    SPECIFIC = "specific"  # Specific Identification


class WashSaleStatus(str, Enum):
    """Wash sale marker carried on a lot."""

    NONE = "none"
    WASH_SALE = "wash_sale"
    POTENTIAL = "potential"


class TransactionType(str, Enum):
    """Kinds of transaction fed into the ledger."""

    BUY = "buy"
    SELL = "sell"
    ASSIGNMENT = "assignment"
    EXERCISE = "exercise"
    EXPIRATION = "expiration"

    @property
    def is_acquisition(self) -> bool:
        """True for kinds that create a lot (buy, assignment)."""
        return self in (TransactionType.BUY, TransactionType.ASSIGNMENT)

    @property
    def is_disposal(self) -> bool:
        """True for kinds that consume lots (sell, exercise, expiration)."""
        return not self.is_acquisition


class OptimizationStrategy(str, Enum):
    """Recommendation kinds produced by the optimization advisor."""

    TAX_LOSS_HARVEST = "tax_loss_harvest"
    LONG_TERM_GAINS = "long_term_gains"


@dataclass(frozen=True)
class TaxLot:
    """One acquisition of a security, tracked with its own basis and date.

    Invariants:
    - total_cost_basis == quantity * cost_basis_per_share (within rounding)
    - is_open == (quantity > 0)

    Attributes:
        lot_id: Unique lot identifier.
        symbol: Ticker symbol.
        quantity: Remaining units (>= 0).
        cost_basis_per_share: Per-unit basis including amortized fees and
            any wash sale adjustment.
        total_cost_basis: Basis of the remaining units.
        acquisition_date: Settlement date of the acquiring transaction.
        portfolio_id: Owning portfolio.
        is_open: False once the lot is fully disposed.
        wash_sale_status: NONE, WASH_SALE or POTENTIAL.
        wash_sale_adjustment: Cumulative disallowed loss added to this lot.
        trade_id: Source transaction/trade id, if known.
        disposal_date: Date the lot was closed, if closed.
        notes: Free-form annotation.
    """

    lot_id: str
    symbol: str
    quantity: Decimal
    cost_basis_per_share: Decimal
    total_cost_basis: Decimal
    acquisition_date: date
    portfolio_id: str
    is_open: bool = True
    wash_sale_status: WashSaleStatus = WashSaleStatus.NONE
    wash_sale_adjustment: Decimal = Decimal(0)
    trade_id: str | None = None
    disposal_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class TaxTransaction:
    """A transaction record from the trade journal or a broker import.

    ``quantity`` is the absolute number of units; the ledger normalizes
    signed broker quantities with ``abs``.

    Attributes:
        transaction_id: Unique transaction identifier.
        symbol: Ticker symbol.
        transaction_type: Acquisition or disposal kind.
        quantity: Units bought or disposed.
        price: Per-unit price.
        fees: Total commissions and fees for the transaction.
        transaction_date: Trade date; centers the wash sale window.
        settlement_date: Settlement date; used for lot dates and holding periods.
        portfolio_id: Owning portfolio.
        trade_id: Optional link to an external trade record.
    """

    transaction_id: str
    symbol: str
    transaction_type: TransactionType
    quantity: Decimal
    price: Decimal
    transaction_date: date
    settlement_date: date
    portfolio_id: str
    fees: Decimal = Decimal(0)
    trade_id: str | None = None


@dataclass(frozen=True)
class TaxLotAllocation:
    """Portion of one disposal matched against one lot.

    Attributes:
        lot_id: Lot consumed.
        symbol: Ticker symbol.
        quantity_allocated: Units taken from the lot.
        cost_basis_per_share: Lot's per-unit basis at allocation time.
        total_cost_basis: cost_basis_per_share * quantity_allocated.
        proceeds: Sale value of the units less this lot's share of fees.
        acquisition_date: Lot acquisition date.
        disposal_date: Disposal settlement date.
        realized_gain_loss: Gain (positive) or loss (negative); zero once a
            loss is disallowed as a wash sale.
        wash_sale_adjustment: Disallowed loss (positive), if any.
        is_wash_sale: True when the loss was disallowed.
        holding_period_days: Days between acquisition and disposal.
        is_long_term: True when held more than the long-term threshold.
    """

    lot_id: str
    symbol: str
    quantity_allocated: Decimal
    cost_basis_per_share: Decimal
    total_cost_basis: Decimal
    proceeds: Decimal
    acquisition_date: date
    disposal_date: date
    realized_gain_loss: Decimal
    holding_period_days: int
    is_long_term: bool
    wash_sale_adjustment: Decimal = Decimal(0)
    is_wash_sale: bool = False


@dataclass(frozen=True)
class WashSaleAnalysis:
    """Wash sale outcome for one disposal.

    Attributes:
        has_wash_sale: True when a loss was disallowed.
        wash_sale_amount: Loss amount subject to the wash sale.
        disallowed_loss: Loss disallowed and moved onto replacement lots.
        affected_lot_ids: Replacement lots whose basis was increased.
        window_start: First day of the wash sale window.
        window_end: Last day of the wash sale window (inclusive).
        adjusted_cost_basis: Total basis of the replacement lots after adjustment.
    """

    has_wash_sale: bool
    wash_sale_amount: Decimal
    disallowed_loss: Decimal
    affected_lot_ids: tuple[str, ...]
    window_start: date
    window_end: date
    adjusted_cost_basis: Decimal = Decimal(0)


@dataclass(frozen=True)
class TaxOptimization:
    """An advisory recommendation for one symbol.

    Attributes:
        strategy: Kind of recommendation.
        description: One-line summary.
        potential_savings: ILLUSTRATIVE estimate using assumed rates.
        recommended_actions: Ordered action steps.
        risk_factors: Risks the user should weigh.
        deadline: Date by which to act, if any.
    """

    strategy: OptimizationStrategy
    description: str
    potential_savings: Decimal
    recommended_actions: tuple[str, ...]
    risk_factors: tuple[str, ...]
    deadline: date | None = None


@dataclass(frozen=True)
class TransactionResult:
    """Output of processing one transaction.

    Attributes:
        updated_lots: Every input lot, with disposals and wash sale
            adjustments applied.
        new_lots: Lots created by an acquisition.
        allocations: Per-lot allocations for a disposal.
        wash_sale_analysis: Present for disposals only.
    """

    updated_lots: tuple[TaxLot, ...]
    new_lots: tuple[TaxLot, ...] = ()
    allocations: tuple[TaxLotAllocation, ...] = ()
    wash_sale_analysis: WashSaleAnalysis | None = None

    @property
    def lots(self) -> tuple[TaxLot, ...]:
        """Complete resulting snapshot (updated lots followed by new lots)."""
        return self.updated_lots + self.new_lots


@dataclass(frozen=True)
class LotUnrealizedPnL:
    """Unrealized P&L of a single open lot."""

    lot_id: str
    unrealized_pnl: Decimal
    holding_period_days: int
    is_long_term: bool


@dataclass(frozen=True)
class UnrealizedPnL:
    """Unrealized P&L for one symbol, bucketed by holding period."""

    total_unrealized: Decimal
    short_term_unrealized: Decimal
    long_term_unrealized: Decimal
    lots: tuple[LotUnrealizedPnL, ...] = field(default_factory=tuple)


__all__ = [
    "LotUnrealizedPnL",
    "OptimizationStrategy",
    "TaxLot",
    "TaxLotAllocation",
    "TaxLotMethod",
    "TaxOptimization",
    "TaxTransaction",
    "TransactionResult",
    "TransactionType",
    "UnrealizedPnL",
    "WashSaleAnalysis",
    "WashSaleStatus",
]
