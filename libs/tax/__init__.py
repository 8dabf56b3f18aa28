"""Tax lot accounting engine.

Provides lot tracking with FIFO/LIFO/HIFO/LOFO/specific identification,
wash sale detection with basis redistribution, holding period and
unrealized P&L valuation, and tax optimization recommendations.
"""

from __future__ import annotations

from libs.tax.allocation import AllocationResult, allocate_disposal, sort_lots_by_method
from libs.tax.config import TaxLotSettings
from libs.tax.holding_period import (
    holding_period,
    holding_period_days,
    is_long_term,
    total_cost_basis,
    unrealized_pnl,
)
from libs.tax.lot_ledger import BatchResult, TaxLotLedger
from libs.tax.lot_service import InMemoryLotStore, TaxLotService
from libs.tax.models import (
    LotUnrealizedPnL,
    OptimizationStrategy,
    TaxLot,
    TaxLotAllocation,
    TaxLotMethod,
    TaxOptimization,
    TaxTransaction,
    TransactionResult,
    TransactionType,
    UnrealizedPnL,
    WashSaleAnalysis,
    WashSaleStatus,
)
from libs.tax.protocols import LotStore
from libs.tax.realized_gains import RealizedGainsSummary, summarize_realized_gains
from libs.tax.tax_optimization import PortfolioOptimizationReport, TaxOptimizationAdvisor
from libs.tax.wash_sale_detector import (
    WashSaleAdjustment,
    WashSaleDetector,
    WashSaleOutcome,
)

__all__ = [
    "AllocationResult",
    "BatchResult",
    "InMemoryLotStore",
    "LotStore",
    "LotUnrealizedPnL",
    "OptimizationStrategy",
    "PortfolioOptimizationReport",
    "RealizedGainsSummary",
    "TaxLot",
    "TaxLotAllocation",
    "TaxLotLedger",
    "TaxLotMethod",
    "TaxLotService",
    "TaxLotSettings",
    "TaxOptimization",
    "TaxOptimizationAdvisor",
    "TaxTransaction",
    "TransactionResult",
    "TransactionType",
    "UnrealizedPnL",
    "WashSaleAdjustment",
    "WashSaleAnalysis",
    "WashSaleDetector",
    "WashSaleOutcome",
    "WashSaleStatus",
    "allocate_disposal",
    "holding_period",
    "holding_period_days",
    "is_long_term",
    "sort_lots_by_method",
    "summarize_realized_gains",
    "total_cost_basis",
    "unrealized_pnl",
]
