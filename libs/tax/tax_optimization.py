"""Tax optimization recommendations.

Derives advisory recommendations from a lot snapshot and a current price:

- Tax-loss harvesting: realize an aggregate unrealized loss to offset gains,
  then stay out of the symbol long enough to avoid a wash sale.
- Long-term deferral: hold short-term winners that are close to crossing the
  long-term threshold.

The advisor only reads lots; it never modifies them. Savings figures use
ILLUSTRATIVE rates from TaxLotSettings and do NOT represent actual tax
liability.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from libs.tax.config import TaxLotSettings
from libs.tax.config import settings as default_settings
from libs.tax.holding_period import holding_period, open_lots_for, unrealized_pnl
from libs.tax.models import OptimizationStrategy, TaxLot, TaxOptimization

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")

HARVEST_RISK_FACTORS = (
    "Missing potential recovery during wash sale period",
    "Transaction costs may reduce benefits",
    "Alternative investments may have different risk profiles",
)

DEFERRAL_RISK_FACTORS = (
    "Market risk during holding period",
    "Opportunity cost of capital",
    "Potential for losses while waiting",
)


@dataclass(frozen=True)
class PortfolioOptimizationReport:
    """Recommendations for every symbol in a portfolio snapshot.

    Attributes:
        recommendations: Recommendations keyed by symbol (symbols with none
            are omitted).
        estimated_total_savings: Sum of all potential savings (illustrative).
        warnings: Warning messages (e.g., missing prices).
    """

    recommendations: dict[str, list[TaxOptimization]]
    estimated_total_savings: Decimal
    warnings: list[str] = field(default_factory=list)


class TaxOptimizationAdvisor:
    """Generates harvest and deferral recommendations.

    Example:
        >>> advisor = TaxOptimizationAdvisor()
        >>> recs = advisor.generate(lots, "AAPL", Decimal("130"), as_of=date(2023, 11, 1))
        >>> for rec in recs:
        ...     print(f"{rec.strategy.value}: ${rec.potential_savings}")
    """

    def __init__(self, settings: TaxLotSettings | None = None) -> None:
        self._settings = settings or default_settings

    def generate(
        self,
        lots: Sequence[TaxLot],
        symbol: str,
        current_price: Decimal,
        as_of: date,
        target_date: date | None = None,
    ) -> list[TaxOptimization]:
        """Generate recommendations for one symbol.

        Args:
            lots: Lot snapshot (read only).
            symbol: Symbol to analyze.
            current_price: Current per-unit market price.
            as_of: Valuation date.
            target_date: Harvest deadline; defaults to Dec 31 of ``as_of``'s year.

        Returns:
            Recommendations in no particular priority order.
        """
        cfg = self._settings
        pnl = unrealized_pnl(
            lots,
            symbol,
            current_price,
            as_of,
            long_term_threshold_days=cfg.long_term_threshold_days,
        )
        recommendations: list[TaxOptimization] = []

        harvest = self._harvest_recommendation(symbol, pnl.total_unrealized, as_of, target_date)
        if harvest is not None:
            recommendations.append(harvest)

        deferral = self._deferral_recommendation(
            lots, symbol, pnl.short_term_unrealized, as_of
        )
        if deferral is not None:
            recommendations.append(deferral)

        return recommendations

    def _harvest_recommendation(
        self,
        symbol: str,
        total_unrealized: Decimal,
        as_of: date,
        target_date: date | None,
    ) -> TaxOptimization | None:
        cfg = self._settings
        if total_unrealized >= 0:
            return None
        if abs(total_unrealized) < cfg.min_harvest_loss:
            # Below threshold
            return None

        savings = (abs(total_unrealized) * cfg.harvest_tax_rate).quantize(_CENTS)
        return TaxOptimization(
            strategy=OptimizationStrategy.TAX_LOSS_HARVEST,
            description="Harvest tax losses to offset capital gains",
            potential_savings=savings,
            recommended_actions=(
                f"Sell {symbol} position to realize {total_unrealized.quantize(_CENTS)} loss",
                f"Wait {cfg.repurchase_wait_days} days before repurchasing "
                "to avoid wash sale rules",
                "Consider similar securities as temporary replacement",
            ),
            risk_factors=HARVEST_RISK_FACTORS,
            deadline=target_date or date(as_of.year, 12, 31),
        )

    def _deferral_recommendation(
        self,
        lots: Sequence[TaxLot],
        symbol: str,
        short_term_gain: Decimal,
        as_of: date,
    ) -> TaxOptimization | None:
        cfg = self._settings
        if short_term_gain <= 0:
            return None

        near_long_term = [
            lot
            for lot in open_lots_for(lots, symbol)
            if cfg.near_long_term_days < holding_period(lot, as_of) <= cfg.long_term_threshold_days
        ]
        if not near_long_term:
            return None

        # Lot closest to qualifying; ties keep creation order
        closest = max(near_long_term, key=lambda lot: holding_period(lot, as_of))
        first_long_term_day = cfg.long_term_threshold_days + 1
        days_to_wait = first_long_term_day - holding_period(closest, as_of)
        qualifies_on = closest.acquisition_date + timedelta(days=first_long_term_day)

        savings = (short_term_gain * cfg.long_term_rate_spread).quantize(_CENTS)
        return TaxOptimization(
            strategy=OptimizationStrategy.LONG_TERM_GAINS,
            description="Defer sale to qualify for long-term capital gains treatment",
            potential_savings=savings,
            recommended_actions=(
                f"Hold {symbol} position for {days_to_wait} more days "
                f"(until {qualifies_on.isoformat()})",
                "Monitor position for significant price changes",
                "Consider protective strategies if needed",
            ),
            risk_factors=DEFERRAL_RISK_FACTORS,
            deadline=qualifies_on,
        )

    def generate_for_portfolio(
        self,
        lots: Sequence[TaxLot],
        current_prices: Mapping[str, Decimal],
        as_of: date,
        target_date: date | None = None,
    ) -> PortfolioOptimizationReport:
        """Generate recommendations for every symbol with open lots.

        Args:
            lots: Lot snapshot for one portfolio (read only).
            current_prices: Current market prices by symbol.
            as_of: Valuation date.
            target_date: Harvest deadline passed to each symbol.

        Returns:
            PortfolioOptimizationReport; symbols without a price are skipped
            with a warning.
        """
        symbols = sorted({lot.symbol for lot in lots if lot.is_open})
        recommendations: dict[str, list[TaxOptimization]] = {}
        warnings: list[str] = []
        total_savings = Decimal(0)

        for symbol in symbols:
            current_price = current_prices.get(symbol)
            if current_price is None:
                warnings.append(f"No price available for {symbol}")
                continue

            recs = self.generate(lots, symbol, current_price, as_of, target_date)
            if recs:
                recommendations[symbol] = recs
                total_savings += sum((rec.potential_savings for rec in recs), Decimal(0))

        logger.info(
            "tax_optimization_scan_complete",
            extra={
                "symbols_scanned": len(symbols),
                "symbols_with_recommendations": len(recommendations),
                "estimated_total_savings": str(total_savings),
                "missing_prices": len(warnings),
            },
        )

        return PortfolioOptimizationReport(
            recommendations=recommendations,
            estimated_total_savings=total_savings,
            warnings=warnings,
        )


__all__ = [
    "DEFERRAL_RISK_FACTORS",
    "HARVEST_RISK_FACTORS",
    "PortfolioOptimizationReport",
    "TaxOptimizationAdvisor",
]
