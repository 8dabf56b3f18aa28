"""
Tax policy configuration.

Every numeric heuristic the engine relies on (wash sale window, holding
period cutoffs, assumed tax rates) is a named setting so policy can be tuned
without touching allocation or detection logic. Settings load from
environment variables with the ``TAX_LOT_`` prefix.

Example:
    >>> from libs.tax.config import TaxLotSettings
    >>> settings = TaxLotSettings()
    >>> settings.wash_sale_window_days
    30
    >>> settings.harvest_tax_rate
    Decimal('0.20')

    # Via environment variables
    export TAX_LOT_DEFAULT_METHOD=hifo
    export TAX_LOT_HARVEST_TAX_RATE=0.24
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.common.exceptions import ConfigurationError
from libs.tax.models import TaxLotMethod

# IRS wash sale window: 30 days before to 30 days after the sale.
WASH_SALE_WINDOW_DAYS = 30

# Safe repurchase day after a harvest (first day outside the window).
REPURCHASE_WAIT_DAYS = 31

# Held strictly longer than this many days is long-term. No leap-year adjustment.
LONG_TERM_THRESHOLD_DAYS = 365

# Lower bound (exclusive) of the "near long-term" deferral band.
NEAR_LONG_TERM_DAYS = 300

# ILLUSTRATIVE rates for estimation only. They ignore brackets, state
# taxes, NIIT and AMT and do NOT represent actual tax liability.
HARVEST_TAX_RATE = Decimal("0.20")
LONG_TERM_RATE_SPREAD = Decimal("0.15")  # short-term minus long-term rate


class TaxLotSettings(BaseSettings):
    """
    Tax lot engine policy settings.

    Attributes:
        default_method: Lot selection method when a caller passes none.
        wash_sale_window_days: Half-width of the wash sale window in days.
        repurchase_wait_days: Days to wait after a harvest before repurchasing.
        long_term_threshold_days: Held strictly longer than this is long-term.
        near_long_term_days: Deferral band lower bound (exclusive).
        harvest_tax_rate: Assumed marginal rate for harvest savings.
        long_term_rate_spread: Assumed short-term minus long-term rate.
        min_harvest_loss: Minimum absolute unrealized loss worth harvesting.

    Notes:
        - near_long_term_days must be below long_term_threshold_days,
          otherwise ConfigurationError is raised.
    """

    model_config = SettingsConfigDict(
        env_prefix="TAX_LOT_",
        case_sensitive=False,
    )

    default_method: TaxLotMethod = TaxLotMethod.FIFO
    wash_sale_window_days: int = Field(
        default=WASH_SALE_WINDOW_DAYS,
        description="Days before and after the sale that form the wash sale window",
        ge=0,
    )
    repurchase_wait_days: int = Field(
        default=REPURCHASE_WAIT_DAYS,
        description="Days to wait after harvesting before repurchasing",
        ge=1,
    )
    long_term_threshold_days: int = Field(
        default=LONG_TERM_THRESHOLD_DAYS,
        description="Holding period (days) that must be exceeded for long-term treatment",
        ge=1,
    )
    near_long_term_days: int = Field(
        default=NEAR_LONG_TERM_DAYS,
        description="Holding period (days) above which a lot is near long-term",
        ge=0,
    )
    harvest_tax_rate: Decimal = Field(
        default=HARVEST_TAX_RATE,
        description="Assumed marginal rate applied to harvested losses (0.20 = 20%)",
        ge=Decimal("0"),
        le=Decimal("1"),
    )
    long_term_rate_spread: Decimal = Field(
        default=LONG_TERM_RATE_SPREAD,
        description="Assumed short-term minus long-term rate (0.15 = 15 points)",
        ge=Decimal("0"),
        le=Decimal("1"),
    )
    min_harvest_loss: Decimal = Field(
        default=Decimal("0"),
        description="Minimum absolute unrealized loss before a harvest is recommended ($)",
        ge=Decimal("0"),
    )

    @model_validator(mode="after")
    def _check_deferral_band(self) -> TaxLotSettings:
        if self.near_long_term_days >= self.long_term_threshold_days:
            raise ConfigurationError(
                f"near_long_term_days ({self.near_long_term_days}) must be below "
                f"long_term_threshold_days ({self.long_term_threshold_days})"
            )
        return self


settings = TaxLotSettings()


__all__ = [
    "HARVEST_TAX_RATE",
    "LONG_TERM_RATE_SPREAD",
    "LONG_TERM_THRESHOLD_DAYS",
    "NEAR_LONG_TERM_DAYS",
    "REPURCHASE_WAIT_DAYS",
    "TaxLotSettings",
    "WASH_SALE_WINDOW_DAYS",
    "settings",
]
