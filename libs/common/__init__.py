"""Common exceptions shared by the tax lot engine."""

from libs.common.exceptions import (
    ConfigurationError,
    InsufficientLotsError,
    InvalidTransactionError,
    TaxLotEngineError,
)

__all__ = [
    "TaxLotEngineError",
    "InvalidTransactionError",
    "InsufficientLotsError",
    "ConfigurationError",
]
