"""
Exception hierarchy for the tax lot engine.

All engine errors are synchronous, local and deterministic. An operation
either returns its complete result or raises one of these before any lot
snapshot is committed.
"""

from __future__ import annotations

from decimal import Decimal


class TaxLotEngineError(Exception):
    """
    Base exception for all tax lot engine errors.

    Example:
        >>> try:
        ...     ledger.process_transaction(tx, lots)
        ... except TaxLotEngineError as e:
        ...     logger.error(f"Tax lot error: {e}")
    """

    pass


class InvalidTransactionError(TaxLotEngineError):
    """
    Raised when a transaction is rejected before any allocation begins.

    This covers negative prices or fees, a zero price on a buy or sell,
    zero-quantity disposals, lots that belong to a different symbol or
    portfolio than the transaction, and unknown specific lot ids.

    Example:
        >>> if tx.fees < 0:
        ...     raise InvalidTransactionError(f"fees must be >= 0, got {tx.fees}")
    """

    pass


class InsufficientLotsError(TaxLotEngineError):
    """
    Raised when a disposal exceeds the open-lot quantity for its symbol.

    The hosting application should present this as "cannot record this
    disposal, insufficient shares/contracts in open lots" together with
    the shortfall, so the lot history can be corrected before retrying.

    Attributes:
        symbol: Symbol of the disposal.
        requested: Quantity the disposal asked for.
        available: Open quantity across all lots of the symbol.
        shortfall: requested - available.
    """

    def __init__(self, symbol: str, requested: Decimal, available: Decimal) -> None:
        self.symbol = symbol
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient lots to cover disposal quantity for {symbol}. "
            f"Requested: {requested}, available: {available}, missing: {self.shortfall}"
        )


class ConfigurationError(TaxLotEngineError):
    """
    Raised when tax policy settings are inconsistent.

    Example:
        >>> if near_long_term_days >= long_term_threshold_days:
        ...     raise ConfigurationError("near-long-term band must end before the cutoff")
    """

    pass
