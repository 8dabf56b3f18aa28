"""Shared factories for tax lot tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from itertools import count
from typing import Any

import pytest

from libs.tax.models import TaxLot, TaxTransaction, TransactionType

PORTFOLIO_ID = "portfolio-1"
SYMBOL = "AAPL"


def build_lot(
    lot_id: str = "lot-1",
    *,
    quantity: Decimal | int | str = 100,
    cost_basis_per_share: Decimal | int | str = "150",
    acquisition_date: date = date(2023, 1, 15),
    symbol: str = SYMBOL,
    portfolio_id: str = PORTFOLIO_ID,
    **overrides: Any,
) -> TaxLot:
    """Build a lot whose total basis satisfies the basis invariant."""
    qty = Decimal(str(quantity))
    basis = Decimal(str(cost_basis_per_share))
    return TaxLot(
        lot_id=lot_id,
        symbol=symbol,
        quantity=qty,
        cost_basis_per_share=basis,
        total_cost_basis=qty * basis,
        acquisition_date=acquisition_date,
        portfolio_id=portfolio_id,
        is_open=qty > 0,
        **overrides,
    )


def build_transaction(
    transaction_id: str = "tx-1",
    *,
    transaction_type: TransactionType = TransactionType.SELL,
    quantity: Decimal | int | str = 50,
    price: Decimal | int | str = "170",
    fees: Decimal | int | str = 0,
    transaction_date: date = date(2023, 12, 1),
    settlement_date: date | None = None,
    symbol: str = SYMBOL,
    portfolio_id: str = PORTFOLIO_ID,
    trade_id: str | None = None,
) -> TaxTransaction:
    """Build a transaction; settlement defaults to the trade date."""
    return TaxTransaction(
        transaction_id=transaction_id,
        symbol=symbol,
        transaction_type=transaction_type,
        quantity=Decimal(str(quantity)),
        price=Decimal(str(price)),
        fees=Decimal(str(fees)),
        transaction_date=transaction_date,
        settlement_date=settlement_date or transaction_date,
        portfolio_id=portfolio_id,
        trade_id=trade_id,
    )


@pytest.fixture()
def make_lot() -> Callable[..., TaxLot]:
    """Factory for lots."""
    return build_lot


@pytest.fixture()
def make_transaction() -> Callable[..., TaxTransaction]:
    """Factory for transactions."""
    return build_transaction


@pytest.fixture()
def sequential_ids() -> Callable[[], str]:
    """Deterministic lot id factory: lot-new-1, lot-new-2, ..."""
    counter = count(1)
    return lambda: f"lot-new-{next(counter)}"
