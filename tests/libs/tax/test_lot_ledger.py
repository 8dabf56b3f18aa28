"""Tests for the tax lot ledger."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

import pytest

from libs.common.exceptions import InsufficientLotsError, InvalidTransactionError
from libs.tax.config import TaxLotSettings
from libs.tax.lot_ledger import TaxLotLedger
from libs.tax.models import TaxLotMethod, TransactionType, WashSaleStatus


@pytest.fixture()
def ledger(sequential_ids: Any) -> TaxLotLedger:
    return TaxLotLedger(TaxLotSettings(), id_factory=sequential_ids)


def _buy(make_transaction: Any, **kwargs: Any) -> Any:
    return make_transaction(transaction_type=TransactionType.BUY, **kwargs)


class TestAcquisition:
    def test_buy_creates_lot_with_fees_in_basis(
        self, ledger: TaxLotLedger, make_transaction: Any
    ) -> None:
        tx = _buy(
            make_transaction,
            transaction_id="buy-1",
            quantity=100,
            price="150",
            fees="10",
            transaction_date=date(2023, 1, 13),
            settlement_date=date(2023, 1, 17),
        )

        result = ledger.process_transaction(tx, [])

        assert result.updated_lots == ()
        assert len(result.new_lots) == 1
        lot = result.new_lots[0]
        assert lot.lot_id == "lot-new-1"
        assert lot.cost_basis_per_share == Decimal("150.10")
        assert lot.total_cost_basis == Decimal("15010")
        assert lot.acquisition_date == date(2023, 1, 17)
        assert lot.is_open is True
        assert lot.wash_sale_status == WashSaleStatus.NONE
        assert lot.trade_id == "buy-1"
        assert result.allocations == ()
        assert result.wash_sale_analysis is None

    def test_trade_id_preferred_over_transaction_id(
        self, ledger: TaxLotLedger, make_transaction: Any
    ) -> None:
        tx = _buy(make_transaction, transaction_id="buy-1", trade_id="T-42")

        lot = ledger.process_transaction(tx, []).new_lots[0]

        assert lot.trade_id == "T-42"

    def test_assignment_acquires(self, ledger: TaxLotLedger, make_transaction: Any) -> None:
        tx = make_transaction(transaction_type=TransactionType.ASSIGNMENT, quantity=100, price="45")

        result = ledger.process_transaction(tx, [])

        assert result.new_lots[0].quantity == Decimal("100")
        assert result.new_lots[0].cost_basis_per_share == Decimal("45")

    def test_existing_lots_untouched(
        self, ledger: TaxLotLedger, make_lot: Any, make_transaction: Any
    ) -> None:
        existing = make_lot("lot-old")

        result = ledger.process_transaction(_buy(make_transaction), [existing])

        assert result.updated_lots == (existing,)
        assert [lot.lot_id for lot in result.lots] == ["lot-old", "lot-new-1"]

    def test_zero_quantity_acquisition(self, ledger: TaxLotLedger, make_transaction: Any) -> None:
        tx = _buy(make_transaction, quantity=0, fees="5")

        lot = ledger.process_transaction(tx, []).new_lots[0]

        assert lot.quantity == 0
        assert lot.cost_basis_per_share == 0
        assert lot.total_cost_basis == 0
        assert lot.is_open is False

    def test_default_id_factory(self, make_transaction: Any) -> None:
        lot = TaxLotLedger().process_transaction(_buy(make_transaction), []).new_lots[0]

        assert lot.lot_id.startswith("lot_")


class TestValidation:
    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"price": "-1"}, "price must be >= 0"),
            ({"fees": "-0.01"}, "fees must be >= 0"),
            ({"price": "0"}, "requires a positive price"),
            ({"quantity": 0}, "disposal quantity must be positive"),
        ],
    )
    def test_rejects_invalid_disposal(
        self,
        ledger: TaxLotLedger,
        make_lot: Any,
        make_transaction: Any,
        kwargs: dict[str, Any],
        match: str,
    ) -> None:
        with pytest.raises(InvalidTransactionError, match=match):
            ledger.process_transaction(make_transaction(**kwargs), [make_lot()])

    def test_zero_price_expiration_allowed(
        self, ledger: TaxLotLedger, make_lot: Any, make_transaction: Any
    ) -> None:
        lot = make_lot(quantity=1, cost_basis_per_share="250")
        tx = make_transaction(transaction_type=TransactionType.EXPIRATION, quantity=1, price="0")

        result = ledger.process_transaction(tx, [lot])

        assert result.allocations[0].realized_gain_loss == Decimal("-250")
        assert result.updated_lots[0].is_open is False

    @pytest.mark.parametrize(
        "lot_kwargs",
        [{"symbol": "MSFT"}, {"portfolio_id": "portfolio-2"}],
    )
    def test_rejects_mismatched_lots(
        self,
        ledger: TaxLotLedger,
        make_lot: Any,
        make_transaction: Any,
        lot_kwargs: dict[str, Any],
    ) -> None:
        with pytest.raises(InvalidTransactionError, match="does not match"):
            ledger.process_transaction(make_transaction(), [make_lot(**lot_kwargs)])

    def test_negative_quantity_normalized(
        self, ledger: TaxLotLedger, make_lot: Any, make_transaction: Any
    ) -> None:
        result = ledger.process_transaction(make_transaction(quantity=-30), [make_lot()])

        assert result.allocations[0].quantity_allocated == Decimal("30")
        assert result.updated_lots[0].quantity == Decimal("70")


class TestDisposal:
    def test_insufficient_lots_leaves_snapshot_unchanged(
        self, ledger: TaxLotLedger, make_lot: Any, make_transaction: Any
    ) -> None:
        lots = [make_lot("lot-1", quantity=30), make_lot("lot-2", quantity=20)]
        snapshot = list(lots)

        with pytest.raises(InsufficientLotsError) as exc_info:
            ledger.process_transaction(make_transaction(quantity=60), lots)

        assert exc_info.value.shortfall == Decimal("10")
        assert lots == snapshot

    def test_method_defaults_to_settings(
        self, sequential_ids: Any, make_lot: Any, make_transaction: Any
    ) -> None:
        ledger = TaxLotLedger(
            TaxLotSettings(default_method=TaxLotMethod.HIFO), id_factory=sequential_ids
        )
        lots = [
            make_lot("cheap", quantity=10, cost_basis_per_share="100"),
            make_lot("dear", quantity=10, cost_basis_per_share="200"),
        ]

        result = ledger.process_transaction(make_transaction(quantity=5), lots)

        assert ledger.default_method == TaxLotMethod.HIFO
        assert result.allocations[0].lot_id == "dear"

    def test_gain_has_no_wash_sale(
        self, ledger: TaxLotLedger, make_lot: Any, make_transaction: Any
    ) -> None:
        result = ledger.process_transaction(make_transaction(quantity=10), [make_lot()])

        assert result.wash_sale_analysis is not None
        assert result.wash_sale_analysis.has_wash_sale is False
        assert result.allocations[0].realized_gain_loss == Decimal("200")

    def test_loss_with_repurchase_is_washed(
        self, ledger: TaxLotLedger, make_transaction: Any
    ) -> None:
        """Buy A, buy B two weeks after the sale date, then sell A at a loss."""
        lots: tuple[Any, ...] = ()
        for tx in (
            _buy(make_transaction, transaction_id="buy-a", quantity=100, price="180",
                 transaction_date=date(2023, 6, 1)),
            _buy(make_transaction, transaction_id="buy-b", quantity=50, price="160",
                 transaction_date=date(2023, 11, 15)),
        ):
            lots = ledger.process_transaction(tx, lots).lots

        sell = make_transaction(
            transaction_id="sell-a",
            quantity=100,
            price="150",
            fees="10",
            transaction_date=date(2023, 11, 1),
        )
        result = ledger.process_transaction(sell, lots, TaxLotMethod.FIFO)

        analysis = result.wash_sale_analysis
        assert analysis is not None
        assert analysis.has_wash_sale is True
        assert analysis.disallowed_loss == Decimal("3010")
        assert analysis.affected_lot_ids == ("lot-new-2",)

        by_id = {lot.lot_id: lot for lot in result.lots}
        assert by_id["lot-new-1"].is_open is False
        assert by_id["lot-new-2"].cost_basis_per_share == Decimal("220.2")
        assert by_id["lot-new-2"].total_cost_basis == Decimal("11010")
        assert result.allocations[0].realized_gain_loss == 0
        assert result.allocations[0].is_wash_sale is True


class TestApplyTransactions:
    def test_replays_in_date_order(self, ledger: TaxLotLedger, make_transaction: Any) -> None:
        """A sale listed before its buy in the feed still succeeds."""
        transactions = [
            make_transaction("sell", quantity=40, price="120", transaction_date=date(2023, 3, 1)),
            _buy(make_transaction, transaction_id="buy", quantity=100, price="100",
                 transaction_date=date(2023, 1, 10)),
        ]

        batch = ledger.apply_transactions(transactions)

        assert [lot.quantity for lot in batch.lots] == [Decimal("60")]
        assert batch.allocations[0].realized_gain_loss == Decimal("800")
        assert set(batch.wash_sale_analyses) == {"sell"}

    def test_separates_books(self, ledger: TaxLotLedger, make_transaction: Any) -> None:
        transactions = [
            _buy(make_transaction, transaction_id="b1", symbol="AAPL"),
            _buy(make_transaction, transaction_id="b2", symbol="MSFT"),
            _buy(make_transaction, transaction_id="b3", symbol="AAPL", portfolio_id="portfolio-2"),
        ]

        batch = ledger.apply_transactions(transactions)

        assert sorted((lot.portfolio_id, lot.symbol) for lot in batch.lots) == [
            ("portfolio-1", "AAPL"),
            ("portfolio-1", "MSFT"),
            ("portfolio-2", "AAPL"),
        ]

    def test_failure_aborts_batch(
        self, ledger: TaxLotLedger, make_lot: Any, make_transaction: Any
    ) -> None:
        lots = [make_lot(quantity=10)]
        transactions = [
            make_transaction("s1", quantity=5, transaction_date=date(2023, 2, 1)),
            make_transaction("s2", quantity=50, transaction_date=date(2023, 3, 1)),
        ]

        with pytest.raises(InsufficientLotsError):
            ledger.apply_transactions(transactions, lots)

        assert lots[0].quantity == Decimal("10")


class TestQueries:
    def test_total_cost_basis(self, ledger: TaxLotLedger, make_lot: Any) -> None:
        lots = [
            make_lot("a", quantity=100, cost_basis_per_share="150"),
            make_lot("b", quantity=100, cost_basis_per_share="185"),
        ]

        assert ledger.total_cost_basis(lots, "AAPL") == Decimal("33500")

    def test_unrealized_pnl_uses_configured_threshold(
        self, sequential_ids: Any, make_lot: Any
    ) -> None:
        ledger = TaxLotLedger(
            TaxLotSettings(long_term_threshold_days=30, near_long_term_days=10),
            id_factory=sequential_ids,
        )
        lots = [make_lot(quantity=10, cost_basis_per_share="100", acquisition_date=date(2023, 1, 1))]

        pnl = ledger.unrealized_pnl(lots, "AAPL", Decimal("110"), date(2023, 3, 1))

        assert pnl.long_term_unrealized == Decimal("100")
        assert pnl.short_term_unrealized == 0
