"""Tests for the lot service and in-memory store."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from typing import Any

import pytest

from libs.common.exceptions import InsufficientLotsError, InvalidTransactionError
from libs.tax.lot_ledger import TaxLotLedger
from libs.tax.lot_service import InMemoryLotStore, TaxLotService
from libs.tax.models import TransactionType
from libs.tax.protocols import LotStore


@pytest.fixture()
def store() -> InMemoryLotStore:
    return InMemoryLotStore()


@pytest.fixture()
def service(store: InMemoryLotStore, sequential_ids: Any) -> TaxLotService:
    return TaxLotService(store, TaxLotLedger(id_factory=sequential_ids))


class TestInMemoryLotStore:
    def test_satisfies_protocol(self, store: InMemoryLotStore) -> None:
        assert isinstance(store, LotStore)

    def test_groups_initial_lots_by_book(self, make_lot: Any) -> None:
        store = InMemoryLotStore(
            [make_lot("a"), make_lot("b", symbol="MSFT"), make_lot("c")]
        )

        assert [lot.lot_id for lot in store.load_lots("portfolio-1", "AAPL")] == ["a", "c"]
        assert store.load_lots("portfolio-1", "GOOG") == ()
        assert len(store.all_lots()) == 3

    def test_save_replaces_book(self, store: InMemoryLotStore, make_lot: Any) -> None:
        store.save_lots("portfolio-1", "AAPL", [make_lot("a")])
        store.save_lots("portfolio-1", "AAPL", [make_lot("b")])

        assert [lot.lot_id for lot in store.load_lots("portfolio-1", "AAPL")] == ["b"]


class TestTaxLotService:
    def test_rejects_non_store(self) -> None:
        with pytest.raises(TypeError, match="LotStore"):
            TaxLotService(object())  # type: ignore[arg-type]

    def test_records_buy_then_sell(
        self, service: TaxLotService, store: InMemoryLotStore, make_transaction: Any
    ) -> None:
        service.record_transaction(
            make_transaction("buy", transaction_type=TransactionType.BUY, quantity=100, price="100")
        )
        result = service.record_transaction(make_transaction("sell", quantity=40, price="110"))

        assert result.allocations[0].realized_gain_loss == Decimal("400")
        stored = store.load_lots("portfolio-1", "AAPL")
        assert [(lot.lot_id, lot.quantity) for lot in stored] == [("lot-new-1", Decimal("60"))]

    def test_failed_transaction_not_saved(
        self, service: TaxLotService, store: InMemoryLotStore, make_lot: Any, make_transaction: Any
    ) -> None:
        store.save_lots("portfolio-1", "AAPL", [make_lot(quantity=10)])

        with pytest.raises(InsufficientLotsError):
            service.record_transaction(make_transaction(quantity=11))
        with pytest.raises(InvalidTransactionError):
            service.record_transaction(make_transaction(fees="-1"))

        assert store.load_lots("portfolio-1", "AAPL")[0].quantity == Decimal("10")

    def test_concurrent_disposals_never_oversell(
        self, service: TaxLotService, store: InMemoryLotStore, make_lot: Any, make_transaction: Any
    ) -> None:
        store.save_lots("portfolio-1", "AAPL", [make_lot(quantity=50)])
        sells = [make_transaction(f"sell-{i}", quantity=10) for i in range(10)]

        def _record(tx: Any) -> bool:
            try:
                service.record_transaction(tx)
            except InsufficientLotsError:
                return False
            return True

        with ThreadPoolExecutor(max_workers=5) as pool:
            outcomes = list(pool.map(_record, sells))

        assert outcomes.count(True) == 5
        lot = store.load_lots("portfolio-1", "AAPL")[0]
        assert lot.quantity == 0
        assert lot.is_open is False


class TestRecordTransactions:
    def test_feed_applied_in_date_order(
        self, service: TaxLotService, store: InMemoryLotStore, make_transaction: Any
    ) -> None:
        feed = [
            make_transaction("sell", quantity=25, transaction_date=date(2023, 5, 1)),
            make_transaction(
                "buy",
                transaction_type=TransactionType.BUY,
                quantity=100,
                price="150",
                transaction_date=date(2023, 2, 1),
            ),
        ]

        results = service.record_transactions(feed)

        assert len(results) == 2
        assert results[0].new_lots[0].lot_id == "lot-new-1"
        assert store.load_lots("portfolio-1", "AAPL")[0].quantity == Decimal("75")

    def test_feed_stops_at_first_failure(
        self, service: TaxLotService, store: InMemoryLotStore, make_transaction: Any
    ) -> None:
        feed = [
            make_transaction(
                "buy",
                transaction_type=TransactionType.BUY,
                quantity=10,
                transaction_date=date(2023, 1, 1),
            ),
            make_transaction("oversell", quantity=20, transaction_date=date(2023, 2, 1)),
            make_transaction(
                "late-buy",
                transaction_type=TransactionType.BUY,
                quantity=10,
                transaction_date=date(2023, 3, 1),
            ),
        ]

        with pytest.raises(InsufficientLotsError):
            service.record_transactions(feed)

        stored = store.load_lots("portfolio-1", "AAPL")
        assert [lot.trade_id for lot in stored] == ["buy"]
