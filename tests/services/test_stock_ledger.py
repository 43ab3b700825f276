"""
StockLedgerService: the only path that changes Variant.stock.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from stockline_kernel.domain.dtos import StockChange, StockReason
from stockline_kernel.exceptions import (
    InsufficientStockError,
    ValidationError,
    VariantNotFoundError,
)
from stockline_kernel.models.catalog import Variant
from stockline_kernel.models.stock_ledger import StockLedgerEntry
from stockline_kernel.selectors.stock_selector import StockSelector
from stockline_kernel.services.change_dispatch import pending_stock_changes
from stockline_kernel.services.stock_ledger import StockLedgerService


@pytest.fixture
def ledger(session, deterministic_clock) -> StockLedgerService:
    return StockLedgerService(session, deterministic_clock)


def _entry_count(session) -> int:
    return session.execute(select(func.count(StockLedgerEntry.id))).scalar_one()


class TestApplyDelta:
    def test_decrement(self, session, ledger, make_variant, test_actor_id):
        variant = make_variant(stock=10)
        new_stock = ledger.apply_delta(
            variant.id, -4, StockReason.SALE, "order-1", test_actor_id, unit_price=Decimal("20.00")
        )
        assert new_stock == 6
        assert session.get(Variant, variant.id).stock == 6

        history = StockSelector(session).history(variant.id)
        assert [e.delta for e in history] == [10, -4]
        assert [e.sequence for e in history] == [1, 2]
        sale = history[-1]
        assert sale.reason == StockReason.SALE
        assert sale.reference == "order-1"
        assert sale.resulting_stock == 6
        assert sale.unit_price == Decimal("20.00")
        assert sale.actor_id == test_actor_id

    def test_entry_timestamp_comes_from_clock(self, session, ledger, make_variant, test_actor_id, deterministic_clock):
        variant = make_variant(stock=1)
        deterministic_clock.advance_days(2)
        ledger.apply_delta(variant.id, 1, StockReason.RETURN, "rma-1", test_actor_id)
        latest = StockSelector(session).history(variant.id)[-1]
        assert latest.occurred_at == deterministic_clock.now()

    def test_decrement_to_exactly_zero(self, session, ledger, make_variant, test_actor_id):
        variant = make_variant(stock=3)
        assert ledger.apply_delta(variant.id, -3, StockReason.SALE, "o", test_actor_id) == 0

    def test_insufficient_stock(self, session, ledger, make_variant, test_actor_id):
        variant = make_variant(sku="MUG", stock=2)
        before = _entry_count(session)
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.apply_delta(variant.id, -3, StockReason.SALE, "o", test_actor_id)
        [shortfall] = exc_info.value.shortfalls
        assert shortfall["variant_id"] == variant.id
        assert shortfall["sku"] == "MUG"
        assert shortfall["available"] == 2
        assert shortfall["requested"] == 3
        assert shortfall["missing"] == 1
        assert session.get(Variant, variant.id).stock == 2
        assert _entry_count(session) == before

    def test_zero_delta_rejected(self, ledger, make_variant, test_actor_id):
        variant = make_variant(stock=3)
        with pytest.raises(ValidationError):
            ledger.apply_delta(variant.id, 0, StockReason.ADJUSTMENT, "x", test_actor_id)

    def test_unknown_variant(self, ledger, test_actor_id):
        with pytest.raises(VariantNotFoundError):
            ledger.apply_delta(uuid4(), 1, StockReason.PURCHASE, "po", test_actor_id)


class TestApplyDeltas:
    def test_multi_variant_batch(self, session, ledger, make_variant, test_actor_id):
        a = make_variant(stock=5)
        b = make_variant(stock=5)
        result = ledger.apply_deltas(
            [
                StockChange(a.id, -2, StockReason.SALE, "o"),
                StockChange(b.id, 3, StockReason.PURCHASE, "po"),
            ],
            test_actor_id,
        )
        assert result == {a.id: 3, b.id: 8}

    def test_all_or_nothing(self, session, ledger, make_variant, test_actor_id):
        a = make_variant(stock=5)
        b = make_variant(stock=1)
        c = make_variant(stock=5)
        before = _entry_count(session)
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.apply_deltas(
                [
                    StockChange(a.id, -1, StockReason.SALE, "o"),
                    StockChange(b.id, -2, StockReason.SALE, "o"),
                    StockChange(c.id, -1, StockReason.SALE, "o"),
                ],
                test_actor_id,
            )
        assert [s["variant_id"] for s in exc_info.value.shortfalls] == [b.id]
        assert _entry_count(session) == before
        assert [session.get(Variant, v.id).stock for v in (a, b, c)] == [5, 1, 5]

    def test_repeated_variant_checked_cumulatively(self, session, ledger, make_variant, test_actor_id):
        variant = make_variant(stock=4)
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.apply_deltas(
                [
                    StockChange(variant.id, -3, StockReason.SALE, "o"),
                    StockChange(variant.id, -3, StockReason.SALE, "o"),
                ],
                test_actor_id,
            )
        assert exc_info.value.shortfalls[0]["requested"] == 6
        assert exc_info.value.shortfalls[0]["missing"] == 2

    def test_repeated_variant_gets_one_entry_per_change(self, session, ledger, make_variant, test_actor_id):
        variant = make_variant(stock=4)
        ledger.apply_deltas(
            [
                StockChange(variant.id, -1, StockReason.SALE, "o"),
                StockChange(variant.id, -2, StockReason.SALE, "o"),
            ],
            test_actor_id,
        )
        sales = StockSelector(session).entries_for_reference("o")
        assert [e.resulting_stock for e in sales] == [3, 1]

    def test_empty_batch_rejected(self, ledger, test_actor_id):
        with pytest.raises(ValidationError):
            ledger.apply_deltas([], test_actor_id)

    def test_events_queued_with_final_levels(self, session, ledger, make_variant, test_actor_id):
        variant = make_variant(stock=4)
        session.commit()
        ledger.apply_deltas(
            [
                StockChange(variant.id, -1, StockReason.SALE, "o"),
                StockChange(variant.id, -2, StockReason.SALE, "o"),
            ],
            test_actor_id,
        )
        [event] = pending_stock_changes(session)
        assert event.variant_id == variant.id
        assert event.new_stock == 1

    def test_below_minimum_logged(self, ledger, make_variant, test_actor_id, captured_logs):
        variant = make_variant(stock=6, minimum_stock=5)
        ledger.apply_delta(variant.id, -3, StockReason.SALE, "o", test_actor_id)
        records = [r for r in captured_logs() if r["message"] == "variant_below_minimum_stock"]
        assert records and records[-1]["stock"] == 3

    def test_ledger_reconciles_after_many_movements(self, session, ledger, make_variant, test_actor_id):
        variant = make_variant(stock=10)
        for delta in (-1, 5, -7, 2, -9):
            ledger.apply_delta(variant.id, delta, StockReason.ADJUSTMENT, "count", test_actor_id)
        result = StockSelector(session).reconcile(variant.id)
        assert result.is_balanced
        assert result.stored_stock == 0
        assert result.entry_count == 6
