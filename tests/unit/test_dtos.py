"""
Frozen value objects: stock changes, reconciliation results and order
line bounds.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from stockline_kernel.domain.dtos import ReconciliationResult, StockChange, StockReason
from stockline_modules.purchasing.models import PurchaseOrderItemDTO
from stockline_modules.reporting.models import LowStockItem, StockMovementDay
from stockline_modules.sales.models import LineStatus, SalesOrderItemDTO


class TestStockChange:
    @pytest.mark.parametrize("delta", [0, True, 1.5, "3"])
    def test_invalid_delta_rejected(self, delta):
        with pytest.raises(ValueError):
            StockChange(variant_id=uuid4(), delta=delta, reason=StockReason.SALE, reference="x")

    def test_negative_delta_allowed(self):
        change = StockChange(variant_id=uuid4(), delta=-3, reason=StockReason.SALE, reference="x")
        assert change.delta == -3


class TestReconciliationResult:
    def test_balanced(self):
        r = ReconciliationResult(uuid4(), "A", stored_stock=5, ledger_stock=5, entry_count=2)
        assert r.is_balanced
        assert r.discrepancy == 0

    def test_discrepancy(self):
        r = ReconciliationResult(uuid4(), "A", stored_stock=7, ledger_stock=5, entry_count=2)
        assert not r.is_balanced
        assert r.discrepancy == 2


class TestOrderLineBounds:
    def _line(self, ordered, fulfilled):
        return SalesOrderItemDTO(
            id=uuid4(),
            line_number=1,
            variant_id=uuid4(),
            sku="TEE-M",
            ordered_quantity=ordered,
            fulfilled_quantity=fulfilled,
            unit_price=Decimal("20.00"),
        )

    def test_over_fulfilled_line_rejected(self):
        with pytest.raises(ValueError):
            self._line(ordered=2, fulfilled=3)

    def test_line_status_is_derived(self):
        assert self._line(4, 0).status == LineStatus.PENDING
        assert self._line(4, 1).status == LineStatus.PARTIALLY_FULFILLED
        assert self._line(4, 4).status == LineStatus.FULFILLED
        assert self._line(4, 1).remaining_quantity == 3
        assert self._line(4, 1).line_total == Decimal("80.00")

    def test_po_line_effective_cost(self):
        line = PurchaseOrderItemDTO(
            id=uuid4(),
            line_number=1,
            variant_id=uuid4(),
            sku="TEE-M",
            ordered_quantity=20,
            received_quantity=12,
            expected_price=Decimal("2.00"),
        )
        assert line.effective_cost == Decimal("2.00")
        priced = PurchaseOrderItemDTO(**{**line.__dict__, "actual_price": Decimal("2.10")})
        assert priced.effective_cost == Decimal("2.10")
        assert priced.remaining_quantity == 8


class TestReportingValues:
    def test_low_stock_shortfall(self):
        item = LowStockItem(uuid4(), "A", "Tee", current_stock=1, pending_po_qty=2, minimum_stock=5)
        assert item.shortfall == 2

    def test_movement_net(self):
        day = StockMovementDay(
            day=datetime(2024, 1, 15, tzinfo=timezone.utc).date(),
            purchase=12,
            sale=-7,
            adjustment=-1,
        )
        assert day.net == 4
