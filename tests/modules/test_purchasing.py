"""
PurchaseOrderService: creation, confirmation and receiving.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stockline_kernel.domain.dtos import StockReason
from stockline_kernel.exceptions import (
    InvalidStateTransitionError,
    PurchaseOrderNotFoundError,
    SupplierNotFoundError,
    ValidationError,
    VariantNotFoundError,
)
from stockline_kernel.models.supplier import Supplier
from stockline_kernel.selectors.stock_selector import StockSelector
from stockline_modules.purchasing import (
    PurchaseLineRequest,
    PurchaseOrderService,
    PurchaseOrderStatus,
    ReceivedItem,
)


@pytest.fixture
def purchasing(session, deterministic_clock) -> PurchaseOrderService:
    return PurchaseOrderService(session, deterministic_clock)


@pytest.fixture
def supplier(make_supplier):
    return make_supplier()


class TestCreatePurchaseOrder:
    def test_create(self, purchasing, supplier, make_variant, test_actor_id):
        v = make_variant(sku="TEE")
        po = purchasing.create_purchase_order(
            supplier.id,
            [PurchaseLineRequest(v.id, 20, Decimal("2.00"))],
            test_actor_id,
            notes="spring restock",
        )
        assert po.po_number == "PO-000001"
        assert po.status == PurchaseOrderStatus.PENDING
        assert po.total_amount == Decimal("40.00")
        assert po.notes == "spring restock"
        assert po.items[0].sku == "TEE"
        assert po.items[0].remaining_quantity == 20

    def test_creation_does_not_touch_stock(self, session, purchasing, supplier, make_variant, test_actor_id):
        v = make_variant(stock=2)
        purchasing.create_purchase_order(supplier.id, [(v.id, 20, "2.00")], test_actor_id)
        assert StockSelector(session).ledger_stock(v.id) == 2

    def test_unknown_supplier(self, purchasing, make_variant, test_actor_id):
        v = make_variant()
        with pytest.raises(SupplierNotFoundError):
            purchasing.create_purchase_order(uuid4(), [(v.id, 1, "1.00")], test_actor_id)

    def test_inactive_supplier(self, session, purchasing, supplier, make_variant, test_actor_id):
        v = make_variant()
        session.get(Supplier, supplier.id).is_active = False
        session.flush()
        with pytest.raises(ValidationError):
            purchasing.create_purchase_order(supplier.id, [(v.id, 1, "1.00")], test_actor_id)

    def test_unknown_variant(self, purchasing, supplier, test_actor_id):
        with pytest.raises(VariantNotFoundError):
            purchasing.create_purchase_order(supplier.id, [(uuid4(), 1, "1.00")], test_actor_id)

    @pytest.mark.parametrize(
        "line_factory",
        [
            lambda vid: (vid, 0, "1.00"),
            lambda vid: (vid, 1, "-1.00"),
            lambda vid: (vid, 1, 1.25),
            lambda vid: (vid, 1),
        ],
    )
    def test_invalid_lines(self, purchasing, supplier, make_variant, test_actor_id, line_factory):
        v = make_variant()
        with pytest.raises(ValidationError):
            purchasing.create_purchase_order(supplier.id, [line_factory(v.id)], test_actor_id)

    def test_empty_items(self, purchasing, supplier, test_actor_id):
        with pytest.raises(ValidationError):
            purchasing.create_purchase_order(supplier.id, [], test_actor_id)


class TestConfirm:
    def test_confirm_once(self, purchasing, supplier, make_variant, test_actor_id):
        v = make_variant()
        po = purchasing.create_purchase_order(supplier.id, [(v.id, 5, "1.00")], test_actor_id)
        assert purchasing.confirm(po.id, test_actor_id).status == PurchaseOrderStatus.CONFIRMED
        with pytest.raises(InvalidStateTransitionError):
            purchasing.confirm(po.id, test_actor_id)

    def test_unknown(self, purchasing, test_actor_id):
        with pytest.raises(PurchaseOrderNotFoundError):
            purchasing.confirm(uuid4(), test_actor_id)


class TestReceive:
    def test_partial_receipt_at_actual_price(self, session, purchasing, supplier, make_variant, test_actor_id):
        v = make_variant(stock=0)
        po = purchasing.create_purchase_order(supplier.id, [(v.id, 20, "2.00")], test_actor_id)
        line = po.items[0]

        po = purchasing.receive(po.id, [ReceivedItem(line.id, 12, Decimal("2.10"))], test_actor_id)

        assert po.status == PurchaseOrderStatus.PARTIALLY_RECEIVED
        assert po.items[0].received_quantity == 12
        assert po.items[0].effective_cost == Decimal("2.10")
        [entry] = StockSelector(session).entries_for_reference(str(po.id))
        assert entry.reason == StockReason.PURCHASE
        assert entry.delta == 12
        assert entry.unit_price == Decimal("2.10")
        assert StockSelector(session).ledger_stock(v.id) == 12

    def test_receive_remaining_from_confirmed(self, purchasing, supplier, make_variant, test_actor_id):
        v = make_variant()
        po = purchasing.create_purchase_order(supplier.id, [(v.id, 4, "3.00")], test_actor_id)
        purchasing.confirm(po.id, test_actor_id)
        line_id = po.items[0].id
        purchasing.receive(po.id, [(line_id, 1)], test_actor_id)
        po = purchasing.receive(po.id, [(line_id, 3)], test_actor_id)
        assert po.status == PurchaseOrderStatus.RECEIVED
        assert po.items[0].effective_cost == Decimal("3.00")

    def test_received_is_terminal(self, purchasing, supplier, make_variant, test_actor_id):
        v = make_variant()
        po = purchasing.create_purchase_order(supplier.id, [(v.id, 1, "3.00")], test_actor_id)
        purchasing.receive(po.id, [(po.items[0].id, 1)], test_actor_id)
        with pytest.raises(InvalidStateTransitionError):
            purchasing.receive(po.id, [(po.items[0].id, 1)], test_actor_id)
        with pytest.raises(InvalidStateTransitionError):
            purchasing.confirm(po.id, test_actor_id)

    def test_over_receipt_changes_nothing(self, session, purchasing, supplier, make_variant, test_actor_id):
        a = make_variant()
        b = make_variant()
        po = purchasing.create_purchase_order(
            supplier.id, [(a.id, 5, "1.00"), (b.id, 2, "1.00")], test_actor_id
        )
        first, second = po.items
        with pytest.raises(ValidationError):
            purchasing.receive(po.id, [(first.id, 5), (second.id, 3)], test_actor_id)
        reloaded = purchasing.get_purchase_order(po.id)
        assert reloaded.status == PurchaseOrderStatus.PENDING
        assert reloaded.received_quantity == 0
        assert StockSelector(session).entries_for_reference(str(po.id)) == []

    def test_zero_lines_skipped_and_unpriced(self, purchasing, supplier, make_variant, test_actor_id):
        a = make_variant()
        b = make_variant()
        po = purchasing.create_purchase_order(
            supplier.id, [(a.id, 5, "1.00"), (b.id, 2, "1.00")], test_actor_id
        )
        first, second = po.items
        po = purchasing.receive(
            po.id, [(first.id, 2), (second.id, 0, "9.99")], test_actor_id
        )
        assert [i.received_quantity for i in po.items] == [2, 0]
        assert po.items[1].actual_price is None

    @pytest.mark.parametrize("bad_price", ["abc", "-1"])
    def test_zero_line_price_still_validated(
        self, session, purchasing, supplier, make_variant, test_actor_id, bad_price
    ):
        a = make_variant()
        b = make_variant()
        po = purchasing.create_purchase_order(
            supplier.id, [(a.id, 5, "1.00"), (b.id, 2, "1.00")], test_actor_id
        )
        first, second = po.items
        with pytest.raises(ValidationError):
            purchasing.receive(po.id, [(first.id, 2), (second.id, 0, bad_price)], test_actor_id)
        assert StockSelector(session).entries_for_reference(str(po.id)) == []

    def test_duplicate_line_rejected(self, purchasing, supplier, make_variant, test_actor_id):
        v = make_variant()
        po = purchasing.create_purchase_order(supplier.id, [(v.id, 5, "1.00")], test_actor_id)
        line_id = po.items[0].id
        with pytest.raises(ValidationError):
            purchasing.receive(po.id, [(line_id, 1), (line_id, 1)], test_actor_id)

    def test_unknown_line_rejected(self, purchasing, supplier, make_variant, test_actor_id):
        v = make_variant()
        po = purchasing.create_purchase_order(supplier.id, [(v.id, 5, "1.00")], test_actor_id)
        with pytest.raises(ValidationError):
            purchasing.receive(po.id, [(uuid4(), 1)], test_actor_id)

    def test_nothing_to_receive(self, purchasing, supplier, make_variant, test_actor_id):
        v = make_variant()
        po = purchasing.create_purchase_order(supplier.id, [(v.id, 5, "1.00")], test_actor_id)
        with pytest.raises(ValidationError):
            purchasing.receive(po.id, [], test_actor_id)

    def test_negative_actual_price(self, purchasing, supplier, make_variant, test_actor_id):
        v = make_variant()
        po = purchasing.create_purchase_order(supplier.id, [(v.id, 5, "1.00")], test_actor_id)
        with pytest.raises(ValidationError):
            purchasing.receive(po.id, [(po.items[0].id, 1, "-0.01")], test_actor_id)
