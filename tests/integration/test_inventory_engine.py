"""
End-to-end tests through InventoryEngine: RBAC, one transaction per call,
post-commit notification and error mapping.
"""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from stockline_kernel.db.engine import create_engine_from_url
from stockline_kernel.db.immutability import unregister_immutability_listeners
from stockline_kernel.domain.dtos import StockReason
from stockline_kernel.exceptions import (
    ForbiddenError,
    ImmutabilityViolationError,
    InsufficientStockError,
    InvalidStateTransitionError,
    OperationFailedError,
    OptimisticLockError,
    UnauthorizedError,
    ValidationError,
)
from stockline_kernel.models.catalog import Variant
from stockline_kernel.models.user import UserRole
from stockline_kernel.selectors.stock_selector import StockSelector
from stockline_modules._orm_registry import create_all_tables
from stockline_modules.catalog import CatalogService
from stockline_modules.purchasing import PurchaseOrderStatus, ReceivedItem
from stockline_modules.sales import CustomerInfo, FulfillmentMode, SalesOrderStatus
from stockline_services.identity import Actor
from stockline_services.inventory_engine import InventoryEngine

CUSTOMER = CustomerInfo(name="Ana Customer", email="ana@example.test")


def _ledger(session_factory, reference):
    with session_factory() as sess:
        return StockSelector(sess).entries_for_reference(reference)


class TestOrderScenarios:
    def test_full_fulfillment(self, inventory_engine, engine_variant, staff, session_factory):
        v = engine_variant(sku="TEE-M", stock=10, minimum_stock=5, price="20.00")
        order = inventory_engine.create_order(staff, [(v.id, 4)], CUSTOMER)

        order = inventory_engine.fulfill_order(staff, order.id, FulfillmentMode.FULL)

        assert order.status == SalesOrderStatus.FULFILLED
        [sale] = _ledger(session_factory, str(order.id))
        assert (sale.reason, sale.delta, sale.resulting_stock) == (StockReason.SALE, -4, 6)
        summary = inventory_engine.get_dashboard_summary(staff)
        assert summary.low_stock_items == ()

    def test_partial_fulfillment_flags_low_stock(self, inventory_engine, engine_variant, staff):
        v = engine_variant(sku="TEE-M", stock=6, minimum_stock=5)
        order = inventory_engine.create_order(staff, [(v.id, 5)], CUSTOMER)

        order = inventory_engine.fulfill_order(
            staff, order.id, FulfillmentMode.PARTIAL, lines={order.items[0].id: 3}
        )

        assert order.status == SalesOrderStatus.PARTIALLY_FULFILLED
        assert order.items[0].fulfilled_quantity == 3
        [low] = inventory_engine.get_dashboard_summary(staff).low_stock_items
        assert (low.sku, low.current_stock, low.shortfall) == ("TEE-M", 3, 2)

    def test_partial_receipt(self, inventory_engine, engine_variant, manager, session_factory):
        v = engine_variant(sku="TEE-M", stock=0)
        supplier = inventory_engine.create_supplier(manager, "Acme Supply")
        po = inventory_engine.create_purchase_order(manager, supplier.id, [(v.id, 20, "2.00")])

        po = inventory_engine.receive_purchase_order(
            manager, po.id, [ReceivedItem(po.items[0].id, 12, Decimal("2.10"))]
        )

        assert po.status == PurchaseOrderStatus.PARTIALLY_RECEIVED
        [entry] = _ledger(session_factory, str(po.id))
        assert (entry.delta, entry.unit_price) == (12, Decimal("2.10"))
        [variant] = inventory_engine.list_variants(manager)
        assert variant.stock == 12

    def test_double_fulfillment_rejected(self, inventory_engine, engine_variant, staff, session_factory):
        v = engine_variant(stock=10)
        order = inventory_engine.create_order(staff, [(v.id, 4)], CUSTOMER)
        inventory_engine.fulfill_order(staff, order.id, FulfillmentMode.FULL)

        with pytest.raises(InvalidStateTransitionError):
            inventory_engine.fulfill_order(staff, order.id, FulfillmentMode.FULL)
        assert len(_ledger(session_factory, str(order.id))) == 1

    def test_cancelled_order_cannot_be_fulfilled(self, inventory_engine, engine_variant, staff, session_factory):
        v = engine_variant(stock=10)
        order = inventory_engine.create_order(staff, [(v.id, 4)], CUSTOMER)
        cancelled = inventory_engine.cancel_order(staff, order.id)
        assert cancelled.status == SalesOrderStatus.CANCELLED

        with pytest.raises(InvalidStateTransitionError):
            inventory_engine.fulfill_order(staff, order.id, FulfillmentMode.FULL)
        assert _ledger(session_factory, str(order.id)) == []

    def test_multi_line_shortfall_is_all_or_nothing(self, inventory_engine, engine_variant, staff, notifier):
        a = engine_variant(sku="A", stock=5)
        b = engine_variant(sku="B", stock=1)
        c = engine_variant(sku="C", stock=5)
        order = inventory_engine.create_order(staff, [(a.id, 2), (b.id, 2), (c.id, 2)], CUSTOMER)
        notifier.clear()

        with pytest.raises(InsufficientStockError) as exc_info:
            inventory_engine.fulfill_order(staff, order.id, FulfillmentMode.FULL)

        assert [s["sku"] for s in exc_info.value.shortfalls] == ["B"]
        assert inventory_engine.get_order(staff, order.id).status == SalesOrderStatus.PENDING
        assert [v.stock for v in inventory_engine.list_variants(staff)] == [5, 1, 5]
        assert notifier.published == []


class TestNotification:
    def test_published_after_commit(self, inventory_engine, engine_variant, staff, notifier):
        v = engine_variant(stock=10)
        order = inventory_engine.create_order(staff, [(v.id, 4)], CUSTOMER)
        notifier.clear()
        seen = []
        notifier.subscribe(seen.append)

        inventory_engine.fulfill_order(staff, order.id, FulfillmentMode.FULL)

        assert [(e.variant_id, e.new_stock) for e in seen] == [(v.id, 6)]

    def test_order_creation_publishes_nothing(self, inventory_engine, engine_variant, staff, notifier):
        v = engine_variant(stock=10)
        notifier.clear()
        inventory_engine.create_order(staff, [(v.id, 4)], CUSTOMER)
        assert notifier.published == []

    def test_adjustment_publishes(self, inventory_engine, engine_variant, manager, notifier):
        v = engine_variant(stock=10)
        notifier.clear()
        inventory_engine.adjust_stock(manager, v.id, -2, reference="breakage")
        assert [e.new_stock for e in notifier.published] == [8]


class TestAuthorization:
    def test_staff_cannot_create_purchase_order(self, inventory_engine, engine_variant, staff, manager):
        v = engine_variant()
        supplier = inventory_engine.create_supplier(manager, "Acme Supply")
        with pytest.raises(ForbiddenError) as exc_info:
            inventory_engine.create_purchase_order(staff, supplier.id, [(v.id, 1, "1.00")])
        assert exc_info.value.permission == "purchase_order.manage"

    @pytest.mark.parametrize(
        "call",
        [
            lambda e, a: e.create_product(a, "Tote"),
            lambda e, a: e.create_supplier(a, "Acme"),
            lambda e, a: e.adjust_stock(a, uuid4(), 1),
            lambda e, a: e.reconcile_stock(a),
            lambda e, a: e.create_user(a, "x@shop.test", "X", UserRole.STAFF),
            lambda e, a: e.get_purchase_order(a, uuid4()),
        ],
    )
    def test_staff_forbidden_operations(self, inventory_engine, staff, call):
        with pytest.raises(ForbiddenError):
            call(inventory_engine, staff)

    def test_staff_allowed_operations(self, inventory_engine, engine_variant, staff):
        v = engine_variant(stock=3)
        order = inventory_engine.create_order(staff, [(v.id, 1)], CUSTOMER)
        assert inventory_engine.get_order(staff, order.id).id == order.id
        assert len(inventory_engine.list_variants(staff)) == 1
        inventory_engine.get_dashboard_summary(staff)

    def test_only_owner_creates_owner(self, inventory_engine, owner, manager):
        with pytest.raises(ForbiddenError):
            inventory_engine.create_user(manager, "co@shop.test", "Co", UserRole.OWNER)
        created = inventory_engine.create_user(owner, "co@shop.test", "Co", UserRole.OWNER)
        assert created.role == UserRole.OWNER

    def test_missing_actor(self, inventory_engine):
        with pytest.raises(UnauthorizedError):
            inventory_engine.list_variants(None)

    def test_forbidden_call_opens_no_transaction(self, inventory_engine, staff, captured_logs):
        with pytest.raises(ForbiddenError):
            inventory_engine.create_product(staff, "Tote")
        messages = [r["message"] for r in captured_logs()]
        assert "operation_forbidden" in messages
        assert "transaction_started" not in messages


class TestIdentity:
    def test_bootstrap_login_resolve(self, inventory_engine):
        owner = inventory_engine.bootstrap_owner("owner@shop.test", "Olive Owner")
        token = inventory_engine.login("OWNER@shop.test")
        actor = inventory_engine.resolve(token)
        assert actor == Actor(user_id=owner.id, role=UserRole.OWNER)

        clerk = inventory_engine.create_user(actor, "clerk@shop.test", "Clerk", "staff")
        clerk_actor = inventory_engine.resolve(inventory_engine.login("clerk@shop.test"))
        assert clerk_actor.role == UserRole.STAFF
        assert clerk_actor.user_id == clerk.id

        inventory_engine.logout(token)
        with pytest.raises(UnauthorizedError):
            inventory_engine.resolve(token)

    def test_bootstrap_only_once(self, inventory_engine):
        inventory_engine.bootstrap_owner("owner@shop.test", "Olive Owner")
        with pytest.raises(ValidationError):
            inventory_engine.bootstrap_owner("again@shop.test", "Again")

    def test_unknown_login(self, inventory_engine):
        with pytest.raises(UnauthorizedError):
            inventory_engine.login("nobody@shop.test")


class TestErrorMapping:
    def test_database_failure_is_wrapped(self, tmp_path, engine_config, owner):
        # Schema never created: every statement fails.
        db = create_engine_from_url(f"sqlite:///{tmp_path / 'empty.db'}")
        engine = InventoryEngine(
            session_factory=sessionmaker(bind=db, expire_on_commit=False),
            rbac=engine_config.rbac,
        )
        try:
            with pytest.raises(OperationFailedError) as exc_info:
                engine.create_product(owner, "Tote")
            assert exc_info.value.operation == "create_product"
            assert exc_info.value.cause_code == "OperationalError"
        finally:
            db.dispose()

    def test_concurrency_failure_is_wrapped(self, inventory_engine, owner, monkeypatch, captured_logs):
        def conflicting(self, *args, **kwargs):
            raise OptimisticLockError("Product")

        monkeypatch.setattr(CatalogService, "create_product", conflicting)
        with pytest.raises(OperationFailedError) as exc_info:
            inventory_engine.create_product(owner, "Tote")
        assert exc_info.value.cause_code == OptimisticLockError.code
        failed = [r for r in captured_logs() if r["message"] == "operation_failed"]
        assert failed[-1]["operation"] == "create_product"

    def test_domain_errors_pass_through(self, inventory_engine, owner):
        with pytest.raises(ValidationError):
            inventory_engine.create_product(owner, "")


class TestReconciliation:
    def test_reconcile_after_activity(self, inventory_engine, engine_variant, owner, staff):
        v = engine_variant(stock=10)
        order = inventory_engine.create_order(staff, [(v.id, 3)], CUSTOMER)
        inventory_engine.fulfill_order(staff, order.id, FulfillmentMode.FULL)
        inventory_engine.adjust_stock(owner, v.id, 2, StockReason.RETURN)

        [result] = inventory_engine.reconcile_stock(owner, v.id)
        assert result.is_balanced
        assert result.stored_stock == 9
        assert all(r.is_balanced for r in inventory_engine.reconcile_stock(owner))


class TestStartupOnExistingSchema:
    def test_ledger_guard_installed_without_schema_creation(self, tmp_path, engine_config, owner):
        url = f"sqlite:///{tmp_path / 'existing.db'}"
        setup_db = create_engine_from_url(url)
        create_all_tables(setup_db)
        setup_db.dispose()
        # A fresh process has no listeners until the engine starts
        unregister_immutability_listeners()

        config = replace(engine_config, database=replace(engine_config.database, url=url))
        engine = InventoryEngine.from_config(config, create_schema=False)
        tamper_db = create_engine_from_url(url)
        try:
            product = engine.create_product(owner, "Tote")
            variant = engine.create_variant(owner, product.id, "TOTE-1", "12.00", initial_stock=3)

            with Session(tamper_db) as sess:
                sess.get(Variant, variant.id).stock = 42
                with pytest.raises(ImmutabilityViolationError):
                    sess.commit()

            [result] = engine.reconcile_stock(owner, variant.id)
            assert result.is_balanced
            assert result.stored_stock == 3
        finally:
            tamper_db.dispose()
            engine.close()
