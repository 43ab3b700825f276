"""
Sales Order Service (``stockline_modules.sales.service``).

Responsibility
--------------
Creates sales orders, fulfills them fully or partially, and cancels them.
Stock moves only through ``StockLedgerService``; this service decides *what*
to move and records fulfilled quantities and status.

Architecture
------------
Layer: **Modules** -- stateful orchestration over the kernel ledger.

Invariants
----------
- ``0 <= fulfilled <= ordered`` on every line.
- Fulfillment is all-or-nothing across lines: the ledger checks every
  decrement before applying any, and a failure leaves the order untouched.
- The order row is locked (``SELECT ... FOR UPDATE``) before its lines are
  read, so two concurrent fulfillments of the same order serialize and the
  second one sees the first one's quantities.
- Order creation does not reserve or check stock.

Failure Modes
-------------
- ``ValidationError`` / ``VariantNotFoundError`` / ``OrderNotFoundError``
  for malformed requests.
- ``InvalidStateTransitionError`` for fulfill/cancel from a state that does
  not allow it.
- ``InsufficientStockError`` (from the ledger) with per-variant shortfalls.
- ``OptimisticLockError`` on a version conflict.

Usage::

    service = SalesOrderService(session, clock)
    order = service.create_order(
        [OrderLineRequest(variant_id, 3)], CustomerInfo("Ada"), actor_id,
    )
    order = service.fulfill(order.id, FulfillmentMode.FULL, actor_id)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Mapping, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, lazyload
from sqlalchemy.orm.exc import StaleDataError

from stockline_kernel.db.types import round_money
from stockline_kernel.domain.clock import Clock, SystemClock
from stockline_kernel.domain.dtos import StockChange, StockReason
from stockline_kernel.exceptions import (
    InvalidStateTransitionError,
    OptimisticLockError,
    OrderNotFoundError,
    ValidationError,
    VariantNotFoundError,
)
from stockline_kernel.logging_config import LogContext, get_logger
from stockline_kernel.models.catalog import Variant
from stockline_kernel.services.sequence_service import SequenceService, format_document_number
from stockline_kernel.services.stock_ledger import StockLedgerService
from stockline_modules._validation import coerce_uuid, positive_int
from stockline_modules.sales.models import (
    CustomerInfo,
    FulfillmentMode,
    OrderLineRequest,
    SalesOrderDTO,
    SalesOrderStatus,
)
from stockline_modules.sales.orm import SalesOrderItemModel, SalesOrderModel
from stockline_modules.sales.workflows import SALES_ORDER_WORKFLOW

logger = get_logger("modules.sales.service")


class SalesOrderService:
    """
    Sales order lifecycle.

    Transaction boundary: flushes only; the caller commits or rolls back.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        number_prefix: str = "SO",
        number_width: int = 6,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = StockLedgerService(session, self._clock)
        self._sequences = SequenceService(session)
        self._number_prefix = number_prefix
        self._number_width = number_width

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_order(
        self,
        items: Sequence[OrderLineRequest | tuple],
        customer: CustomerInfo,
        actor_id: UUID,
    ) -> SalesOrderDTO:
        """
        Create a pending order.  Unit prices are snapshotted from the variants.

        Raises:
            ValidationError: no items, non-positive quantity, missing customer name.
            VariantNotFoundError: an item references an unknown variant.
        """
        if not items:
            raise ValidationError("An order needs at least one item", field="items")
        if customer is None or not (customer.name or "").strip():
            raise ValidationError("Customer name is required", field="customer_name")

        lines = []
        for raw in items:
            try:
                line = OrderLineRequest(*raw)
            except TypeError as exc:
                raise ValidationError(f"Malformed order line: {raw!r}", field="items") from exc
            lines.append(
                OrderLineRequest(
                    coerce_uuid(line.variant_id, "variant_id"),
                    positive_int(line.quantity),
                )
            )

        variant_ids = {line.variant_id for line in lines}
        variants = {
            v.id: v
            for v in self._session.execute(
                select(Variant).where(Variant.id.in_(variant_ids))
            ).scalars()
        }
        for vid in sorted(variant_ids, key=str):
            if vid not in variants:
                raise VariantNotFoundError(str(vid))

        number = format_document_number(
            self._number_prefix,
            self._sequences.next_value(SequenceService.SALES_ORDER),
            self._number_width,
        )

        now = self._clock.now()
        order = SalesOrderModel(
            order_number=number,
            customer_name=customer.name.strip(),
            customer_email=(customer.email or "").strip() or None,
            customer_phone=(customer.phone or "").strip() or None,
            status=SalesOrderStatus.PENDING.value,
            total_amount=Decimal("0"),
            created_by_id=actor_id,
            created_at=now,
            updated_at=now,
        )
        total = Decimal("0")
        for line_number, line in enumerate(lines, start=1):
            unit_price = variants[line.variant_id].price
            order.items.append(
                SalesOrderItemModel(
                    line_number=line_number,
                    variant_id=line.variant_id,
                    ordered_quantity=line.quantity,
                    fulfilled_quantity=0,
                    unit_price=unit_price,
                    created_by_id=actor_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            total += unit_price * line.quantity
        order.total_amount = round_money(total)

        self._session.add(order)
        self._session.flush()

        logger.info(
            "order_created",
            extra={
                "order_id": str(order.id),
                "order_number": number,
                "line_count": len(lines),
                "total_amount": str(order.total_amount),
            },
        )
        return order.to_dto()

    # ------------------------------------------------------------------
    # Fulfill
    # ------------------------------------------------------------------

    def fulfill(
        self,
        order_id: UUID,
        mode: FulfillmentMode | str,
        actor_id: UUID,
        lines: Mapping[UUID, int] | None = None,
    ) -> SalesOrderDTO:
        """
        Ship stock against an order.

        ``FulfillmentMode.FULL`` ships every remaining unit.  ``PARTIAL``
        ships ``lines[item_id]`` units per line (zero increments are
        skipped).

        Postconditions:
            - On success, one ``sale`` ledger entry per shipped line and the
              order status is ``fulfilled`` or ``partially_fulfilled``.
            - On any error, nothing has changed.
        """
        try:
            mode = FulfillmentMode(mode)
        except ValueError as exc:
            raise ValidationError(f"Unknown fulfillment mode: {mode!r}", field="mode") from exc

        with LogContext.bind(order_id=str(order_id), operation="fulfill_order"):
            order = self._lock_order(order_id)
            if not SALES_ORDER_WORKFLOW.can(order.status, "fulfill"):
                raise InvalidStateTransitionError(
                    "SalesOrder", str(order.id), order.status, "fulfill",
                )

            items = self._load_items(order.id)
            increments = self._resolve_increments(items, mode, lines)

            changes = [
                StockChange(
                    variant_id=item.variant_id,
                    delta=-increments[item.id],
                    reason=StockReason.SALE,
                    reference=str(order.id),
                    unit_price=item.unit_price,
                )
                for item in items
                if item.id in increments
            ]
            self._ledger.apply_deltas(changes, actor_id)

            for item in items:
                if item.id in increments:
                    item.fulfilled_quantity = item.fulfilled_quantity + increments[item.id]
                    item.updated_by_id = actor_id

            new_status = _derive_status(items, order.status)
            if new_status not in SALES_ORDER_WORKFLOW.targets(order.status, "fulfill"):
                raise InvalidStateTransitionError(
                    "SalesOrder", str(order.id), order.status, "fulfill",
                )
            previous = order.status
            order.status = new_status
            order.updated_by_id = actor_id
            self._flush("SalesOrder")

            logger.info(
                "order_fulfilled",
                extra={
                    "mode": mode.value,
                    "from_status": previous,
                    "to_status": new_status,
                    "units": sum(increments.values()),
                    "lines": len(increments),
                },
            )
            return order.to_dto()

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    def cancel(self, order_id: UUID, actor_id: UUID) -> SalesOrderDTO:
        """Cancel a pending order.  No stock moves."""
        order = self._lock_order(order_id)
        if not SALES_ORDER_WORKFLOW.can(order.status, "cancel"):
            raise InvalidStateTransitionError(
                "SalesOrder", str(order.id), order.status, "cancel",
            )
        order.status = SalesOrderStatus.CANCELLED.value
        order.cancelled_at = self._clock.now()
        order.updated_by_id = actor_id
        self._flush("SalesOrder")
        logger.info("order_cancelled", extra={"order_id": str(order.id)})
        return order.to_dto()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_order(self, order_id: UUID) -> SalesOrderDTO:
        order = self._session.get(SalesOrderModel, coerce_uuid(order_id, "order_id"))
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order.to_dto()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock_order(self, order_id: UUID) -> SalesOrderModel:
        order = self._session.execute(
            select(SalesOrderModel)
            .where(SalesOrderModel.id == coerce_uuid(order_id, "order_id"))
            .options(lazyload(SalesOrderModel.items))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def _load_items(self, order_id: UUID) -> list[SalesOrderItemModel]:
        return list(
            self._session.execute(
                select(SalesOrderItemModel)
                .where(SalesOrderItemModel.order_id == order_id)
                .order_by(SalesOrderItemModel.line_number)
                .execution_options(populate_existing=True)
            ).scalars().unique()
        )

    @staticmethod
    def _resolve_increments(
        items: list[SalesOrderItemModel],
        mode: FulfillmentMode,
        lines: Mapping[UUID, int] | None,
    ) -> dict[UUID, int]:
        if mode == FulfillmentMode.FULL:
            if lines:
                raise ValidationError(
                    "Per-line quantities are only accepted for partial fulfillment",
                    field="lines",
                )
            increments = {
                item.id: item.ordered_quantity - item.fulfilled_quantity
                for item in items
                if item.ordered_quantity > item.fulfilled_quantity
            }
        else:
            by_id = {item.id: item for item in items}
            increments = {}
            for raw_id, qty in (lines or {}).items():
                item_id = coerce_uuid(raw_id, "item_id")
                item = by_id.get(item_id)
                if item is None:
                    raise ValidationError(f"Order has no line {item_id}", field="lines")
                if isinstance(qty, bool) or not isinstance(qty, int):
                    raise ValidationError(
                        f"Quantity for line {item.line_number} must be an integer",
                        field="lines",
                    )
                remaining = item.ordered_quantity - item.fulfilled_quantity
                if qty < 0 or qty > remaining:
                    raise ValidationError(
                        f"Quantity {qty} for line {item.line_number} is outside 0..{remaining}",
                        field="lines",
                    )
                if qty > 0:
                    increments[item_id] = qty

        if not increments:
            raise ValidationError("Nothing to fulfill", field="lines")
        return increments

    def _flush(self, entity_type: str) -> None:
        try:
            self._session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError(entity_type, str(exc)) from exc


def _derive_status(items: list[SalesOrderItemModel], current: str) -> str:
    if all(i.fulfilled_quantity == i.ordered_quantity for i in items):
        return SalesOrderStatus.FULFILLED.value
    if any(i.fulfilled_quantity > 0 for i in items):
        return SalesOrderStatus.PARTIALLY_FULFILLED.value
    return current
