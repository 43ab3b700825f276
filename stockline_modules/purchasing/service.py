"""
Purchase Order Service (``stockline_modules.purchasing.service``).

Responsibility
--------------
Creates purchase orders, confirms them, and receives stock against them
(fully or partially).  Received units enter stock through
``StockLedgerService`` as ``purchase`` entries priced at the line's
effective cost.

Invariants
----------
- ``0 <= received <= ordered`` on every line; an over-receipt is rejected
  before anything changes.
- Receiving is all-or-nothing across the lines of one request.
- The PO row is locked before its lines are read.

Failure Modes
-------------
- ``ValidationError`` for malformed requests, duplicate or unknown line
  ids, out-of-range quantities, negative prices, inactive supplier.
- ``SupplierNotFoundError`` / ``VariantNotFoundError`` /
  ``PurchaseOrderNotFoundError``.
- ``InvalidStateTransitionError`` when confirming or receiving from a state
  that does not allow it.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
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
    PurchaseOrderNotFoundError,
    SupplierNotFoundError,
    ValidationError,
    VariantNotFoundError,
)
from stockline_kernel.logging_config import LogContext, get_logger
from stockline_kernel.models.catalog import Variant
from stockline_kernel.models.supplier import Supplier
from stockline_kernel.services.sequence_service import SequenceService, format_document_number
from stockline_kernel.services.stock_ledger import StockLedgerService
from stockline_modules._validation import (
    coerce_uuid,
    non_negative_int,
    optional_text,
    parse_price,
    positive_int,
)
from stockline_modules.purchasing.models import (
    PurchaseLineRequest,
    PurchaseOrderDTO,
    PurchaseOrderStatus,
    ReceivedItem,
)
from stockline_modules.purchasing.orm import PurchaseOrderItemModel, PurchaseOrderModel
from stockline_modules.purchasing.workflows import PURCHASE_ORDER_WORKFLOW

logger = get_logger("modules.purchasing.service")


class PurchaseOrderService:
    """
    Purchase order lifecycle.

    Transaction boundary: flushes only; the caller commits or rolls back.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        number_prefix: str = "PO",
        number_width: int = 6,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = StockLedgerService(session, self._clock)
        self._sequences = SequenceService(session)
        self._number_prefix = number_prefix
        self._number_width = number_width

    def create_purchase_order(
        self,
        supplier_id: UUID,
        items: Sequence[PurchaseLineRequest | tuple],
        actor_id: UUID,
        notes: str | None = None,
    ) -> PurchaseOrderDTO:
        """
        Create a pending purchase order.

        Raises:
            SupplierNotFoundError: unknown supplier.
            ValidationError: inactive supplier, no items, bad quantity or price.
            VariantNotFoundError: an item references an unknown variant.
        """
        supplier = self._session.get(Supplier, coerce_uuid(supplier_id, "supplier_id"))
        if supplier is None:
            raise SupplierNotFoundError(str(supplier_id))
        if not supplier.is_active:
            raise ValidationError(f"Supplier {supplier.name} is inactive", field="supplier_id")
        if not items:
            raise ValidationError("A purchase order needs at least one item", field="items")

        lines: list[PurchaseLineRequest] = []
        for raw in items:
            try:
                line = PurchaseLineRequest(*raw)
            except TypeError as exc:
                raise ValidationError(f"Malformed purchase order line: {raw!r}", field="items") from exc
            lines.append(
                PurchaseLineRequest(
                    coerce_uuid(line.variant_id, "variant_id"),
                    positive_int(line.quantity),
                    parse_price(line.expected_price, "expected_price"),
                )
            )

        variant_ids = {line.variant_id for line in lines}
        found = set(
            self._session.execute(
                select(Variant.id).where(Variant.id.in_(variant_ids))
            ).scalars()
        )
        for vid in sorted(variant_ids, key=str):
            if vid not in found:
                raise VariantNotFoundError(str(vid))

        number = format_document_number(
            self._number_prefix,
            self._sequences.next_value(SequenceService.PURCHASE_ORDER),
            self._number_width,
        )

        now = self._clock.now()
        po = PurchaseOrderModel(
            po_number=number,
            supplier_id=supplier.id,
            status=PurchaseOrderStatus.PENDING.value,
            total_amount=round_money(
                sum((line.expected_price * line.quantity for line in lines), Decimal("0"))
            ),
            notes=optional_text(notes),
            created_by_id=actor_id,
            created_at=now,
            updated_at=now,
        )
        for line_number, line in enumerate(lines, start=1):
            po.items.append(
                PurchaseOrderItemModel(
                    line_number=line_number,
                    variant_id=line.variant_id,
                    ordered_quantity=line.quantity,
                    received_quantity=0,
                    expected_price=line.expected_price,
                    created_by_id=actor_id,
                    created_at=now,
                    updated_at=now,
                )
            )
        self._session.add(po)
        self._session.flush()

        logger.info(
            "purchase_order_created",
            extra={
                "po_id": str(po.id),
                "po_number": number,
                "supplier_id": str(supplier.id),
                "line_count": len(lines),
                "total_amount": str(po.total_amount),
            },
        )
        return po.to_dto()

    def confirm(self, po_id: UUID, actor_id: UUID) -> PurchaseOrderDTO:
        """pending -> confirmed."""
        po = self._lock_po(po_id)
        if not PURCHASE_ORDER_WORKFLOW.can(po.status, "confirm"):
            raise InvalidStateTransitionError(
                "PurchaseOrder", str(po.id), po.status, "confirm",
            )
        po.status = PurchaseOrderStatus.CONFIRMED.value
        po.updated_by_id = actor_id
        self._flush()
        logger.info("purchase_order_confirmed", extra={"po_id": str(po.id)})
        return po.to_dto()

    def receive(
        self,
        po_id: UUID,
        received_items: Sequence[ReceivedItem | tuple],
        actor_id: UUID,
    ) -> PurchaseOrderDTO:
        """
        Receive units against PO lines.

        Each request line may carry an ``actual_price``, which replaces the
        price used for cost reporting on that line.

        Postconditions:
            - One ``purchase`` ledger entry per line with a positive
              increment; status ``received`` or ``partially_received``.
            - On any error, nothing has changed.
        """
        with LogContext.bind(operation="receive_purchase_order"):
            po = self._lock_po(po_id)
            if not PURCHASE_ORDER_WORKFLOW.can(po.status, "receive"):
                raise InvalidStateTransitionError(
                    "PurchaseOrder", str(po.id), po.status, "receive",
                )

            items = self._load_items(po.id)
            by_id = {item.id: item for item in items}

            increments: dict[UUID, int] = {}
            prices: dict[UUID, Decimal] = {}
            seen: set[UUID] = set()
            for raw in received_items or ():
                try:
                    request = ReceivedItem(*raw)
                except TypeError as exc:
                    raise ValidationError(f"Malformed received item: {raw!r}", field="received_items") from exc
                item_id = coerce_uuid(request.item_id, "item_id")
                if item_id in seen:
                    raise ValidationError(
                        f"Line {item_id} appears more than once", field="received_items",
                    )
                seen.add(item_id)
                item = by_id.get(item_id)
                if item is None:
                    raise ValidationError(
                        f"Purchase order has no line {item_id}", field="received_items",
                    )
                qty = non_negative_int(request.quantity, "quantity")
                remaining = item.ordered_quantity - item.received_quantity
                if qty > remaining:
                    raise ValidationError(
                        f"Quantity {qty} for line {item.line_number} is outside 0..{remaining}",
                        field="quantity",
                    )
                price = None
                if request.actual_price is not None:
                    price = parse_price(request.actual_price, "actual_price")
                if qty == 0:
                    continue
                increments[item_id] = qty
                if price is not None:
                    prices[item_id] = price

            if not increments:
                raise ValidationError("Nothing to receive", field="received_items")

            for item_id, price in prices.items():
                by_id[item_id].actual_price = price

            changes = [
                StockChange(
                    variant_id=item.variant_id,
                    delta=increments[item.id],
                    reason=StockReason.PURCHASE,
                    reference=str(po.id),
                    unit_price=item.effective_cost,
                )
                for item in items
                if item.id in increments
            ]
            self._ledger.apply_deltas(changes, actor_id)

            for item in items:
                if item.id in increments:
                    item.received_quantity = item.received_quantity + increments[item.id]
                    item.updated_by_id = actor_id

            previous = po.status
            po.status = _derive_status(items, po.status)
            po.updated_by_id = actor_id
            self._flush()

            logger.info(
                "purchase_order_received",
                extra={
                    "po_id": str(po.id),
                    "from_status": previous,
                    "to_status": po.status,
                    "units": sum(increments.values()),
                    "lines": len(increments),
                },
            )
            return po.to_dto()

    def get_purchase_order(self, po_id: UUID) -> PurchaseOrderDTO:
        po = self._session.get(PurchaseOrderModel, coerce_uuid(po_id, "po_id"))
        if po is None:
            raise PurchaseOrderNotFoundError(str(po_id))
        return po.to_dto()

    def _lock_po(self, po_id: UUID) -> PurchaseOrderModel:
        po = self._session.execute(
            select(PurchaseOrderModel)
            .where(PurchaseOrderModel.id == coerce_uuid(po_id, "po_id"))
            .options(lazyload(PurchaseOrderModel.items))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if po is None:
            raise PurchaseOrderNotFoundError(str(po_id))
        return po

    def _load_items(self, po_id: UUID) -> list[PurchaseOrderItemModel]:
        return list(
            self._session.execute(
                select(PurchaseOrderItemModel)
                .where(PurchaseOrderItemModel.po_id == po_id)
                .order_by(PurchaseOrderItemModel.line_number)
                .execution_options(populate_existing=True)
            ).scalars().unique()
        )

    def _flush(self) -> None:
        try:
            self._session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError("PurchaseOrder", str(exc)) from exc


def _derive_status(items: list[PurchaseOrderItemModel], current: str) -> str:
    if all(i.received_quantity == i.ordered_quantity for i in items):
        return PurchaseOrderStatus.RECEIVED.value
    if any(i.received_quantity > 0 for i in items):
        return PurchaseOrderStatus.PARTIALLY_RECEIVED.value
    return current
