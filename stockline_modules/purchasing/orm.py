"""
Module: stockline_modules.purchasing.orm
Responsibility: SQLAlchemy ORM persistence for purchase orders and lines.

Architecture position: Modules > Purchasing > ORM.  Inherits from
    TrackedBase and references kernel suppliers and variants by foreign key.

Invariants enforced:
    - ordered_quantity > 0, 0 <= received_quantity <= ordered_quantity,
      expected_price >= 0, actual_price >= 0 (CHECK constraints).
    - po_number is unique.
    - Purchase orders are never deleted.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockline_kernel.db.base import TrackedBase
from stockline_kernel.exceptions import ImmutabilityViolationError
from stockline_kernel.models.catalog import Variant


class PurchaseOrderModel(TrackedBase):
    """
    ORM model for a purchase order placed with a supplier.

    Maps to: stockline_modules.purchasing.models.PurchaseOrderDTO.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_order_number"),
        Index("idx_purchase_order_status", "status"),
        Index("idx_purchase_order_supplier", "supplier_id"),
    )

    po_number: Mapped[str] = mapped_column(String(20), nullable=False)

    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("suppliers.id"), nullable=False)

    # PurchaseOrderStatus stored as string
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")

    # Expected total: sum(ordered_quantity * expected_price)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list["PurchaseOrderItemModel"]] = relationship(
        back_populates="purchase_order",
        order_by="PurchaseOrderItemModel.line_number",
        cascade="save-update, merge",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        """Convert ORM model to frozen PurchaseOrderDTO."""
        from stockline_modules.purchasing.models import (
            PurchaseOrderDTO,
            PurchaseOrderStatus,
        )
        return PurchaseOrderDTO(
            id=self.id,
            po_number=self.po_number,
            supplier_id=self.supplier_id,
            status=PurchaseOrderStatus(self.status),
            total_amount=self.total_amount,
            items=tuple(item.to_dto() for item in self.items),
            created_at=self.created_at,
            notes=self.notes,
            version=self.version,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.po_number} {self.status}>"


class PurchaseOrderItemModel(TrackedBase):
    """ORM model for one purchase order line."""

    __tablename__ = "purchase_order_items"

    __table_args__ = (
        UniqueConstraint("po_id", "line_number", name="uq_purchase_order_item_line"),
        CheckConstraint("ordered_quantity > 0", name="ck_po_item_ordered_positive"),
        CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= ordered_quantity",
            name="ck_po_item_received_bounds",
        ),
        CheckConstraint("expected_price >= 0", name="ck_po_item_expected_price"),
        CheckConstraint(
            "actual_price IS NULL OR actual_price >= 0",
            name="ck_po_item_actual_price",
        ),
        Index("idx_po_item_variant", "variant_id"),
    )

    po_id: Mapped[UUID] = mapped_column(ForeignKey("purchase_orders.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    variant_id: Mapped[UUID] = mapped_column(ForeignKey("variants.id"), nullable=False)

    ordered_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    received_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    expected_price: Mapped[Decimal] = mapped_column(nullable=False)
    actual_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    purchase_order: Mapped[PurchaseOrderModel] = relationship(back_populates="items")
    variant: Mapped[Variant] = relationship(lazy="joined", innerjoin=True)

    @property
    def effective_cost(self) -> Decimal:
        return self.actual_price if self.actual_price is not None else self.expected_price

    def to_dto(self):
        from stockline_modules.purchasing.models import PurchaseOrderItemDTO
        return PurchaseOrderItemDTO(
            id=self.id,
            line_number=self.line_number,
            variant_id=self.variant_id,
            sku=self.variant.sku,
            ordered_quantity=self.ordered_quantity,
            received_quantity=self.received_quantity,
            expected_price=self.expected_price,
            actual_price=self.actual_price,
        )


@event.listens_for(PurchaseOrderModel, "before_delete")
def _reject_po_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="PurchaseOrder",
        entity_id=str(target.id),
        reason="purchase orders are never deleted",
    )
