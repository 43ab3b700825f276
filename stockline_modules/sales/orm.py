"""
Module: stockline_modules.sales.orm
Responsibility: SQLAlchemy ORM persistence for sales orders and their lines.

Architecture position: Modules > Sales > ORM.  Inherits from TrackedBase
    (stockline_kernel.db.base) and references kernel variants by foreign key.

Invariants enforced:
    - 0 <= fulfilled_quantity <= ordered_quantity, ordered_quantity > 0
      (CHECK constraints).
    - order_number is unique.
    - total_amount is a creation-time snapshot: an UPDATE that changes it is
      rejected, as is any DELETE of an order (ImmutabilityViolationError).
    - version is the SQLAlchemy version_id_col.
"""

from datetime import datetime
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
from sqlalchemy.orm.attributes import get_history

from stockline_kernel.db.base import TrackedBase
from stockline_kernel.db.types import UTCDateTime
from stockline_kernel.exceptions import ImmutabilityViolationError
from stockline_kernel.models.catalog import Variant


class SalesOrderModel(TrackedBase):
    """
    ORM model for a customer sales order.

    Maps to: stockline_modules.sales.models.SalesOrderDTO.
    """

    __tablename__ = "sales_orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_sales_order_number"),
        CheckConstraint("total_amount >= 0", name="ck_sales_order_total_non_negative"),
        Index("idx_sales_order_status", "status"),
    )

    order_number: Mapped[str] = mapped_column(String(20), nullable=False)

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # SalesOrderStatus stored as string
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list["SalesOrderItemModel"]] = relationship(
        back_populates="order",
        order_by="SalesOrderItemModel.line_number",
        cascade="save-update, merge",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        """Convert ORM model to frozen SalesOrderDTO."""
        from stockline_modules.sales.models import (
            CustomerInfo,
            SalesOrderDTO,
            SalesOrderStatus,
        )
        return SalesOrderDTO(
            id=self.id,
            order_number=self.order_number,
            customer=CustomerInfo(
                name=self.customer_name,
                email=self.customer_email,
                phone=self.customer_phone,
            ),
            status=SalesOrderStatus(self.status),
            total_amount=self.total_amount,
            items=tuple(item.to_dto() for item in self.items),
            created_at=self.created_at,
            cancelled_at=self.cancelled_at,
            version=self.version,
        )

    def __repr__(self) -> str:
        return f"<SalesOrderModel {self.order_number} {self.status}>"


class SalesOrderItemModel(TrackedBase):
    """ORM model for one sales order line."""

    __tablename__ = "sales_order_items"

    __table_args__ = (
        UniqueConstraint("order_id", "line_number", name="uq_sales_order_item_line"),
        CheckConstraint("ordered_quantity > 0", name="ck_so_item_ordered_positive"),
        CheckConstraint(
            "fulfilled_quantity >= 0 AND fulfilled_quantity <= ordered_quantity",
            name="ck_so_item_fulfilled_bounds",
        ),
        Index("idx_so_item_variant", "variant_id"),
    )

    order_id: Mapped[UUID] = mapped_column(ForeignKey("sales_orders.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    variant_id: Mapped[UUID] = mapped_column(ForeignKey("variants.id"), nullable=False)

    ordered_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    fulfilled_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Variant price at order creation
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    order: Mapped[SalesOrderModel] = relationship(back_populates="items")
    variant: Mapped[Variant] = relationship(lazy="joined", innerjoin=True)

    def to_dto(self):
        from stockline_modules.sales.models import SalesOrderItemDTO
        return SalesOrderItemDTO(
            id=self.id,
            line_number=self.line_number,
            variant_id=self.variant_id,
            sku=self.variant.sku,
            ordered_quantity=self.ordered_quantity,
            fulfilled_quantity=self.fulfilled_quantity,
            unit_price=self.unit_price,
        )


@event.listens_for(SalesOrderModel, "before_update")
def _reject_total_change(mapper, connection, target):
    if get_history(target, "total_amount").has_changes():
        raise ImmutabilityViolationError(
            entity_type="SalesOrder",
            entity_id=str(target.id),
            reason="total_amount is fixed at creation",
        )


@event.listens_for(SalesOrderModel, "before_delete")
def _reject_order_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="SalesOrder",
        entity_id=str(target.id),
        reason="sales orders are never deleted",
    )
