"""
Module: stockline_kernel.models.supplier
Responsibility: ORM persistence for the suppliers purchase orders are
    placed with.
Architecture position: Kernel > Models.  May import from db/ only.

Failure modes:
    - Purchase order creation is rejected upstream when is_active is False.
"""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from stockline_kernel.db.base import TrackedBase


class Supplier(TrackedBase):
    """A vendor that stock is purchased from."""

    __tablename__ = "suppliers"

    __table_args__ = (
        Index("idx_supplier_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    address: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Supplier {self.name}>"
