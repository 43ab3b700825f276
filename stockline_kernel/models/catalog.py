"""
Module: stockline_kernel.models.catalog
Responsibility: ORM persistence for products and their sellable variants.
    Variant carries the stock level that the whole engine revolves around.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - sku is globally unique (uq_variant_sku).
    - stock, price and minimum_stock are never negative (CHECK constraints).
    - stock changes only through StockLedgerService; the before_flush guard
      in db/immutability.py rejects anything else.
    - version is the SQLAlchemy version_id_col: every UPDATE of a variant
      row checks and bumps it, so a lost update surfaces as StaleDataError.

Failure modes:
    - IntegrityError on duplicate sku or a negative stock value reaching the
      database.
    - StaleDataError when an UPDATE matches zero rows for the expected
      version.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockline_kernel.db.base import TrackedBase


class Product(TrackedBase):
    """
    A catalog product; the sellable unit is its Variant.

    Non-goals:
        - Products carry no stock or price of their own.
    """

    __tablename__ = "products"

    __table_args__ = (
        Index("idx_product_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    variants: Mapped[list["Variant"]] = relationship(
        back_populates="product",
        order_by="Variant.sku",
    )

    def __repr__(self) -> str:
        return f"<Product {self.name}>"


class Variant(TrackedBase):
    """
    A stock keeping unit: one size / color / etc. of a product.

    Contract:
        ``stock`` is the on-hand quantity and equals the sum of this
        variant's ledger deltas.  Only StockLedgerService writes it, under a
        row lock.

    Guarantees:
        - sku unique, price >= 0, minimum_stock >= 0, stock >= 0.
        - New variants start at stock 0.
    """

    __tablename__ = "variants"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_variant_sku"),
        CheckConstraint("stock >= 0", name="ck_variant_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_variant_price_non_negative"),
        CheckConstraint("minimum_stock >= 0", name="ck_variant_min_stock_non_negative"),
        Index("idx_variant_product", "product_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id"),
        nullable=False,
    )

    sku: Mapped[str] = mapped_column(String(64), nullable=False)

    # Free-form option values, e.g. {"size": "M", "color": "navy"}
    attributes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    price: Mapped[Decimal] = mapped_column(nullable=False)

    minimum_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    product: Mapped[Product] = relationship(back_populates="variants")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Variant {self.sku} stock={self.stock}>"
