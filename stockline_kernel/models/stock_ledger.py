"""
Module: stockline_kernel.models.stock_ledger
Responsibility: ORM persistence for the append-only stock ledger.  One row
    per stock movement; the sum of a variant's deltas is its stock.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only: UPDATE and DELETE are rejected by db/immutability.py.
    - delta is never zero; resulting_stock is never negative (CHECK).
    - sequence numbers a variant's entries 1, 2, 3, ... (unique per variant).
    - reason is one of the StockReason values (purchase, sale, return,
      adjustment, cancellation).

Audit relevance:
    ``reference`` ties every movement to the sales order, purchase order or
    manual adjustment that caused it, and ``actor_id`` to the user.  The
    ``unit_price`` snapshot drives revenue reporting.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stockline_kernel.db.base import Base, UUIDString
from stockline_kernel.db.types import UTCDateTime


class StockLedgerEntry(Base):
    """
    One immutable stock movement.

    Guarantees:
        - resulting_stock is the variant's stock immediately after this
          entry was applied.
    """

    __tablename__ = "stock_ledger_entries"

    __table_args__ = (
        CheckConstraint("delta <> 0", name="ck_ledger_delta_non_zero"),
        CheckConstraint("resulting_stock >= 0", name="ck_ledger_resulting_non_negative"),
        Index("idx_ledger_variant_time", "variant_id", "occurred_at"),
        Index("idx_ledger_reason_time", "reason", "occurred_at"),
        Index("idx_ledger_reference", "reference"),
        UniqueConstraint("variant_id", "sequence", name="uq_ledger_variant_sequence"),
    )

    variant_id: Mapped[UUID] = mapped_column(
        ForeignKey("variants.id"),
        nullable=False,
    )

    # Position in the variant's history, starting at 1
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    delta: Mapped[int] = mapped_column(Integer, nullable=False)

    reason: Mapped[str] = mapped_column(String(20), nullable=False)

    # Order id, PO id or free text
    reference: Mapped[str] = mapped_column(String(100), nullable=False)

    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    resulting_stock: Mapped[int] = mapped_column(Integer, nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<StockLedgerEntry {self.reason} {self.delta:+d} -> {self.resulting_stock}>"
