"""
DTOs -- Pure domain data transfer objects for the stock ledger.

Responsibility:
    Defines the immutable values that cross the stock ledger boundary:
    StockChange (a requested delta), StockChanged (the post-commit
    notification payload), StockLedgerEntryRecord (a persisted entry) and
    ReconciliationResult (ledger vs. stored stock).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers.

Failure modes:
    - ValueError on StockChange with a zero or non-integer delta.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from stockline_kernel.models.stock_ledger import StockLedgerEntry


class StockReason(str, Enum):
    """Why a ledger entry moved stock."""

    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"
    CANCELLATION = "cancellation"


@dataclass(frozen=True)
class StockChange:
    """
    One requested stock movement.

    ``delta`` is signed: negative removes stock.  ``unit_price`` is the price
    snapshot recorded on the ledger entry (sale price or purchase cost).
    """

    variant_id: UUID
    delta: int
    reason: StockReason
    reference: str
    unit_price: Decimal | None = None

    def __post_init__(self) -> None:
        if isinstance(self.delta, bool) or not isinstance(self.delta, int):
            raise ValueError(f"Stock delta must be an int, got {self.delta!r}")
        if self.delta == 0:
            raise ValueError("Stock delta must be non-zero")


@dataclass(frozen=True)
class StockChanged:
    """Notification payload: a variant's stock level after a committed change."""

    variant_id: UUID
    new_stock: int


@dataclass(frozen=True)
class StockLedgerEntryRecord:
    """Read-only view of a persisted ledger entry."""

    id: UUID
    variant_id: UUID
    sequence: int
    delta: int
    reason: StockReason
    reference: str
    unit_price: Decimal | None
    resulting_stock: int
    actor_id: UUID
    occurred_at: datetime

    @classmethod
    def from_model(cls, model: StockLedgerEntry) -> StockLedgerEntryRecord:
        return cls(
            id=model.id,
            variant_id=model.variant_id,
            sequence=model.sequence,
            delta=model.delta,
            reason=StockReason(model.reason),
            reference=model.reference,
            unit_price=model.unit_price,
            resulting_stock=model.resulting_stock,
            actor_id=model.actor_id,
            occurred_at=model.occurred_at,
        )


@dataclass(frozen=True)
class ReconciliationResult:
    """Stored stock compared with the sum of ledger deltas for one variant."""

    variant_id: UUID
    sku: str
    stored_stock: int
    ledger_stock: int
    entry_count: int

    @property
    def is_balanced(self) -> bool:
        return self.stored_stock == self.ledger_stock

    @property
    def discrepancy(self) -> int:
        return self.stored_stock - self.ledger_stock
