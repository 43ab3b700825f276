"""
Purchasing Domain Models (``stockline_modules.purchasing.models``).

Frozen value objects for the purchase order lifecycle.

Invariants
----------
- ``0 <= received_quantity <= ordered_quantity`` on every line.
- Effective cost is ``actual_price`` when recorded at receipt, otherwise
  ``expected_price``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import NamedTuple
from uuid import UUID


class PurchaseOrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PARTIALLY_RECEIVED = "partially_received"
    RECEIVED = "received"


# Statuses whose unreceived quantity counts as incoming stock
OPEN_PO_STATUSES: tuple[str, ...] = (
    PurchaseOrderStatus.PENDING.value,
    PurchaseOrderStatus.CONFIRMED.value,
    PurchaseOrderStatus.PARTIALLY_RECEIVED.value,
)


class PurchaseLineRequest(NamedTuple):
    """One requested PO line: ``(variant_id, quantity, expected_price)``."""
    variant_id: UUID
    quantity: int
    expected_price: Decimal


class ReceivedItem(NamedTuple):
    """Units received against one PO line, with an optional invoiced price."""
    item_id: UUID
    quantity: int
    actual_price: Decimal | None = None


@dataclass(frozen=True)
class PurchaseOrderItemDTO:
    id: UUID
    line_number: int
    variant_id: UUID
    sku: str
    ordered_quantity: int
    received_quantity: int
    expected_price: Decimal
    actual_price: Decimal | None = None

    def __post_init__(self):
        if not 0 <= self.received_quantity <= self.ordered_quantity:
            raise ValueError(
                f"Line {self.line_number}: received {self.received_quantity} "
                f"outside 0..{self.ordered_quantity}"
            )

    @property
    def remaining_quantity(self) -> int:
        return self.ordered_quantity - self.received_quantity

    @property
    def effective_cost(self) -> Decimal:
        return self.actual_price if self.actual_price is not None else self.expected_price


@dataclass(frozen=True)
class PurchaseOrderDTO:
    id: UUID
    po_number: str
    supplier_id: UUID
    status: PurchaseOrderStatus
    total_amount: Decimal
    items: tuple[PurchaseOrderItemDTO, ...]
    created_at: datetime
    notes: str | None = None
    version: int = 1

    @property
    def ordered_quantity(self) -> int:
        return sum(i.ordered_quantity for i in self.items)

    @property
    def received_quantity(self) -> int:
        return sum(i.received_quantity for i in self.items)

    def item_for_variant(self, variant_id: UUID) -> PurchaseOrderItemDTO:
        for item in self.items:
            if item.variant_id == variant_id:
                return item
        raise KeyError(variant_id)
