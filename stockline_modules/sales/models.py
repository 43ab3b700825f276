"""
Sales Domain Models (``stockline_modules.sales.models``).

Responsibility
--------------
Frozen value objects for the sales order lifecycle: order and line status
enums, the fulfillment mode, request types for order creation, and the
read-side DTOs returned to callers.

Invariants
----------
- ``0 <= fulfilled_quantity <= ordered_quantity`` on every line (checked in
  ``SalesOrderItemDTO.__post_init__``).
- A line's status is derived from its quantities, never stored.
- All monetary fields use ``Decimal`` -- never ``float``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import NamedTuple
from uuid import UUID


class SalesOrderStatus(str, Enum):
    PENDING = "pending"
    PARTIALLY_FULFILLED = "partially_fulfilled"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class LineStatus(str, Enum):
    """Derived per-line fulfillment state."""
    PENDING = "pending"
    PARTIALLY_FULFILLED = "partially_fulfilled"
    FULFILLED = "fulfilled"


class FulfillmentMode(str, Enum):
    FULL = "full"          # every remaining unit on every line
    PARTIAL = "partial"    # caller supplies per-line increments


class OrderLineRequest(NamedTuple):
    """One requested order line: ``(variant_id, quantity)``."""
    variant_id: UUID
    quantity: int


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class SalesOrderItemDTO:
    id: UUID
    line_number: int
    variant_id: UUID
    sku: str
    ordered_quantity: int
    fulfilled_quantity: int
    unit_price: Decimal

    def __post_init__(self):
        if not 0 <= self.fulfilled_quantity <= self.ordered_quantity:
            raise ValueError(
                f"Line {self.line_number}: fulfilled {self.fulfilled_quantity} "
                f"outside 0..{self.ordered_quantity}"
            )

    @property
    def remaining_quantity(self) -> int:
        return self.ordered_quantity - self.fulfilled_quantity

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.ordered_quantity

    @property
    def status(self) -> LineStatus:
        if self.fulfilled_quantity == 0:
            return LineStatus.PENDING
        if self.fulfilled_quantity < self.ordered_quantity:
            return LineStatus.PARTIALLY_FULFILLED
        return LineStatus.FULFILLED


@dataclass(frozen=True)
class SalesOrderDTO:
    id: UUID
    order_number: str
    customer: CustomerInfo
    status: SalesOrderStatus
    total_amount: Decimal
    items: tuple[SalesOrderItemDTO, ...]
    created_at: datetime
    cancelled_at: datetime | None = None
    version: int = 1

    @property
    def ordered_quantity(self) -> int:
        return sum(i.ordered_quantity for i in self.items)

    @property
    def fulfilled_quantity(self) -> int:
        return sum(i.fulfilled_quantity for i in self.items)

    def item_for_variant(self, variant_id: UUID) -> SalesOrderItemDTO:
        """First line for ``variant_id``; KeyError if the order has none."""
        for item in self.items:
            if item.variant_id == variant_id:
                return item
        raise KeyError(variant_id)
