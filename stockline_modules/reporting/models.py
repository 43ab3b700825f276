"""
Reporting Models (``stockline_modules.reporting.models``).

Frozen rows of the dashboard summary.  Every figure is derived at query
time from variants, purchase order lines and the stock ledger; nothing here
is stored.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class LowStockItem:
    """A variant whose stock plus incoming PO quantity is under its minimum."""
    variant_id: UUID
    sku: str
    product_name: str
    current_stock: int
    pending_po_qty: int
    minimum_stock: int

    @property
    def shortfall(self) -> int:
        return self.minimum_stock - (self.current_stock + self.pending_po_qty)


@dataclass(frozen=True)
class TopSellingProduct:
    variant_id: UUID
    sku: str
    product_name: str
    quantity_sold: int
    revenue: Decimal


@dataclass(frozen=True)
class StockMovementDay:
    """Signed stock movement per reason for one UTC day."""
    day: date
    purchase: int = 0
    sale: int = 0
    returned: int = 0
    adjustment: int = 0
    cancellation: int = 0

    @property
    def net(self) -> int:
        return self.purchase + self.sale + self.returned + self.adjustment + self.cancellation


@dataclass(frozen=True)
class DashboardSummary:
    inventory_value: Decimal
    low_stock_items: tuple[LowStockItem, ...]
    top_selling_products: tuple[TopSellingProduct, ...]
    stock_movement_chart: tuple[StockMovementDay, ...]
    generated_at: datetime
