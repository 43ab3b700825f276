"""
Reporting Service (``stockline_modules.reporting.service``).

Responsibility
--------------
Read-only aggregation behind the dashboard: inventory value, low-stock
signals that account for incoming purchase orders, top sellers and a daily
stock movement chart.  Time comes from the injected ``Clock``.

Invariants
----------
- Never writes.  Sums of prices are computed in Python over ``Decimal``
  values so the result does not depend on the backend's numeric handling.
- Days are UTC calendar days.

Usage::

    summary = ReportingService(session, clock).dashboard_summary()
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockline_kernel.db.types import round_money
from stockline_kernel.domain.clock import Clock, SystemClock
from stockline_kernel.domain.dtos import StockReason
from stockline_kernel.logging_config import get_logger
from stockline_kernel.models.catalog import Product, Variant
from stockline_kernel.models.stock_ledger import StockLedgerEntry
from stockline_modules.purchasing.models import OPEN_PO_STATUSES
from stockline_modules.purchasing.orm import PurchaseOrderItemModel, PurchaseOrderModel
from stockline_modules.reporting.models import (
    DashboardSummary,
    LowStockItem,
    StockMovementDay,
    TopSellingProduct,
)

logger = get_logger("modules.reporting.service")

# StockReason value -> StockMovementDay field
_MOVEMENT_FIELDS: dict[str, str] = {
    StockReason.PURCHASE.value: "purchase",
    StockReason.SALE.value: "sale",
    StockReason.RETURN.value: "returned",
    StockReason.ADJUSTMENT.value: "adjustment",
    StockReason.CANCELLATION.value: "cancellation",
}


class ReportingService:
    """Dashboard aggregates.  Pure read."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        top_selling_window_days: int = 30,
        top_selling_limit: int = 5,
        movement_window_days: int = 7,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._top_selling_window_days = top_selling_window_days
        self._top_selling_limit = top_selling_limit
        self._movement_window_days = movement_window_days

    def inventory_value(self) -> Decimal:
        """sum(stock x price) over all variants."""
        total = Decimal("0")
        for stock, price in self._session.execute(select(Variant.stock, Variant.price)):
            total += Decimal(stock) * price
        return round_money(total)

    def low_stock_items(self) -> list[LowStockItem]:
        """
        Variants where stock + open PO quantity < minimum_stock.

        Open PO quantity counts ordered - received on lines of pending,
        confirmed and partially received orders.  Sorted by shortfall
        descending, then sku.
        """
        pending = (
            select(
                PurchaseOrderItemModel.variant_id.label("variant_id"),
                func.sum(
                    PurchaseOrderItemModel.ordered_quantity
                    - PurchaseOrderItemModel.received_quantity
                ).label("pending_qty"),
            )
            .join(PurchaseOrderModel, PurchaseOrderModel.id == PurchaseOrderItemModel.po_id)
            .where(PurchaseOrderModel.status.in_(OPEN_PO_STATUSES))
            .group_by(PurchaseOrderItemModel.variant_id)
            .subquery()
        )
        pending_qty = func.coalesce(pending.c.pending_qty, 0)

        rows = self._session.execute(
            select(
                Variant.id,
                Variant.sku,
                Product.name,
                Variant.stock,
                pending_qty.label("pending_qty"),
                Variant.minimum_stock,
            )
            .join(Product, Product.id == Variant.product_id)
            .outerjoin(pending, pending.c.variant_id == Variant.id)
            .where(Variant.stock + pending_qty < Variant.minimum_stock)
        ).all()

        items = [
            LowStockItem(
                variant_id=row[0],
                sku=row[1],
                product_name=row[2],
                current_stock=row[3],
                pending_po_qty=int(row[4]),
                minimum_stock=row[5],
            )
            for row in rows
        ]
        items.sort(key=lambda i: (-i.shortfall, i.sku))
        return items

    def top_selling(self, now: datetime | None = None) -> list[TopSellingProduct]:
        """
        Best sellers by units over the trailing window.

        Ties are broken by variant id ascending.
        """
        now = now or self._clock.now()
        start = now - timedelta(days=self._top_selling_window_days)

        sold: dict[UUID, int] = defaultdict(int)
        revenue: dict[UUID, Decimal] = defaultdict(lambda: Decimal("0"))
        rows = self._session.execute(
            select(StockLedgerEntry.variant_id, StockLedgerEntry.delta, StockLedgerEntry.unit_price)
            .where(
                StockLedgerEntry.reason == StockReason.SALE.value,
                StockLedgerEntry.occurred_at >= start,
                StockLedgerEntry.occurred_at <= now,
            )
        )
        for variant_id, delta, unit_price in rows:
            sold[variant_id] += -delta
            revenue[variant_id] += Decimal(-delta) * (unit_price or Decimal("0"))

        ranked = sorted(sold, key=lambda vid: (-sold[vid], str(vid)))[: self._top_selling_limit]
        if not ranked:
            return []

        labels = {
            row[0]: (row[1], row[2])
            for row in self._session.execute(
                select(Variant.id, Variant.sku, Product.name)
                .join(Product, Product.id == Variant.product_id)
                .where(Variant.id.in_(ranked))
            )
        }
        return [
            TopSellingProduct(
                variant_id=vid,
                sku=labels[vid][0],
                product_name=labels[vid][1],
                quantity_sold=sold[vid],
                revenue=round_money(revenue[vid]),
            )
            for vid in ranked
        ]

    def stock_movement(self, now: datetime | None = None) -> list[StockMovementDay]:
        """
        Signed movement per reason for each UTC day in the trailing window.

        Oldest day first, today included; days without movement are zeros.
        """
        now = (now or self._clock.now()).astimezone(timezone.utc)
        today = now.date()
        days: list[date] = [
            today - timedelta(days=offset)
            for offset in range(self._movement_window_days - 1, -1, -1)
        ]
        start = datetime.combine(days[0], time.min, tzinfo=timezone.utc)
        end = datetime.combine(today + timedelta(days=1), time.min, tzinfo=timezone.utc)

        totals: dict[date, dict[str, int]] = {d: defaultdict(int) for d in days}
        rows = self._session.execute(
            select(StockLedgerEntry.occurred_at, StockLedgerEntry.reason, StockLedgerEntry.delta)
            .where(
                StockLedgerEntry.occurred_at >= start,
                StockLedgerEntry.occurred_at < end,
            )
        )
        for occurred_at, reason, delta in rows:
            day = occurred_at.astimezone(timezone.utc).date()
            if day in totals:
                totals[day][_MOVEMENT_FIELDS[reason]] += delta

        return [StockMovementDay(day=d, **totals[d]) for d in days]

    def dashboard_summary(self, now: datetime | None = None) -> DashboardSummary:
        now = now or self._clock.now()
        summary = DashboardSummary(
            inventory_value=self.inventory_value(),
            low_stock_items=tuple(self.low_stock_items()),
            top_selling_products=tuple(self.top_selling(now)),
            stock_movement_chart=tuple(self.stock_movement(now)),
            generated_at=now,
        )
        logger.debug(
            "dashboard_summary_built",
            extra={
                "low_stock_count": len(summary.low_stock_items),
                "top_selling_count": len(summary.top_selling_products),
            },
        )
        return summary
