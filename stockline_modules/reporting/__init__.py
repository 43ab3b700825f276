"""
Reporting Module.

Read-only dashboard aggregates: inventory value, low stock, top sellers and
stock movement.
"""

from stockline_modules.reporting.models import (
    DashboardSummary,
    LowStockItem,
    StockMovementDay,
    TopSellingProduct,
)
from stockline_modules.reporting.service import ReportingService

__all__ = [
    "ReportingService",
    "DashboardSummary",
    "LowStockItem",
    "TopSellingProduct",
    "StockMovementDay",
]
