"""Domain models for the stockline kernel."""

from stockline_kernel.models.catalog import Product, Variant
from stockline_kernel.models.stock_ledger import StockLedgerEntry
from stockline_kernel.models.supplier import Supplier
from stockline_kernel.models.user import User, UserRole

__all__ = [
    "Product",
    "Variant",
    "StockLedgerEntry",
    "Supplier",
    "User",
    "UserRole",
]
