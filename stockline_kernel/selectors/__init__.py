"""Read-only selectors for the stockline kernel."""

from stockline_kernel.selectors.base import BaseSelector
from stockline_kernel.selectors.stock_selector import StockSelector

__all__ = [
    "BaseSelector",
    "StockSelector",
]
