"""
Purchasing Module.

Purchase order creation, confirmation and full / partial receiving.
"""

from stockline_modules.purchasing.models import (
    OPEN_PO_STATUSES,
    PurchaseLineRequest,
    PurchaseOrderDTO,
    PurchaseOrderItemDTO,
    PurchaseOrderStatus,
    ReceivedItem,
)
from stockline_modules.purchasing.service import PurchaseOrderService
from stockline_modules.purchasing.workflows import PURCHASE_ORDER_WORKFLOW

__all__ = [
    "PurchaseOrderService",
    "PURCHASE_ORDER_WORKFLOW",
    "PurchaseOrderStatus",
    "OPEN_PO_STATUSES",
    "PurchaseLineRequest",
    "ReceivedItem",
    "PurchaseOrderDTO",
    "PurchaseOrderItemDTO",
]
