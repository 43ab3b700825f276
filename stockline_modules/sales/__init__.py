"""
Sales Module.

Sales order creation, full / partial fulfillment and cancellation.
"""

from stockline_modules.sales.models import (
    CustomerInfo,
    FulfillmentMode,
    LineStatus,
    OrderLineRequest,
    SalesOrderDTO,
    SalesOrderItemDTO,
    SalesOrderStatus,
)
from stockline_modules.sales.service import SalesOrderService
from stockline_modules.sales.workflows import SALES_ORDER_WORKFLOW

__all__ = [
    "SalesOrderService",
    "SALES_ORDER_WORKFLOW",
    "SalesOrderStatus",
    "LineStatus",
    "FulfillmentMode",
    "OrderLineRequest",
    "CustomerInfo",
    "SalesOrderDTO",
    "SalesOrderItemDTO",
]
