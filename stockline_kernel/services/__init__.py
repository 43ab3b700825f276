"""Services for the stockline kernel (write side)."""

from stockline_kernel.services.base import BaseService
from stockline_kernel.services.change_dispatch import bind_notifier, enqueue_stock_changes
from stockline_kernel.services.sequence_service import (
    SequenceCounter,
    SequenceService,
    format_document_number,
)
from stockline_kernel.services.stock_ledger import StockLedgerService

__all__ = [
    "BaseService",
    "SequenceCounter",
    "SequenceService",
    "StockLedgerService",
    "bind_notifier",
    "enqueue_stock_changes",
    "format_document_number",
]
