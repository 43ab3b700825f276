"""Kernel domain layer: pure values, clock, workflows and the notifier port."""

from stockline_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stockline_kernel.domain.dtos import (
    ReconciliationResult,
    StockChange,
    StockChanged,
    StockLedgerEntryRecord,
    StockReason,
)
from stockline_kernel.domain.notifier import ChangeNotifier, NullNotifier
from stockline_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "StockReason",
    "StockChange",
    "StockChanged",
    "StockLedgerEntryRecord",
    "ReconciliationResult",
    "ChangeNotifier",
    "NullNotifier",
    "Guard",
    "Transition",
    "Workflow",
]
