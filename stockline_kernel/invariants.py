"""
Kernel Invariants Contract.

These invariants are structural law.  They are hardcoded in the stock
ledger, the ORM listeners and the lifecycle services.  No configuration
value may override them.

This module exists solely to declare these invariants explicitly.  The
enforcement is distributed across StockLedgerService, db/immutability.py,
SalesOrderService and PurchaseOrderService.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    LEDGER_RECONCILIATION = "ledger_reconciliation"
    """For every variant, stock equals the sum of its ledger deltas.
    Enforced by StockLedgerService and the before_flush stock guard."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """Stock never goes below zero.  Enforced by StockLedgerService
    sufficiency checks under row lock."""

    LEDGER_APPEND_ONLY = "ledger_append_only"
    """Ledger entries are never updated or deleted.  Enforced by
    db/immutability.py."""

    LINE_BOUNDS = "line_bounds"
    """0 <= fulfilled/received <= ordered on every order line.  Enforced by
    the lifecycle services and table CHECK constraints."""

    ALL_OR_NOTHING = "all_or_nothing"
    """A multi-line fulfillment or receipt applies every line or none.
    Enforced by StockLedgerService.apply_deltas and session_scope."""

    NOTIFY_AFTER_COMMIT = "notify_after_commit"
    """Stock change notifications are published only after commit.
    Enforced by services/change_dispatch.py."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "stockline_services",
    "stockline_config",
    "stockline_modules",
)
