"""
ORM-Level Stock Ledger Protection.

===============================================================================
WHY THIS EXISTS
===============================================================================

The reconciliation invariant -- a variant's stock equals the sum of its
ledger deltas -- only holds if two things are true:

  1. Ledger entries are never edited or deleted once written.
  2. Variant.stock never changes unless ledger entries explaining the change
     are written in the same flush.

StockLedgerService does both by construction.  The listeners in this module
catch everything else: a stray ``variant.stock = 42`` in a script, a
``session.delete(entry)`` in a cleanup job.  The table-level CHECK
constraint on ``variants.stock >= 0`` is the database-side backstop for
negative stock.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_flush]  --> _check_stock_changes_before_flush() --> ImmutabilityViolationError
         |
         v
    [before_update / before_delete on StockLedgerEntry] --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | Rule
------------------|----------------------------------------------------------
StockLedgerEntry  | Append-only: no UPDATE, no DELETE
Variant.stock     | New variants start at 0; every change on a persistent
                  | variant must equal the sum of ledger deltas added for it
                  | in the same flush

===============================================================================
USAGE
===============================================================================

    from stockline_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from collections import defaultdict
from uuid import UUID

from sqlalchemy import event
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from stockline_kernel.exceptions import ImmutabilityViolationError
from stockline_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_stock_changes_before_flush(session, flush_context, instances):
    """
    Reject stock changes that are not explained by ledger entries.

    Runs in SessionEvents.before_flush so the whole unit of work (variants
    and their new ledger entries) is visible at once.
    """
    from stockline_kernel.models.catalog import Variant
    from stockline_kernel.models.stock_ledger import StockLedgerEntry

    booked: dict[UUID, int] = defaultdict(int)
    for obj in session.new:
        if isinstance(obj, StockLedgerEntry):
            booked[obj.variant_id] += obj.delta

    for obj in session.new:
        if isinstance(obj, Variant) and (obj.stock or 0) != 0:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Variant",
                    "entity_id": str(obj.id),
                    "operation": "INSERT",
                    "reason": "variant_created_with_stock",
                },
            )
            raise ImmutabilityViolationError(
                entity_type="Variant",
                entity_id=str(obj.id),
                reason="new variants start at zero stock; book opening stock through the ledger",
            )

    for obj in list(session.dirty):
        if not isinstance(obj, Variant):
            continue
        history = get_history(obj, "stock")
        if not history.has_changes():
            continue
        old = history.deleted[0] if history.deleted else 0
        new = history.added[0] if history.added else old
        if (new or 0) - (old or 0) != booked.get(obj.id, 0):
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Variant",
                    "entity_id": str(obj.id),
                    "operation": "UPDATE",
                    "reason": "stock_changed_outside_ledger",
                    "old_stock": old,
                    "new_stock": new,
                    "booked_delta": booked.get(obj.id, 0),
                },
            )
            raise ImmutabilityViolationError(
                entity_type="Variant",
                entity_id=str(obj.id),
                reason="stock may only change through stock ledger entries",
            )

    for obj in session.deleted:
        if isinstance(obj, StockLedgerEntry):
            _raise_ledger_violation(obj, "DELETE")


def _raise_ledger_violation(target, operation: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockLedgerEntry",
            "entity_id": str(target.id),
            "operation": operation,
            "reason": "ledger_is_append_only",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockLedgerEntry",
        entity_id=str(target.id),
        reason="stock ledger entries are append-only",
    )


def _check_ledger_entry_update(mapper, connection, target):
    _raise_ledger_violation(target, "UPDATE")


def _check_ledger_entry_delete(mapper, connection, target):
    _raise_ledger_violation(target, "DELETE")


def register_immutability_listeners() -> None:
    """Install the ledger protection listeners (idempotent)."""
    from stockline_kernel.models.stock_ledger import StockLedgerEntry

    if not event.contains(Session, "before_flush", _check_stock_changes_before_flush):
        event.listen(Session, "before_flush", _check_stock_changes_before_flush)
    if not event.contains(StockLedgerEntry, "before_update", _check_ledger_entry_update):
        event.listen(StockLedgerEntry, "before_update", _check_ledger_entry_update)
    if not event.contains(StockLedgerEntry, "before_delete", _check_ledger_entry_delete):
        event.listen(StockLedgerEntry, "before_delete", _check_ledger_entry_delete)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove the ledger protection listeners. FOR TESTING ONLY."""
    from stockline_kernel.models.stock_ledger import StockLedgerEntry

    if event.contains(Session, "before_flush", _check_stock_changes_before_flush):
        event.remove(Session, "before_flush", _check_stock_changes_before_flush)
    if event.contains(StockLedgerEntry, "before_update", _check_ledger_entry_update):
        event.remove(StockLedgerEntry, "before_update", _check_ledger_entry_update)
    if event.contains(StockLedgerEntry, "before_delete", _check_ledger_entry_delete):
        event.remove(StockLedgerEntry, "before_delete", _check_ledger_entry_delete)
    logger.debug("immutability_listeners_unregistered")
