"""
Post-commit stock change dispatch.

Responsibility:
    Holds the StockChanged events a transaction produced and hands them to
    the session's ChangeNotifier once the outermost transaction commits.
    A rollback discards them.  Subscribers therefore never observe a stock
    level that was not committed.

Mechanics:
    StockLedgerService calls ``enqueue_stock_changes(session, events)``.
    Events are keyed by variant, so a transaction that touches a variant
    twice publishes its final level once.  The notifier is bound per
    session with ``bind_notifier``; an unbound session uses NullNotifier.

Failure modes:
    - Notifier exceptions are logged and swallowed: the transaction has
      already committed and delivery is best-effort.
"""

from sqlalchemy import event
from sqlalchemy.orm import Session

from stockline_kernel.domain.dtos import StockChanged
from stockline_kernel.domain.notifier import ChangeNotifier, NullNotifier
from stockline_kernel.logging_config import get_logger

logger = get_logger("services.change_dispatch")

PENDING_CHANGES_KEY = "stockline.pending_stock_changes"
NOTIFIER_KEY = "stockline.change_notifier"

_NULL_NOTIFIER = NullNotifier()


def bind_notifier(session: Session, notifier: ChangeNotifier) -> None:
    session.info[NOTIFIER_KEY] = notifier


def enqueue_stock_changes(session: Session, events: list[StockChanged]) -> None:
    """Queue events for publication when the session's transaction commits."""
    pending: dict = session.info.setdefault(PENDING_CHANGES_KEY, {})
    for evt in events:
        pending.pop(evt.variant_id, None)
        pending[evt.variant_id] = evt


def pending_stock_changes(session: Session) -> list[StockChanged]:
    return list(session.info.get(PENDING_CHANGES_KEY, {}).values())


@event.listens_for(Session, "after_transaction_create")
def _reset_on_new_root_transaction(session, transaction):
    # Leftovers from a transaction that was closed without commit.
    if transaction.parent is None:
        session.info.pop(PENDING_CHANGES_KEY, None)


@event.listens_for(Session, "after_commit")
def _publish_after_commit(session):
    if session.in_nested_transaction():
        return
    pending = session.info.pop(PENDING_CHANGES_KEY, None)
    if not pending:
        return
    notifier: ChangeNotifier = session.info.get(NOTIFIER_KEY, _NULL_NOTIFIER)
    for evt in pending.values():
        try:
            notifier.publish(evt)
        except Exception:
            logger.error(
                "stock_change_publish_failed",
                extra={"variant_id": str(evt.variant_id), "new_stock": evt.new_stock},
                exc_info=True,
            )
    logger.debug("stock_changes_published", extra={"count": len(pending)})


@event.listens_for(Session, "after_rollback")
def _discard_after_rollback(session):
    if session.in_nested_transaction():
        return
    dropped = session.info.pop(PENDING_CHANGES_KEY, None)
    if dropped:
        logger.debug("stock_changes_discarded", extra={"count": len(dropped)})
