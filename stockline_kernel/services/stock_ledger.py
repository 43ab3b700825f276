"""
StockLedgerService -- the sole authority for changing Variant.stock.

Responsibility:
    Applies signed stock deltas to variants and appends one immutable
    StockLedgerEntry per delta.  Every other component (fulfillment,
    receiving, manual adjustment, opening balances) goes through here.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits.

Invariants enforced:
    - Reconciliation: stock == sum(delta) over a variant's entries.  The
      stock update and the entry are written in the same flush, and the
      before_flush guard in db/immutability.py rejects anything else.
    - Non-negative stock: every decrement is checked against the locked,
      freshly-read stock level.
    - All-or-nothing: ``apply_deltas`` checks every change before it
      applies any of them.
    - Per-variant serializability: variant rows are locked with
      ``SELECT ... FOR UPDATE`` in ascending id order, so two requests over
      overlapping variants cannot deadlock and neither sees the other's
      intermediate state.  The variant ``version`` column catches any
      update that slipped past the lock (StaleDataError).

Failure modes:
    - ValidationError: empty change list.
    - VariantNotFoundError: a change references an unknown variant.
    - InsufficientStockError: a decrement would take stock below zero.
      Nothing has been applied.
    - OptimisticLockError: version conflict on flush.

Data flow:
    changes -> lock variants -> check sufficiency -> apply + append entries
    -> flush -> enqueue StockChanged (published after commit)
"""

from collections import defaultdict
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stockline_kernel.domain.clock import Clock
from stockline_kernel.domain.dtos import StockChange, StockChanged, StockReason
from stockline_kernel.exceptions import (
    InsufficientStockError,
    OptimisticLockError,
    ValidationError,
    VariantNotFoundError,
)
from stockline_kernel.logging_config import get_logger
from stockline_kernel.models.catalog import Variant
from stockline_kernel.models.stock_ledger import StockLedgerEntry
from stockline_kernel.services.base import BaseService
from stockline_kernel.services.change_dispatch import enqueue_stock_changes

logger = get_logger("services.stock_ledger")


class StockLedgerService(BaseService[StockLedgerEntry]):
    """
    Applies stock deltas under row locks and records them in the ledger.

    Contract:
        ``apply_deltas`` either applies every change or raises before
        applying any.  The caller's transaction decides whether the applied
        changes become durable.

    Non-goals:
        - Does NOT decide whether a movement is allowed for a given
          document state; the lifecycle services do that before calling in.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def apply_delta(
        self,
        variant_id: UUID,
        delta: int,
        reason: StockReason,
        reference: str,
        actor_id: UUID,
        unit_price: Decimal | None = None,
    ) -> int:
        """
        Apply a single stock change.

        Returns:
            The variant's new stock level.
        """
        change = _build_change(variant_id, delta, reason, reference, unit_price)
        return self.apply_deltas([change], actor_id)[variant_id]

    def apply_deltas(
        self,
        changes: Sequence[StockChange],
        actor_id: UUID,
    ) -> dict[UUID, int]:
        """
        Apply several stock changes atomically.

        Several changes may target the same variant; they are applied in the
        given order and each gets its own ledger entry.

        Preconditions:
            - ``changes`` is non-empty.

        Postconditions:
            - On success every variant's stock reflects all its changes and
              one entry per change has been flushed.
            - On InsufficientStockError no variant and no ledger row has
              been touched.

        Returns:
            Mapping of variant id to new stock level.
        """
        if not changes:
            raise ValidationError("At least one stock change is required", field="changes")

        variant_ids = sorted({c.variant_id for c in changes}, key=str)

        # Locks are taken in ascending id order; populate_existing makes sure
        # the stock values we check are the ones the lock protects.
        variants = self.session.execute(
            select(Variant)
            .where(Variant.id.in_(variant_ids))
            .order_by(Variant.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        by_id = {v.id: v for v in variants}

        for variant_id in variant_ids:
            if variant_id not in by_id:
                raise VariantNotFoundError(str(variant_id))

        shortfalls = self._find_shortfalls(changes, by_id)
        if shortfalls:
            logger.warning(
                "insufficient_stock",
                extra={
                    "shortfalls": [
                        {**s, "variant_id": str(s["variant_id"])} for s in shortfalls
                    ],
                },
            )
            raise InsufficientStockError(shortfalls)

        next_sequence = self._next_sequences(variant_ids)
        now = self.clock.now()
        entries: list[StockLedgerEntry] = []
        with self.session.no_autoflush:
            for change in changes:
                variant = by_id[change.variant_id]
                variant.stock = variant.stock + change.delta
                entry = StockLedgerEntry(
                    variant_id=variant.id,
                    sequence=next_sequence[variant.id],
                    delta=change.delta,
                    reason=StockReason(change.reason).value,
                    reference=change.reference,
                    unit_price=change.unit_price,
                    resulting_stock=variant.stock,
                    actor_id=actor_id,
                    occurred_at=now,
                )
                next_sequence[variant.id] += 1
                self.session.add(entry)
                entries.append(entry)

        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "stock_version_conflict",
                extra={"variant_ids": [str(v) for v in variant_ids]},
            )
            raise OptimisticLockError("Variant", str(exc)) from exc

        for entry in entries:
            logger.info(
                "stock_delta_applied",
                extra={
                    "variant_id": str(entry.variant_id),
                    "delta": entry.delta,
                    "reason": entry.reason,
                    "reference": entry.reference,
                    "resulting_stock": entry.resulting_stock,
                },
            )

        result = {vid: by_id[vid].stock for vid in variant_ids}
        enqueue_stock_changes(
            self.session,
            [StockChanged(variant_id=vid, new_stock=stock) for vid, stock in result.items()],
        )

        for vid in variant_ids:
            variant = by_id[vid]
            if variant.stock < variant.minimum_stock:
                logger.info(
                    "variant_below_minimum_stock",
                    extra={
                        "variant_id": str(vid),
                        "sku": variant.sku,
                        "stock": variant.stock,
                        "minimum_stock": variant.minimum_stock,
                    },
                )

        return result

    def _next_sequences(self, variant_ids: list[UUID]) -> dict[UUID, int]:
        rows = self.session.execute(
            select(StockLedgerEntry.variant_id, func.max(StockLedgerEntry.sequence))
            .where(StockLedgerEntry.variant_id.in_(variant_ids))
            .group_by(StockLedgerEntry.variant_id)
        ).all()
        last = {vid: seq for vid, seq in rows}
        return {vid: (last.get(vid) or 0) + 1 for vid in variant_ids}

    @staticmethod
    def _find_shortfalls(
        changes: Sequence[StockChange],
        by_id: dict[UUID, Variant],
    ) -> list[dict]:
        running: dict[UUID, int] = {vid: v.stock for vid, v in by_id.items()}
        lowest: dict[UUID, int] = dict(running)
        requested: dict[UUID, int] = defaultdict(int)

        for change in changes:
            running[change.variant_id] += change.delta
            lowest[change.variant_id] = min(lowest[change.variant_id], running[change.variant_id])
            if change.delta < 0:
                requested[change.variant_id] += -change.delta

        shortfalls = []
        for vid in sorted(by_id, key=str):
            if lowest[vid] < 0:
                shortfalls.append(
                    {
                        "variant_id": vid,
                        "sku": by_id[vid].sku,
                        "available": by_id[vid].stock,
                        "requested": requested[vid],
                        "missing": -lowest[vid],
                    }
                )
        return shortfalls


def _build_change(
    variant_id: UUID,
    delta: int,
    reason: StockReason,
    reference: str,
    unit_price: Decimal | None,
) -> StockChange:
    try:
        return StockChange(
            variant_id=variant_id,
            delta=delta,
            reason=StockReason(reason),
            reference=reference,
            unit_price=unit_price,
        )
    except ValueError as exc:
        raise ValidationError(str(exc), field="delta") from exc
