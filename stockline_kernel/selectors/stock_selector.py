"""
Module: stockline_kernel.selectors.stock_selector
Responsibility: Read-only queries over the stock ledger: a variant's entry
    history, the ledger-derived stock level, and reconciliation of stored
    stock against the ledger.
Architecture position: Kernel > Selectors.

Invariants checked:
    - Reconciliation: for every variant, Variant.stock equals the sum of
      its ledger deltas.  ``find_discrepancies()`` returns the variants for
      which that does not hold (normally none).
"""

from uuid import UUID

from sqlalchemy import func, select

from stockline_kernel.domain.dtos import ReconciliationResult, StockLedgerEntryRecord
from stockline_kernel.exceptions import VariantNotFoundError
from stockline_kernel.models.catalog import Variant
from stockline_kernel.models.stock_ledger import StockLedgerEntry
from stockline_kernel.selectors.base import BaseSelector


class StockSelector(BaseSelector[StockLedgerEntry]):
    """Stock ledger queries."""

    def history(self, variant_id: UUID, limit: int | None = None) -> list[StockLedgerEntryRecord]:
        """Entries for a variant, oldest first."""
        stmt = (
            select(StockLedgerEntry)
            .where(StockLedgerEntry.variant_id == variant_id)
            .order_by(StockLedgerEntry.sequence)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [
            StockLedgerEntryRecord.from_model(e)
            for e in self.session.execute(stmt).scalars()
        ]

    def entries_for_reference(self, reference: str) -> list[StockLedgerEntryRecord]:
        """All entries booked against an order id, PO id or adjustment reference."""
        rows = self.session.execute(
            select(StockLedgerEntry)
            .where(StockLedgerEntry.reference == reference)
            .order_by(
                StockLedgerEntry.occurred_at,
                StockLedgerEntry.variant_id,
                StockLedgerEntry.sequence,
            )
        ).scalars()
        return [StockLedgerEntryRecord.from_model(e) for e in rows]

    def ledger_stock(self, variant_id: UUID) -> int:
        """Sum of deltas for a variant (0 if it has no entries)."""
        total = self.session.execute(
            select(func.coalesce(func.sum(StockLedgerEntry.delta), 0))
            .where(StockLedgerEntry.variant_id == variant_id)
        ).scalar_one()
        return int(total)

    def reconcile(self, variant_id: UUID) -> ReconciliationResult:
        variant = self.session.get(Variant, variant_id)
        if variant is None:
            raise VariantNotFoundError(str(variant_id))
        total, count = self.session.execute(
            select(
                func.coalesce(func.sum(StockLedgerEntry.delta), 0),
                func.count(StockLedgerEntry.id),
            ).where(StockLedgerEntry.variant_id == variant_id)
        ).one()
        return ReconciliationResult(
            variant_id=variant.id,
            sku=variant.sku,
            stored_stock=variant.stock,
            ledger_stock=int(total),
            entry_count=int(count),
        )

    def reconcile_all(self) -> list[ReconciliationResult]:
        """Reconciliation rows for every variant, ordered by sku."""
        totals = (
            select(
                StockLedgerEntry.variant_id.label("variant_id"),
                func.sum(StockLedgerEntry.delta).label("total"),
                func.count(StockLedgerEntry.id).label("entries"),
            )
            .group_by(StockLedgerEntry.variant_id)
            .subquery()
        )
        rows = self.session.execute(
            select(Variant.id, Variant.sku, Variant.stock, totals.c.total, totals.c.entries)
            .outerjoin(totals, totals.c.variant_id == Variant.id)
            .order_by(Variant.sku)
        ).all()
        return [
            ReconciliationResult(
                variant_id=row.id,
                sku=row.sku,
                stored_stock=row.stock,
                ledger_stock=int(row.total or 0),
                entry_count=int(row.entries or 0),
            )
            for row in rows
        ]

    def find_discrepancies(self) -> list[ReconciliationResult]:
        return [r for r in self.reconcile_all() if not r.is_balanced]
