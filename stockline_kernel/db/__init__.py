"""Database layer - engine, base classes, types, and ledger protection."""

from stockline_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from stockline_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
)
from stockline_kernel.db.types import Money, Quantity, Sku, UTCDateTime, round_money

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Quantity",
    "Sku",
    "UTCDateTime",
    "round_money",
]
