"""
Module: stockline_kernel.db.types
Responsibility: Annotated type aliases, column type decorators and rounding
    helpers shared by every model and service.  Centralizes precision so that
    prices, totals and quantities use identical definitions everywhere.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money is Decimal, never float.  round_money() is the only sanctioned
      rounding function for prices and totals.
    - Quantities are whole units (int).  Stock is counted, not measured.
    - Timestamps are stored and returned as timezone-aware UTC datetimes on
      every backend (UTCDateTime), so day bucketing is backend-independent.

Failure modes:
    - ValueError from UTCDateTime on a non-datetime bind value.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import DateTime, Integer, Numeric, String
from sqlalchemy.types import TypeDecorator

# Price / amount column: 18 digits, 4 decimal places
Money = Annotated[Decimal, Numeric(18, 4)]

# Whole-unit stock quantity
Quantity = Annotated[int, Integer]

# Stock keeping unit
Sku = Annotated[str, String(64)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Long text for notes and descriptions
LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetime on every backend.

    Contract:
        Aware values are normalized to UTC before they are stored; naive
        values are taken to already be UTC.  Values read back always carry
        ``tzinfo=timezone.utc`` (SQLite drops offsets on storage).

    Guarantees:
        - process_bind_param: datetime -> UTC datetime.
        - process_result_value: datetime -> aware UTC datetime.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, datetime):
            raise ValueError(f"UTCDateTime expects a datetime, got {value!r}")
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for prices and totals.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_money(value: Decimal | int | str) -> Decimal:
    """
    Coerce a caller-supplied price into Decimal.

    Floats are rejected: a float price has already lost precision.

    Raises:
        TypeError: If value is a float or bool.
        decimal.InvalidOperation: If value is a malformed string.
    """
    if isinstance(value, (float, bool)):
        raise TypeError(f"Money values must be Decimal, int or str, not {type(value).__name__}")
    return Decimal(str(value)) if not isinstance(value, Decimal) else value
