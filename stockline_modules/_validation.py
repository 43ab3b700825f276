"""
Input coercion shared by the module services.

Every helper raises ``ValidationError`` naming the offending field, so the
services can validate a whole request before touching the database.
"""

from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from stockline_kernel.db.types import to_money
from stockline_kernel.exceptions import ValidationError


def coerce_uuid(value: Any, field_name: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise ValidationError(f"{field_name} is not a valid id: {value!r}", field=field_name) from exc


def positive_int(value: Any, field_name: str = "quantity") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if value <= 0:
        raise ValidationError(f"{field_name} must be > 0", field=field_name)
    return value


def non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if value < 0:
        raise ValidationError(f"{field_name} must be >= 0", field=field_name)
    return value


def require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required", field=field_name)
    return value.strip()


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_price(value: Any, field_name: str = "price") -> Decimal:
    """Coerce a caller-supplied price, rejecting floats and negatives."""
    try:
        price = to_money(value)
    except (TypeError, InvalidOperation) as exc:
        raise ValidationError(f"{field_name} is not a valid amount: {value!r}", field=field_name) from exc
    if not price.is_finite():
        raise ValidationError(f"{field_name} is not a valid amount: {value!r}", field=field_name)
    if price < 0:
        raise ValidationError(f"{field_name} must be >= 0", field=field_name)
    return price
