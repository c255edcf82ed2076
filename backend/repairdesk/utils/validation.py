from __future__ import annotations
"""Reusable validation helpers for ticket fields.

Centralizes enum checks and payload coercion so routes and services raise the
same ValidationError (rendered as 400) instead of scattering string comparisons.
"""
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from repairdesk.errors import ValidationError


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or raises ValidationError.
    """
    if new_status not in allowed:
        raise ValidationError(f"{field_name} invalid")
    return new_status


def require_fields(data: Mapping[str, Any], fields: Iterable[str]) -> None:
    missing = [f for f in fields if not isinstance(data.get(f), str) or not data.get(f).strip()]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required")


def parse_cost(value: Any, field_name: str) -> Optional[Decimal]:
    """Coerce a monetary amount to a 2-place Decimal; None clears the field."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} invalid")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} invalid")
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field_name} must be a non-negative amount")
    return amount.quantize(Decimal('0.01'))


def parse_date(value: Any, field_name: str) -> Optional[date]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} invalid")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be YYYY-MM-DD")


__all__ = ['validate_status', 'require_fields', 'parse_cost', 'parse_date']
