"""
Record field helpers.

Records cross the store boundary as JSON with camelCase keys; money as
two-decimal strings and instants as ISO-8601 strings ("" when unset).
These helpers read and write those scalar fields.

Pure functions. No I/O.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from invoicing_kernel.exceptions import ValidationError

_TWO_PLACES = Decimal("0.01")

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


def clean_str(value: Any) -> str:
    """Strip strings; anything else becomes ""."""
    return value.strip() if isinstance(value, str) else ""


def money_str(value: Decimal) -> str:
    return str(value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def money_from_record(value: Any) -> Decimal:
    """Read a stored money field; unreadable values become 0.00."""
    if value is None or isinstance(value, bool):
        return Decimal("0.00")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        return Decimal("0.00")
    if not result.is_finite():
        return Decimal("0.00")
    return result.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def require_mapping(data: Any, entity: str) -> Mapping[str, Any]:
    """Reject payloads that are not mappings before any other validation."""
    if not isinstance(data, Mapping):
        raise ValidationError(f"{entity} payload must be a mapping")
    return data


_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})


def parse_flag(value: Any) -> bool:
    """Read a boolean field; strings count as true only for true/1/yes/on."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)
