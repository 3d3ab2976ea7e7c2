"""
Monetary Engine -- line and document totals.

Pure functions with deterministic behavior. No I/O.

Turns line items plus a GST rate into per-line and document totals with
cent-level rounding (ROUND_HALF_UP).  Document aggregates are the sum of
the already-rounded per-line values, so the footer always equals the sum
of the lines shown above it; this can differ by a cent from rounding an
unrounded aggregate once.

This layer is total: non-finite, unparsable or negative quantities and
prices are clamped to zero, and a rate outside [0, 1] is clamped into
range.  Rejecting bad input is the job of the document normalizer.

Usage:
    from invoicing_engines.totals import compute_totals

    totals = compute_totals(
        [{"quantity": 2, "unitPrice": "150", "applyGst": True}],
        Decimal("0.1"),
    )
    assert totals.total == Decimal("330.00")
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

_TWO_PLACES = Decimal("0.01")
_ZERO = Decimal("0.00")
_ONE = Decimal("1")


@dataclass(frozen=True)
class LineTotals:
    subtotal: Decimal
    gst: Decimal
    total: Decimal


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    gst_total: Decimal
    total: Decimal


def round_money(value: Decimal) -> Decimal:
    """Round to two decimal places, half up."""
    return value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal | None:
    """Parse a number-like value; ``None`` when unparsable or non-finite."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    if not result.is_finite():
        return None
    return result


def sanitize_amount(value: Any) -> Decimal:
    """Clamp to a non-negative two-decimal amount. Never raises."""
    parsed = to_decimal(value)
    if parsed is None or parsed < 0:
        return _ZERO
    return round_money(parsed)


def clamp_rate(rate: Any) -> Decimal:
    """Clamp a tax rate into [0, 1]; unreadable rates become 0."""
    parsed = to_decimal(rate)
    if parsed is None or parsed < 0:
        return Decimal("0")
    return min(parsed, _ONE)


def compute_line(
    quantity: Any,
    unit_price: Any,
    apply_gst: bool,
    tax_rate: Any,
) -> LineTotals:
    """Compute one line: subtotal = round2(q * p); gst = round2(subtotal * rate)."""
    subtotal = round_money(sanitize_amount(quantity) * sanitize_amount(unit_price))
    gst = round_money(subtotal * clamp_rate(tax_rate)) if apply_gst else _ZERO
    return LineTotals(subtotal=subtotal, gst=gst, total=subtotal + gst)


def _line_field(line: Any, camel: str, snake: str, default: Any = None) -> Any:
    if isinstance(line, Mapping):
        if camel in line:
            return line[camel]
        return line.get(snake, default)
    return getattr(line, snake, default)


def compute_totals(line_items: Iterable[Any], tax_rate: Any) -> DocumentTotals:
    """Aggregate line totals into document totals.

    ``line_items`` may hold ``LineItem`` objects or mappings using either
    camelCase (record) or snake_case keys.
    """
    subtotal = _ZERO
    gst_total = _ZERO
    total = _ZERO
    for line in line_items:
        line_totals = compute_line(
            _line_field(line, "quantity", "quantity"),
            _line_field(line, "unitPrice", "unit_price"),
            bool(_line_field(line, "applyGst", "apply_gst", False)),
            tax_rate,
        )
        subtotal += line_totals.subtotal
        gst_total += line_totals.gst
        total += line_totals.total
    return DocumentTotals(subtotal=subtotal, gst_total=gst_total, total=total)
