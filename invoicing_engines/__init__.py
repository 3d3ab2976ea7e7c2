"""
Invoicing engines: pure calculation functions.  No I/O.

- totals: line and document totals with cent-level rounding
- recurrence: next-occurrence math for recurring billing schedules
"""

from invoicing_engines.recurrence import (
    FREQUENCY_RULES,
    FrequencyRule,
    FrequencyUnit,
    add_days,
    add_months,
    advance_until_after,
    describe_frequency,
    next_occurrence,
)
from invoicing_engines.totals import (
    DocumentTotals,
    LineTotals,
    compute_line,
    compute_totals,
    round_money,
    sanitize_amount,
)

__all__ = [
    "FREQUENCY_RULES",
    "FrequencyRule",
    "FrequencyUnit",
    "add_days",
    "add_months",
    "advance_until_after",
    "describe_frequency",
    "next_occurrence",
    "DocumentTotals",
    "LineTotals",
    "compute_line",
    "compute_totals",
    "round_money",
    "sanitize_amount",
]
