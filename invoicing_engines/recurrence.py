"""
Recurrence engine -- next-occurrence math for recurring billing schedules.

Contract:
    Every function here is PURE -- no I/O, no clock reads.  The recurring
    billing service passes in the reference instant.

Month stepping clamps the day to the last day of the target month
(Jan 31 + 1 month -> Feb 29 in a leap year, Feb 28 otherwise).  Repeated
stepping continues from the previous result, so a clamped day stays
clamped (Jan 31 -> Feb 29 -> Mar 29).

Advancing is bounded: ``advance_until_after`` gives up after
``max_iterations`` steps and raises ``ScheduleAdvanceError`` rather than
looping on a degenerate interval.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from invoicing_kernel.exceptions import ScheduleAdvanceError

DEFAULT_INTERVAL_DAYS = 30


class FrequencyUnit(str, Enum):
    DAYS = "days"
    MONTHS = "months"


@dataclass(frozen=True)
class FrequencyRule:
    """A named billing frequency.  ``value`` is None for custom day counts."""

    key: str
    label: str
    unit: FrequencyUnit
    value: int | None = None

    @property
    def is_monthly(self) -> bool:
        return self.unit == FrequencyUnit.MONTHS


FREQUENCY_RULES: dict[str, FrequencyRule] = {
    "weekly": FrequencyRule("weekly", "Weekly", FrequencyUnit.DAYS, 7),
    "fortnightly": FrequencyRule("fortnightly", "Fortnightly", FrequencyUnit.DAYS, 14),
    "monthly": FrequencyRule("monthly", "Monthly", FrequencyUnit.MONTHS, 1),
    "quarterly": FrequencyRule("quarterly", "Quarterly", FrequencyUnit.MONTHS, 3),
    "yearly": FrequencyRule("yearly", "Yearly", FrequencyUnit.MONTHS, 12),
    "custom": FrequencyRule("custom", "Custom", FrequencyUnit.DAYS, None),
}


def add_days(instant: datetime, days: int) -> datetime:
    return instant + timedelta(days=days)


def add_months(instant: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = instant.month - 1 + months
    year = instant.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return instant.replace(year=year, month=month, day=min(instant.day, last_day))


def next_occurrence(
    reference: datetime,
    interval_days: int,
    interval_months: int,
) -> datetime:
    """Apply the frequency rule once.

    Month intervals win when positive; otherwise day intervals apply, with
    non-positive day counts falling back to 30 days.
    """
    if interval_months and interval_months > 0:
        return add_months(reference, interval_months)
    days = interval_days if interval_days and interval_days > 0 else DEFAULT_INTERVAL_DAYS
    return add_days(reference, days)


def advance_until_after(
    start: datetime,
    reference: datetime,
    interval_days: int,
    interval_months: int,
    max_iterations: int,
) -> datetime:
    """Step from ``start`` until the result is strictly after ``reference``.

    Missed occurrences are skipped, not returned.

    Raises:
        ScheduleAdvanceError: If ``max_iterations`` steps never pass ``reference``.
    """
    candidate = next_occurrence(start, interval_days, interval_months)
    for _ in range(max_iterations):
        if candidate > reference:
            return candidate
        candidate = next_occurrence(candidate, interval_days, interval_months)
    raise ScheduleAdvanceError(reference.isoformat(), max_iterations)


def describe_frequency(
    frequency: str,
    interval_days: int,
    interval_months: int,
    rules: dict[str, FrequencyRule] | None = None,
) -> str:
    """Human-readable frequency ("Monthly", "Every 3 months", "Every 10 days")."""
    rule = (rules or FREQUENCY_RULES).get(frequency)
    if rule is None or rule.value is None:
        days = interval_days if interval_days and interval_days > 0 else DEFAULT_INTERVAL_DAYS
        return f"Every {days} days"
    if rule.is_monthly:
        if interval_months == 12:
            return "Yearly"
        if interval_months and interval_months > 1:
            return f"Every {interval_months} months"
        return rule.label
    if interval_days and interval_days != rule.value:
        return f"Every {interval_days} days"
    if rule.value == 1:
        return "Daily"
    return rule.label
