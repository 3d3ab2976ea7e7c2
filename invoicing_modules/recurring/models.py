"""
Recurring Billing Models (``invoicing_modules.recurring.models``).

A recurring schedule is an invoice template plus a frequency rule and the
date of its next run.  Running a schedule issues an ordinary invoice.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from invoicing_kernel.domain.dates import to_iso
from invoicing_kernel.domain.records import money_str
from invoicing_modules.documents.models import LineItem
from invoicing_modules.invoices.models import Invoice


@dataclass(frozen=True)
class RecurringSchedule:
    """An invoice template issued on a repeating frequency."""
    id: str
    name: str
    client_id: str
    client_name: str
    client_business_name: str
    frequency: str
    interval_days: int
    interval_months: int
    payment_terms_days: int
    reminder_lead_days: int
    next_run_date: datetime
    line_items: tuple[LineItem, ...]
    subtotal: Decimal
    gst_total: Decimal
    total: Decimal
    last_run_at: datetime | None = None
    last_reminder_at: datetime | None = None
    requires_materials: bool = False
    notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "clientId": self.client_id,
            "clientName": self.client_name,
            "clientBusinessName": self.client_business_name,
            "frequency": self.frequency,
            "intervalDays": self.interval_days,
            "intervalMonths": self.interval_months,
            "paymentTermsDays": self.payment_terms_days,
            "reminderLeadDays": self.reminder_lead_days,
            "requiresMaterials": self.requires_materials,
            "nextRunDate": to_iso(self.next_run_date),
            "lastRunAt": to_iso(self.last_run_at),
            "lastReminderAt": to_iso(self.last_reminder_at),
            "notes": self.notes,
            "lineItems": [item.to_record() for item in self.line_items],
            "subtotal": money_str(self.subtotal),
            "gstTotal": money_str(self.gst_total),
            "total": money_str(self.total),
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }


@dataclass(frozen=True)
class RecurringRunResult:
    """One schedule run: the issued invoice and the advanced schedule."""
    invoice: Invoice
    schedule: RecurringSchedule
