"""
Reporting Models (``invoicing_modules.reporting.models``).

Responsibility
--------------
Frozen read-only projections returned by ``ReportingService``: dashboard
metrics, monthly invoiced/paid buckets, the GST split and the flat invoice
rows consumed by CSV and PDF exporters.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal``.
* ``GstSummary.total_gst == paid_gst + outstanding_gst``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from invoicing_kernel.domain.records import money_str


@dataclass(frozen=True)
class DashboardMetrics:
    open_jobs: int
    invoices_due_amount: Decimal
    outstanding_invoice_count: int
    quote_approval_rate: Decimal
    average_payment_time: Decimal
    total_invoices: int
    total_quotes: int
    total_payments: int


@dataclass(frozen=True)
class MonthlySummary:
    """Amounts invoiced (by issue date) and paid (by payment date) in one month."""
    month_key: str
    label: str
    invoiced: Decimal
    paid: Decimal


@dataclass(frozen=True)
class GstSummary:
    paid_gst: Decimal
    outstanding_gst: Decimal
    total_gst: Decimal

    def __post_init__(self) -> None:
        if self.paid_gst + self.outstanding_gst != self.total_gst:
            raise ValueError("total GST must equal paid plus outstanding GST")


@dataclass(frozen=True)
class InvoiceExportRow:
    """One invoice as exporters see it."""
    number: str
    issue_date: str
    due_date: str
    client_name: str
    subtotal: Decimal
    gst_total: Decimal
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: str

    def to_record(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "issueDate": self.issue_date,
            "dueDate": self.due_date,
            "clientName": self.client_name,
            "subtotal": money_str(self.subtotal),
            "gstTotal": money_str(self.gst_total),
            "total": money_str(self.total),
            "amountPaid": money_str(self.amount_paid),
            "balanceDue": money_str(self.balance_due),
            "status": self.status,
        }
