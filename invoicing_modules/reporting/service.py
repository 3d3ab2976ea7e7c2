"""
Reporting Service - read-only aggregates over invoices, quotes and payments.

Nothing here writes to the record store.  Every figure is recomputed from
the current collections on each call.
"""

from __future__ import annotations

import calendar
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from invoicing_kernel.logging_config import get_logger
from invoicing_modules.invoices.service import InvoiceService
from invoicing_modules.payments.service import PaymentService
from invoicing_modules.quotes.models import QuoteStatus
from invoicing_modules.quotes.service import QuoteService
from invoicing_modules.reporting.models import (
    DashboardMetrics,
    GstSummary,
    InvoiceExportRow,
    MonthlySummary,
)

logger = get_logger("modules.reporting.service")

_ZERO = Decimal("0.00")
_ONE_PLACE = Decimal("0.1")

# Accepted quotes that went on to become invoices still count as approved.
_APPROVED = frozenset({QuoteStatus.ACCEPTED, QuoteStatus.CONVERTED})
_CLOSED = frozenset({QuoteStatus.DECLINED, QuoteStatus.CONVERTED})


def month_key(instant: datetime | None) -> str:
    if instant is None:
        return ""
    return f"{instant.year:04d}-{instant.month:02d}"


def month_label(key: str) -> str:
    """``"2024-01"`` -> ``"Jan 2024"``."""
    year, _, month = key.partition("-")
    if not (year.isdigit() and month.isdigit()) or not 1 <= int(month) <= 12:
        return key
    return f"{calendar.month_abbr[int(month)]} {year}"


class ReportingService:
    """Dashboard, monthly, GST and export projections."""

    def __init__(
        self,
        invoices: InvoiceService,
        quotes: QuoteService,
        payments: PaymentService,
    ):
        self._invoices = invoices
        self._quotes = quotes
        self._payments = payments

    def get_dashboard_metrics(self) -> DashboardMetrics:
        invoices = self._invoices.list()
        quotes = self._quotes.list()
        unpaid = [invoice for invoice in invoices if not invoice.is_paid]
        open_quotes = [quote for quote in quotes if quote.status not in _CLOSED]

        metrics = DashboardMetrics(
            open_jobs=len(unpaid) + len(open_quotes),
            invoices_due_amount=sum((invoice.total for invoice in unpaid), _ZERO),
            outstanding_invoice_count=len(unpaid),
            quote_approval_rate=self._approval_rate(quotes),
            average_payment_time=self._payments.get_average_payment_days(),
            total_invoices=len(invoices),
            total_quotes=len(quotes),
            total_payments=len(self._payments.list()),
        )
        logger.debug(
            "dashboard_metrics_computed",
            extra={"open_jobs": metrics.open_jobs, "total_invoices": metrics.total_invoices},
        )
        return metrics

    def get_quote_approval_rate(self) -> Decimal:
        """Percentage of quotes accepted (or converted), one decimal place."""
        return self._approval_rate(self._quotes.list())

    @staticmethod
    def _approval_rate(quotes: list) -> Decimal:
        if not quotes:
            return Decimal("0.0")
        approved = sum(1 for quote in quotes if quote.status in _APPROVED)
        rate = Decimal(approved) * 100 / Decimal(len(quotes))
        return rate.quantize(_ONE_PLACE, rounding=ROUND_HALF_UP)

    def get_monthly_invoice_summary(self, month_count: int = 6) -> list[MonthlySummary]:
        """Last ``month_count`` months that saw any invoicing or payment activity."""
        invoiced: dict[str, Decimal] = {}
        paid: dict[str, Decimal] = {}
        for invoice in self._invoices.list():
            key = month_key(invoice.issue_date)
            if key:
                invoiced[key] = invoiced.get(key, _ZERO) + invoice.total
        for payment in self._payments.list():
            key = month_key(payment.payment_date or payment.recorded_at)
            if key:
                paid[key] = paid.get(key, _ZERO) + payment.amount

        keys = sorted(set(invoiced) | set(paid))
        if month_count <= 0:
            return []
        return [
            MonthlySummary(
                month_key=key,
                label=month_label(key),
                invoiced=invoiced.get(key, _ZERO),
                paid=paid.get(key, _ZERO),
            )
            for key in keys[-month_count:]
        ]

    def get_gst_summary(self) -> GstSummary:
        paid_gst = _ZERO
        outstanding_gst = _ZERO
        for invoice in self._invoices.list():
            if invoice.is_paid:
                paid_gst += invoice.gst_total
            else:
                outstanding_gst += invoice.gst_total
        return GstSummary(
            paid_gst=paid_gst,
            outstanding_gst=outstanding_gst,
            total_gst=paid_gst + outstanding_gst,
        )

    def invoice_export_rows(self) -> list[InvoiceExportRow]:
        """Flat rows for CSV/PDF exporters, in stored order."""
        return [
            InvoiceExportRow(
                number=invoice.number,
                issue_date=invoice.issue_date.date().isoformat(),
                due_date=invoice.due_date.date().isoformat(),
                client_name=invoice.client_name,
                subtotal=invoice.subtotal,
                gst_total=invoice.gst_total,
                total=invoice.total,
                amount_paid=invoice.amount_paid,
                balance_due=invoice.balance_due,
                status=invoice.status.value,
            )
            for invoice in self._invoices.list()
        ]
