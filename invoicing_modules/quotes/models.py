"""
Quote Domain Models (``invoicing_modules.quotes.models``).

Frozen value objects for a quote and the result of converting one into an
invoice.  Quotes share line items and client snapshots with invoices but
carry no payment projection.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from invoicing_kernel.domain.dates import instant_or_none, to_iso
from invoicing_kernel.domain.records import clean_str, money_from_record, money_str
from invoicing_modules.documents.models import LineItem
from invoicing_modules.invoices.models import Invoice


class QuoteStatus(str, Enum):
    """Quote states.  Must align with ``workflows.QUOTE_WORKFLOW.states``."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CONVERTED = "converted"

    @classmethod
    def parse(cls, value: Any) -> QuoteStatus:
        """Stored or requested status; anything unrecognized reads as pending."""
        try:
            return cls(clean_str(value).lower() or cls.PENDING.value)
        except ValueError:
            return cls.PENDING


@dataclass(frozen=True)
class Quote:
    """A priced offer to a client."""
    id: str
    number: str
    client_id: str
    client_name: str
    client_business_name: str
    issue_date: datetime
    valid_until: datetime
    status: QuoteStatus
    line_items: tuple[LineItem, ...]
    subtotal: Decimal
    gst_total: Decimal
    total: Decimal
    decision_date: datetime | None = None
    converted_invoice_id: str = ""
    notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.subtotal + self.gst_total != self.total:
            raise ValueError(
                f"Quote {self.number}: total {self.total} != "
                f"subtotal {self.subtotal} + gst {self.gst_total}"
            )

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Quote:
        subtotal = money_from_record(record.get("subtotal"))
        gst_total = money_from_record(record.get("gstTotal"))
        try:
            status = QuoteStatus(clean_str(record.get("status")))
        except ValueError:
            status = QuoteStatus.PENDING
        issue_date = instant_or_none(record.get("issueDate"))
        return cls(
            id=clean_str(record.get("id")),
            number=clean_str(record.get("number")),
            client_id=clean_str(record.get("clientId")),
            client_name=clean_str(record.get("clientName")),
            client_business_name=clean_str(record.get("clientBusinessName")),
            issue_date=issue_date,
            valid_until=instant_or_none(record.get("validUntil")) or issue_date,
            status=status,
            line_items=tuple(
                LineItem.from_record(item)
                for item in record.get("lineItems") or ()
                if isinstance(item, dict)
            ),
            subtotal=subtotal,
            gst_total=gst_total,
            total=subtotal + gst_total,
            decision_date=instant_or_none(record.get("decisionDate")),
            converted_invoice_id=clean_str(record.get("convertedInvoiceId")),
            notes=clean_str(record.get("notes")),
            created_at=instant_or_none(record.get("createdAt")),
            updated_at=instant_or_none(record.get("updatedAt")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "clientId": self.client_id,
            "clientName": self.client_name,
            "clientBusinessName": self.client_business_name,
            "issueDate": to_iso(self.issue_date),
            "validUntil": to_iso(self.valid_until),
            "status": self.status.value,
            "decisionDate": to_iso(self.decision_date),
            "convertedInvoiceId": self.converted_invoice_id,
            "notes": self.notes,
            "lineItems": [item.to_record() for item in self.line_items],
            "subtotal": money_str(self.subtotal),
            "gstTotal": money_str(self.gst_total),
            "total": money_str(self.total),
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }


@dataclass(frozen=True)
class QuoteConversionResult:
    """Outcome of ``QuoteService.convert_to_invoice``."""
    quote: Quote
    invoice: Invoice
