"""
Invoice Domain Models (``invoicing_modules.invoices.models``).

Responsibility
--------------
Frozen value object for an issued invoice and its payment status.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O.  Built by the
document normalizer, persisted by ``InvoiceService`` through
``to_record()``.

Invariants enforced
-------------------
* All monetary fields use ``Decimal``.
* ``total == subtotal + gst_total`` and
  ``balance_due == max(0, total - amount_paid)`` (checked in
  ``__post_init__``).
* ``paid_at`` is set exactly when ``status`` is ``PAID``.
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


class InvoiceStatus(str, Enum):
    """Payment states.  Must align with ``workflows.INVOICE_WORKFLOW.states``."""
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


@dataclass(frozen=True)
class Invoice:
    """An invoice with its cached payment projection."""
    id: str
    number: str
    client_id: str
    client_name: str
    client_business_name: str
    issue_date: datetime
    due_date: datetime
    status: InvoiceStatus
    line_items: tuple[LineItem, ...]
    subtotal: Decimal
    gst_total: Decimal
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    paid_at: datetime | None = None
    notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.subtotal + self.gst_total != self.total:
            raise ValueError(
                f"Invoice {self.number}: total {self.total} != "
                f"subtotal {self.subtotal} + gst {self.gst_total}"
            )
        if self.balance_due != max(Decimal("0"), self.total - self.amount_paid):
            raise ValueError(
                f"Invoice {self.number}: balance {self.balance_due} inconsistent "
                f"with total {self.total} and amount paid {self.amount_paid}"
            )

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Invoice:
        subtotal = money_from_record(record.get("subtotal"))
        gst_total = money_from_record(record.get("gstTotal"))
        total = subtotal + gst_total
        amount_paid = money_from_record(record.get("amountPaid"))
        try:
            status = InvoiceStatus(clean_str(record.get("status")))
        except ValueError:
            status = InvoiceStatus.UNPAID
        issue_date = instant_or_none(record.get("issueDate"))
        return cls(
            id=clean_str(record.get("id")),
            number=clean_str(record.get("number")),
            client_id=clean_str(record.get("clientId")),
            client_name=clean_str(record.get("clientName")),
            client_business_name=clean_str(record.get("clientBusinessName")),
            issue_date=issue_date,
            due_date=instant_or_none(record.get("dueDate")) or issue_date,
            status=status,
            line_items=tuple(
                LineItem.from_record(item)
                for item in record.get("lineItems") or ()
                if isinstance(item, dict)
            ),
            subtotal=subtotal,
            gst_total=gst_total,
            total=total,
            amount_paid=amount_paid,
            balance_due=max(Decimal("0"), total - amount_paid),
            paid_at=instant_or_none(record.get("paidAt")),
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
            "dueDate": to_iso(self.due_date),
            "paidAt": to_iso(self.paid_at),
            "status": self.status.value,
            "notes": self.notes,
            "lineItems": [item.to_record() for item in self.line_items],
            "subtotal": money_str(self.subtotal),
            "gstTotal": money_str(self.gst_total),
            "total": money_str(self.total),
            "amountPaid": money_str(self.amount_paid),
            "balanceDue": money_str(self.balance_due),
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }
