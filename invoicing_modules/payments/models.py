"""
Payment Domain Models (``invoicing_modules.payments.models``).

A payment is an immutable ledger entry against one invoice.  Payments are
append-only: they are recorded or removed, never edited.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from invoicing_kernel.domain.dates import instant_or_none, to_iso
from invoicing_kernel.domain.records import clean_str, money_from_record, money_str


@dataclass(frozen=True)
class Payment:
    """Money received against an invoice."""
    id: str
    invoice_id: str
    invoice_number: str
    client_id: str
    client_name: str
    amount: Decimal
    payment_date: datetime | None
    recorded_at: datetime | None
    notes: str = ""

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError(f"Payment {self.id}: amount must be positive, got {self.amount}")

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Payment:
        return cls(
            id=clean_str(record.get("id")),
            invoice_id=clean_str(record.get("invoiceId")),
            invoice_number=clean_str(record.get("invoiceNumber")),
            client_id=clean_str(record.get("clientId")),
            client_name=clean_str(record.get("clientName")),
            amount=money_from_record(record.get("amount")),
            payment_date=instant_or_none(record.get("paymentDate")),
            recorded_at=instant_or_none(record.get("recordedAt")),
            notes=clean_str(record.get("notes")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "invoiceId": self.invoice_id,
            "invoiceNumber": self.invoice_number,
            "clientId": self.client_id,
            "clientName": self.client_name,
            "amount": money_str(self.amount),
            "recordedAt": to_iso(self.recorded_at),
            "paymentDate": to_iso(self.payment_date),
            "notes": self.notes,
        }
