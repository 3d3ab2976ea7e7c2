"""
Document Building Blocks (``invoicing_modules.documents.models``).

Responsibility
--------------
Value objects shared by invoices, quotes and recurring schedules: the
line item and the client snapshot a document carries.

Invariants enforced
-------------------
* ``LineItem.total == subtotal + gst`` (checked in ``__post_init__``).
* ``quantity`` is positive and ``unit_price`` is non-negative once a line
  item has been through the normalizer.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from invoicing_kernel.domain.records import clean_str, money_from_record, money_str


@dataclass(frozen=True)
class LineItem:
    """One billable line.  Derived amounts are always recomputed."""
    id: str
    description: str
    quantity: Decimal
    unit_price: Decimal
    apply_gst: bool
    subtotal: Decimal
    gst: Decimal
    total: Decimal
    service_id: str = ""

    def __post_init__(self) -> None:
        if self.subtotal + self.gst != self.total:
            raise ValueError(
                f"Line {self.id}: total {self.total} != subtotal {self.subtotal} + gst {self.gst}"
            )

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> LineItem:
        subtotal = money_from_record(record.get("subtotal"))
        gst = money_from_record(record.get("gst"))
        return cls(
            id=clean_str(record.get("id")),
            service_id=clean_str(record.get("serviceId")),
            description=clean_str(record.get("description")),
            quantity=money_from_record(record.get("quantity")),
            unit_price=money_from_record(record.get("unitPrice")),
            apply_gst=record.get("applyGst") is True,
            subtotal=subtotal,
            gst=gst,
            total=subtotal + gst,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "serviceId": self.service_id,
            "description": self.description,
            "quantity": money_str(self.quantity),
            "unitPrice": money_str(self.unit_price),
            "applyGst": self.apply_gst,
            "subtotal": money_str(self.subtotal),
            "gst": money_str(self.gst),
            "total": money_str(self.total),
        }


@dataclass(frozen=True)
class ClientSnapshot:
    """The client fields a document keeps, so it stays readable after deletion."""
    id: str
    name: str
    business_name: str
    prefix: str = ""
