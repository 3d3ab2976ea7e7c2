"""Service catalog models (``invoicing_modules.catalog.models``)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from invoicing_kernel.domain.dates import instant_or_none, to_iso
from invoicing_kernel.domain.records import clean_str, money_from_record, money_str


@dataclass(frozen=True)
class CatalogService:
    """A reusable billable item (description plus default unit price)."""
    id: str
    description: str
    unit_price: Decimal
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> CatalogService:
        return cls(
            id=clean_str(record.get("id")),
            description=clean_str(record.get("description")),
            unit_price=money_from_record(record.get("unitPrice")),
            created_at=instant_or_none(record.get("createdAt")),
            updated_at=instant_or_none(record.get("updatedAt")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "unitPrice": money_str(self.unit_price),
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }

    def as_line_item(self, quantity: Decimal | int = 1, apply_gst: bool = True) -> dict[str, Any]:
        """Raw line-item input pre-filled from this catalog entry."""
        return {
            "serviceId": self.id,
            "description": self.description,
            "quantity": str(quantity),
            "unitPrice": money_str(self.unit_price),
            "applyGst": apply_gst,
        }
