"""
Client Domain Models (``invoicing_modules.clients.models``).

Frozen value object for a billed client.  Documents keep a denormalized
snapshot (``clientName``, ``clientBusinessName``) so they stay readable
after the client is deleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from invoicing_kernel.domain.dates import instant_or_none, to_iso
from invoicing_kernel.domain.records import clean_str


@dataclass(frozen=True)
class Client:
    """A client that receives invoices and quotes."""
    id: str
    name: str
    business_name: str
    address: str
    abn: str
    contact: str
    prefix: str
    email: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Client:
        return cls(
            id=clean_str(record.get("id")),
            name=clean_str(record.get("name")),
            business_name=clean_str(record.get("businessName")),
            address=clean_str(record.get("address")),
            abn=clean_str(record.get("abn")),
            contact=clean_str(record.get("contact")),
            prefix=clean_str(record.get("prefix")),
            email=clean_str(record.get("email")),
            created_at=instant_or_none(record.get("createdAt")),
            updated_at=instant_or_none(record.get("updatedAt")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "businessName": self.business_name,
            "address": self.address,
            "abn": self.abn,
            "contact": self.contact,
            "prefix": self.prefix,
            "email": self.email,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }
