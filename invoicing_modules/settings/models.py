"""
Business Settings Model (``invoicing_modules.settings.models``).

The settings singleton: business identity shown on documents, default
document prefixes and the GST rate applied to taxable line items.

Invariants enforced
-------------------
* ``gst_rate`` is a Decimal within [0, 1].
* Prefixes are upper-case.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from invoicing_config.schema import SettingsDefaults
from invoicing_kernel.domain.dates import to_iso


@dataclass(frozen=True)
class Settings:
    """Current business settings."""
    business_name: str
    abn: str
    contact_name: str
    contact_email: str
    contact_phone: str
    address: str
    invoice_prefix: str
    quote_prefix: str
    gst_rate: Decimal
    updated_at: datetime | None = None

    @classmethod
    def from_defaults(cls, defaults: SettingsDefaults) -> Settings:
        return cls(
            business_name=defaults.business_name,
            abn=defaults.abn,
            contact_name=defaults.contact_name,
            contact_email=defaults.contact_email,
            contact_phone=defaults.contact_phone,
            address=defaults.address,
            invoice_prefix=defaults.invoice_prefix,
            quote_prefix=defaults.quote_prefix,
            gst_rate=defaults.gst_rate,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "businessName": self.business_name,
            "abn": self.abn,
            "contactName": self.contact_name,
            "contactEmail": self.contact_email,
            "contactPhone": self.contact_phone,
            "address": self.address,
            "invoicePrefix": self.invoice_prefix,
            "quotePrefix": self.quote_prefix,
            "gstRate": str(self.gst_rate),
            "updatedAt": to_iso(self.updated_at),
        }
