"""
Settings Service - merge-and-validate updates of the settings singleton.

Reading never fails: a missing or unreadable stored value falls back to the
configured defaults field by field.  Updates merge the patch over the
current settings, then sanitize: strings trimmed, contact email lower-cased
and validated, prefixes upper-cased (blank falls back to the default), and
the GST rate clamped to [0, 1].
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from invoicing_config.schema import SettingsDefaults
from invoicing_engines.totals import to_decimal
from invoicing_kernel.domain.clock import Clock
from invoicing_kernel.domain.dates import instant_or_none, to_iso
from invoicing_kernel.domain.records import clean_str, require_mapping
from invoicing_kernel.exceptions import InvalidEmailError, PersistenceFailedError
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.store.record_store import CollectionKey, RecordStore
from invoicing_modules.clients.service import is_valid_email
from invoicing_modules.settings.models import Settings

logger = get_logger("modules.settings.service")

_ZERO = Decimal("0")
_ONE = Decimal("1")


class SettingsService:
    """Owns the ``settings`` singleton."""

    def __init__(
        self,
        store: RecordStore,
        defaults: SettingsDefaults,
        clock: Clock,
    ):
        self._store = store
        self._defaults = defaults
        self._clock = clock

    def get(self) -> Settings:
        stored = self._store.load(CollectionKey.SETTINGS)
        if not isinstance(stored, dict):
            stored = {}
        return self._sanitize(stored)

    def update(self, patch: Mapping[str, Any]) -> Settings:
        merged = {**self.get().to_record(), **require_mapping(patch, "Settings")}
        settings = self._sanitize(merged, validate=True)
        record = settings.to_record()
        record["updatedAt"] = to_iso(self._clock.now_utc())
        if not self._store.save(CollectionKey.SETTINGS, record):
            raise PersistenceFailedError(CollectionKey.SETTINGS.value)
        logger.info(
            "settings_updated",
            extra={"fields": sorted(patch.keys()), "gst_rate": record["gstRate"]},
        )
        return self.get()

    def _sanitize(self, data: Mapping[str, Any], validate: bool = False) -> Settings:
        defaults = self._defaults

        def text(key: str, default: str) -> str:
            return clean_str(data[key]) if key in data else default

        contact_email = text("contactEmail", defaults.contact_email).lower()
        if validate and contact_email and not is_valid_email(contact_email):
            raise InvalidEmailError(contact_email)

        rate = to_decimal(data.get("gstRate"))
        gst_rate = defaults.gst_rate if rate is None else min(max(rate, _ZERO), _ONE)

        return Settings(
            business_name=text("businessName", defaults.business_name),
            abn=text("abn", defaults.abn),
            contact_name=text("contactName", defaults.contact_name),
            contact_email=contact_email,
            contact_phone=text("contactPhone", defaults.contact_phone),
            address=text("address", defaults.address),
            invoice_prefix=(clean_str(data.get("invoicePrefix")) or defaults.invoice_prefix).upper(),
            quote_prefix=(clean_str(data.get("quotePrefix")) or defaults.quote_prefix).upper(),
            gst_rate=gst_rate,
            updated_at=instant_or_none(data.get("updatedAt")),
        )
