"""
Catalog Service - CRUD for reusable billable services.

Description is required; the unit price is clamped to a non-negative
two-decimal amount (unparsable prices become 0.00).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from invoicing_engines.totals import sanitize_amount
from invoicing_kernel.domain.dates import to_iso
from invoicing_kernel.domain.records import clean_str, money_str, require_mapping
from invoicing_kernel.exceptions import MissingFieldError, ServiceNotFoundError
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.services.base import RecordCollectionService, new_record_id
from invoicing_kernel.store.record_store import CollectionKey
from invoicing_modules.catalog.models import CatalogService

logger = get_logger("modules.catalog.service")


class ServiceCatalog(RecordCollectionService):
    """Owns the ``services`` collection."""

    collection = CollectionKey.SERVICES

    def list(self) -> list[CatalogService]:
        return [CatalogService.from_record(record) for record in self._load_records()]

    def find_by_id(self, service_id: str) -> CatalogService | None:
        record = self._find_record(service_id)
        return CatalogService.from_record(record) if record is not None else None

    def get(self, service_id: str) -> CatalogService:
        service = self.find_by_id(service_id)
        if service is None:
            raise ServiceNotFoundError(clean_str(service_id) or str(service_id))
        return service

    def create(self, data: Mapping[str, Any]) -> CatalogService:
        now = to_iso(self._clock.now_utc())
        record = self._normalize(
            {**require_mapping(data, "Service"), "id": new_record_id(), "createdAt": now, "updatedAt": now}
        )
        self._upsert(record)
        logger.info("catalog_service_created", extra={"service_id": record["id"]})
        return CatalogService.from_record(record)

    def update(self, service_id: str, patch: Mapping[str, Any]) -> CatalogService:
        existing = self.get(service_id).to_record()
        record = self._normalize(
            {
                **existing,
                **require_mapping(patch, "Service"),
                "id": existing["id"],
                "createdAt": existing["createdAt"],
                "updatedAt": to_iso(self._clock.now_utc()),
            }
        )
        self._upsert(record)
        logger.info("catalog_service_updated", extra={"service_id": record["id"]})
        return CatalogService.from_record(record)

    def remove(self, service_id: str) -> bool:
        return self._delete(clean_str(service_id))

    def _normalize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        description = clean_str(data.get("description"))
        if not description:
            raise MissingFieldError("Service", "description")
        now = to_iso(self._clock.now_utc())
        return {
            "id": clean_str(data.get("id")) or new_record_id(),
            "description": description,
            "unitPrice": money_str(sanitize_amount(data.get("unitPrice"))),
            "createdAt": clean_str(data.get("createdAt")) or now,
            "updatedAt": clean_str(data.get("updatedAt")) or now,
        }
