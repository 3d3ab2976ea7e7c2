"""
Client Service - CRUD and validation for billed clients.

Required fields are trimmed and must be non-empty; the document prefix is
upper-cased; email is optional, lower-cased, and must look like an address
when present.  Removing a client never touches its invoices, quotes or
payments.

Usage:
    clients = ClientService(store, clock)
    client = clients.create({
        "name": "Jane Citizen", "businessName": "Acme Pty Ltd",
        "address": "1 Main St", "abn": "12 345 678 901",
        "contact": "Jane", "prefix": "acm",
    })
    assert client.prefix == "ACM"
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from invoicing_kernel.domain.dates import to_iso
from invoicing_kernel.domain.records import EMAIL_PATTERN, clean_str, require_mapping
from invoicing_kernel.exceptions import (
    ClientNotFoundError,
    InvalidEmailError,
    MissingFieldError,
)
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.services.base import RecordCollectionService, new_record_id
from invoicing_kernel.store.record_store import CollectionKey
from invoicing_modules.clients.models import Client

logger = get_logger("modules.clients.service")

_EMAIL_RE = re.compile(EMAIL_PATTERN)

# (record key, label used in error messages)
REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("name", "name"),
    ("businessName", "business name"),
    ("address", "address"),
    ("abn", "ABN"),
    ("contact", "primary contact"),
    ("prefix", "document prefix"),
)


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


class ClientService(RecordCollectionService):
    """Owns the ``clients`` collection."""

    collection = CollectionKey.CLIENTS

    def list(self) -> list[Client]:
        return [Client.from_record(record) for record in self._load_records()]

    def find_by_id(self, client_id: str) -> Client | None:
        record = self._find_record(client_id)
        return Client.from_record(record) if record is not None else None

    def get(self, client_id: str) -> Client:
        client = self.find_by_id(client_id)
        if client is None:
            raise ClientNotFoundError(clean_str(client_id) or str(client_id))
        return client

    def create(self, data: Mapping[str, Any]) -> Client:
        now = to_iso(self._clock.now_utc())
        record = self._normalize(
            {**require_mapping(data, "Client"), "id": new_record_id(), "createdAt": now, "updatedAt": now}
        )
        self._upsert(record)
        logger.info("client_created", extra={"client_id": record["id"]})
        return Client.from_record(record)

    def update(self, client_id: str, patch: Mapping[str, Any]) -> Client:
        existing = self.get(client_id)
        current = existing.to_record()
        record = self._normalize(
            {
                **current,
                **require_mapping(patch, "Client"),
                "id": existing.id,
                "createdAt": current["createdAt"],
                "updatedAt": to_iso(self._clock.now_utc()),
            }
        )
        self._upsert(record)
        logger.info("client_updated", extra={"client_id": existing.id})
        return Client.from_record(record)

    def remove(self, client_id: str) -> bool:
        removed = self._delete(clean_str(client_id))
        if removed:
            logger.info("client_removed", extra={"client_id": client_id})
        return removed

    def _normalize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        now = to_iso(self._clock.now_utc())
        record: dict[str, Any] = {
            "id": clean_str(data.get("id")) or new_record_id(),
        }
        for key, label in REQUIRED_FIELDS:
            value = clean_str(data.get(key))
            if not value:
                raise MissingFieldError("Client", label)
            record[key] = value.upper() if key == "prefix" else value

        email = clean_str(data.get("email")).lower()
        if email and not is_valid_email(email):
            raise InvalidEmailError(email)
        record["email"] = email
        record["createdAt"] = clean_str(data.get("createdAt")) or now
        record["updatedAt"] = clean_str(data.get("updatedAt")) or now
        return record
