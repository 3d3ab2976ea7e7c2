"""
RecordStore -- key-addressed persistence of JSON collections.

Responsibility:
    Defines the collaborator every manager persists through: a store of
    plain JSON-serializable values addressed by a collection key.  Values
    are whole collections (a list of records, or the settings mapping);
    callers load the full collection, mutate it in memory and save it back.

Architecture position:
    Kernel > Store.  Imported by kernel services, modules and the backup
    service.  MUST NOT import from modules/ or services/.

Invariants enforced:
    - Values cross the boundary as JSON-compatible data; a store never hands
      out a reference to its internal state.
    - Failures are reported as return values: ``load`` -> ``None``,
      ``save``/``remove`` -> ``False``.  Stores do not raise for I/O trouble.
    - ``exists`` separates an absent key from one whose value ``load``
      could not read.

Failure modes:
    - ``save`` returns False when the value is not JSON-serializable.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from invoicing_kernel.logging_config import get_logger

logger = get_logger("store.memory")


class CollectionKey(str, Enum):
    """Collection keys understood by the record store."""

    CLIENTS = "clients"
    INVOICES = "invoices"
    QUOTES = "quotes"
    SERVICES = "services"
    PAYMENTS = "payments"
    SCHEDULES = "schedules"
    SETTINGS = "settings"
    SEQUENCES = "sequences"


def collection_name(key: CollectionKey | str) -> str:
    return key.value if isinstance(key, CollectionKey) else str(key)


@runtime_checkable
class RecordStore(Protocol):
    """Persistence collaborator used by every manager."""

    def load(self, key: CollectionKey | str) -> list | dict | None:
        """Return the stored value for ``key`` or ``None`` when absent/unavailable."""
        ...

    def save(self, key: CollectionKey | str, value: list | dict) -> bool:
        """Replace the value for ``key``.  Returns False on failure."""
        ...

    def remove(self, key: CollectionKey | str) -> bool:
        """Delete the value for ``key``.  Returns False on failure."""
        ...

    def exists(self, key: CollectionKey | str) -> bool:
        """Whether a value is stored for ``key``, even one ``load`` cannot read."""
        ...


class InMemoryRecordStore:
    """
    Process-local record store.

    Values are copied through a JSON round trip on every load and save, so
    callers observe the same isolation a durable store gives them.
    """

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[collection_name(key)] = json.dumps(value)

    def load(self, key: CollectionKey | str) -> list | dict | None:
        raw = self._data.get(collection_name(key))
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: CollectionKey | str, value: list | dict) -> bool:
        name = collection_name(key)
        try:
            self._data[name] = json.dumps(value)
        except (TypeError, ValueError):
            logger.warning(
                "record_store_save_failed",
                extra={"collection": name},
                exc_info=True,
            )
            return False
        return True

    def remove(self, key: CollectionKey | str) -> bool:
        self._data.pop(collection_name(key), None)
        return True

    def exists(self, key: CollectionKey | str) -> bool:
        return collection_name(key) in self._data

    def keys(self) -> list[str]:
        return sorted(self._data)
