"""
RecordCollectionService -- base for services persisting one collection.

Responsibility:
    Provides the common constructor (record store + clock) and the
    load-mutate-save helpers every manager uses against its collection.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Every manager in
    ``invoicing_modules`` extends this class.

Invariants enforced:
    - A load that returns anything other than a list (missing key, store
      unavailable, corrupted value) degrades to an empty collection.
    - A refused save is never silent: it raises PersistenceFailedError.

Failure modes:
    - PersistenceFailedError when the store returns False from save().
"""

from __future__ import annotations

from typing import Any, ClassVar
from uuid import uuid4

from invoicing_kernel.domain.clock import Clock, SystemClock
from invoicing_kernel.exceptions import PersistenceFailedError
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.store.record_store import (
    CollectionKey,
    RecordStore,
    collection_name,
)

logger = get_logger("services.base")


def new_record_id() -> str:
    return str(uuid4())


class RecordCollectionService:
    """
    Base class for managers that own one record collection.

    Contract:
        Subclasses set ``collection``.  Records are plain dicts with an
        ``id`` key; helpers always load the full collection, mutate it in
        memory and save the full collection back.
    """

    collection: ClassVar[CollectionKey]

    def __init__(self, store: RecordStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or SystemClock()

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def clock(self) -> Clock:
        return self._clock

    def _load_records(self, key: CollectionKey | None = None) -> list[dict[str, Any]]:
        key = key or self.collection
        value = self._store.load(key)
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning(
                "collection_shape_invalid",
                extra={"collection": collection_name(key), "type": type(value).__name__},
            )
            return []
        return [record for record in value if isinstance(record, dict)]

    def _save_records(
        self,
        records: list[dict[str, Any]],
        key: CollectionKey | None = None,
    ) -> None:
        key = key or self.collection
        if not self._store.save(key, records):
            raise PersistenceFailedError(collection_name(key))

    def _find_record(self, record_id: str) -> dict[str, Any] | None:
        record_id = (record_id or "").strip() if isinstance(record_id, str) else ""
        if not record_id:
            return None
        for record in self._load_records():
            if record.get("id") == record_id:
                return record
        return None

    def _upsert(self, record: dict[str, Any]) -> dict[str, Any]:
        """Replace the record with the same id, or append it."""
        records = self._load_records()
        for index, existing in enumerate(records):
            if existing.get("id") == record["id"]:
                records[index] = record
                break
        else:
            records.append(record)
        self._save_records(records)
        return record

    def _delete(self, record_id: str) -> bool:
        """Remove a record by id.  False when no such record exists."""
        records = self._load_records()
        remaining = [record for record in records if record.get("id") != record_id]
        if len(remaining) == len(records):
            return False
        self._save_records(remaining)
        return True
