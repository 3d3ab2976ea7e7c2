"""Record stores: the persistence collaborator behind every manager."""

from invoicing_kernel.store.record_store import (
    CollectionKey,
    InMemoryRecordStore,
    RecordStore,
)

__all__ = [
    "CollectionKey",
    "InMemoryRecordStore",
    "RecordStore",
]
