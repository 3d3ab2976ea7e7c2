"""
DocumentSequenceService -- monotonic document number allocation.

Responsibility:
    Provides strictly increasing sequence numbers for invoice and quote
    numbers.  Counters live in the ``sequences`` collection of the record
    store, one integer per sequence name.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by the document normalizer when a new document has no number.

Invariants enforced:
    - A counter never goes backwards.
    - A counter never allocates at or below a supplied floor (the current
      collection length), so data created before counters existed, or
      restored from a backup, cannot collide with new numbers.
    - ``next_document_number`` skips any number already in use.

Failure modes:
    - PersistenceFailedError if the counter cannot be saved.  No number is
      handed out unless the counter increment was stored.
"""

from __future__ import annotations

from collections.abc import Collection

from invoicing_kernel.exceptions import PersistenceFailedError
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.store.record_store import CollectionKey, RecordStore

logger = get_logger("services.sequence")


class DocumentSequenceService:
    """
    Service for allocating document sequence numbers.

    Usage:
        seq = DocumentSequenceService(store)
        number = seq.next_document_number(
            DocumentSequenceService.INVOICE, "INV", 4, floor=3, in_use={"INV-0004"}
        )
        # -> "INV-0005"
    """

    # Well-known sequence names
    INVOICE = "invoice"
    QUOTE = "quote"

    def __init__(self, store: RecordStore):
        self._store = store

    def _load_counters(self) -> dict[str, int]:
        value = self._store.load(CollectionKey.SEQUENCES)
        if not isinstance(value, dict):
            return {}
        counters: dict[str, int] = {}
        for name, current in value.items():
            if isinstance(current, int) and not isinstance(current, bool):
                counters[name] = current
        return counters

    def current_value(self, sequence_name: str) -> int:
        """Current counter value without incrementing (0 if never used)."""
        return self._load_counters().get(sequence_name, 0)

    def next_value(self, sequence_name: str, floor: int = 0) -> int:
        """Increment and return the counter, never returning a value <= ``floor``."""
        counters = self._load_counters()
        value = max(counters.get(sequence_name, 0), floor) + 1
        counters[sequence_name] = value
        if not self._store.save(CollectionKey.SEQUENCES, counters):
            raise PersistenceFailedError(CollectionKey.SEQUENCES.value)
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value

    def next_document_number(
        self,
        sequence_name: str,
        prefix: str,
        padding: int,
        *,
        floor: int = 0,
        in_use: Collection[str] = (),
    ) -> str:
        """Allocate ``{prefix}-{sequence}`` that no existing document uses."""
        while True:
            value = self.next_value(sequence_name, floor)
            number = f"{prefix}-{value:0{padding}d}"
            if number not in in_use:
                return number
            logger.debug(
                "sequence_number_in_use",
                extra={"sequence_name": sequence_name, "number": number},
            )
            floor = value
