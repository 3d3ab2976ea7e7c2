"""
Quote Service - quote lifecycle over the ``quotes`` collection.

Quotes share the invoice normalization rules (line items, client snapshot,
numbering) and follow ``QUOTE_WORKFLOW``: pending, then accepted or
declined, and finally converted into an invoice.  Conversion is one-way;
a converted quote can no longer be edited.

Failure modes:
    - QuoteNotFoundError for unknown ids.
    - InvalidTransitionError for status moves the workflow does not list.
    - ClientNotFoundError when converting a quote whose client was deleted.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from invoicing_kernel.domain.clock import Clock
from invoicing_kernel.domain.dates import coerce_instant, to_iso
from invoicing_kernel.domain.records import clean_str, require_mapping
from invoicing_kernel.exceptions import (
    InvalidTransitionError,
    PersistenceFailedError,
    QuoteNotFoundError,
    ValidationError,
)
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.services.base import RecordCollectionService, new_record_id
from invoicing_kernel.store.record_store import CollectionKey, RecordStore
from invoicing_modules.documents.normalizer import DocumentNormalizer
from invoicing_modules.invoices.service import InvoiceService
from invoicing_modules.quotes.models import Quote, QuoteConversionResult, QuoteStatus
from invoicing_modules.quotes.workflows import QUOTE_WORKFLOW

logger = get_logger("modules.quotes.service")


class QuoteService(RecordCollectionService):
    """Owns the ``quotes`` collection."""

    collection = CollectionKey.QUOTES

    def __init__(
        self,
        store: RecordStore,
        normalizer: DocumentNormalizer,
        invoices: InvoiceService,
        clock: Clock | None = None,
    ):
        super().__init__(store, clock)
        self._normalizer = normalizer
        self._invoices = invoices

    def _read(self, record: dict[str, Any]) -> Quote | None:
        try:
            return self._normalizer.normalize_quote(record, strict_client_validation=False)
        except ValidationError as exc:
            logger.warning(
                "quote_record_invalid",
                extra={"quote_id": record.get("id"), "error_code": exc.code},
            )
            return None

    def list(self) -> list[Quote]:
        quotes = []
        for record in self._load_records():
            quote = self._read(record)
            if quote is not None:
                quotes.append(quote)
        return quotes

    def find_by_id(self, quote_id: str) -> Quote | None:
        record = self._find_record(quote_id)
        return self._read(record) if record is not None else None

    def get(self, quote_id: str) -> Quote:
        quote = self.find_by_id(quote_id)
        if quote is None:
            raise QuoteNotFoundError(clean_str(quote_id) or str(quote_id))
        return quote

    def create(self, raw: Mapping[str, Any]) -> Quote:
        data = require_mapping(raw, "Quote")
        # Checked before normalizing, which allocates a number.
        self._check_transition(QUOTE_WORKFLOW.initial_state, QuoteStatus.parse(data.get("status")))
        now = to_iso(self._clock.now_utc())
        existing_numbers = [clean_str(record.get("number")) for record in self._load_records()]
        quote = self._normalizer.normalize_quote(
            {**data, "id": new_record_id(), "convertedInvoiceId": "", "createdAt": now, "updatedAt": now},
            strict_client_validation=True,
            allocate_number=True,
            existing_numbers=existing_numbers,
        )
        self._upsert(quote.to_record())
        logger.info(
            "quote_created",
            extra={
                "quote_id": quote.id,
                "number": quote.number,
                "client_id": quote.client_id,
                "total": str(quote.total),
            },
        )
        return quote

    def update(self, quote_id: str, patch: Mapping[str, Any]) -> Quote:
        existing = self.get(quote_id)
        changes = require_mapping(patch, "Quote")
        requested = clean_str(changes.get("status")).lower() or existing.status.value
        if QUOTE_WORKFLOW.is_terminal(existing.status.value):
            raise InvalidTransitionError(QUOTE_WORKFLOW.name, existing.status.value, requested)

        client_id = clean_str(changes.get("clientId"))
        if client_id and client_id != existing.client_id:
            self._normalizer.resolve_client(client_id, changes, strict=True, document_type="Quote")

        current = existing.to_record()
        quote = self._normalizer.normalize_quote(
            {
                **current,
                **changes,
                "id": existing.id,
                "convertedInvoiceId": existing.converted_invoice_id,
                "createdAt": current["createdAt"],
                "updatedAt": to_iso(self._clock.now_utc()),
            },
            strict_client_validation=False,
        )
        self._check_transition(existing.status, quote.status)
        self._upsert(quote.to_record())
        logger.info(
            "quote_updated",
            extra={
                "quote_id": quote.id,
                "fields": sorted(changes.keys()),
                "from_status": existing.status.value,
                "to_status": quote.status.value,
            },
        )
        return quote

    def mark_accepted(self, quote_id: str, accepted_date: Any = None) -> Quote:
        return self._decide(quote_id, QuoteStatus.ACCEPTED, accepted_date)

    def mark_declined(self, quote_id: str, declined_date: Any = None) -> Quote:
        return self._decide(quote_id, QuoteStatus.DECLINED, declined_date)

    def remove(self, quote_id: str) -> bool:
        removed = self._delete(clean_str(quote_id))
        if removed:
            logger.info("quote_removed", extra={"quote_id": quote_id})
        return removed

    def convert_to_invoice(
        self,
        quote_id: str,
        issue_date: Any = None,
        due_date: Any = None,
    ) -> QuoteConversionResult:
        """Issue an invoice from an accepted quote and mark the quote converted."""
        quote = self.get(quote_id)
        if QUOTE_WORKFLOW.find_transition(quote.status.value, QuoteStatus.CONVERTED.value) is None:
            raise InvalidTransitionError(
                QUOTE_WORKFLOW.name, quote.status.value, QuoteStatus.CONVERTED.value
            )

        invoice_input: dict[str, Any] = {
            "clientId": quote.client_id,
            "notes": quote.notes,
            "lineItems": [
                {**item.to_record(), "id": new_record_id()} for item in quote.line_items
            ],
        }
        if issue_date is not None:
            invoice_input["issueDate"] = issue_date
        if due_date is not None:
            invoice_input["dueDate"] = due_date
        invoice = self._invoices.create(invoice_input)

        now = self._clock.now_utc()
        converted = replace(
            quote,
            status=QuoteStatus.CONVERTED,
            converted_invoice_id=invoice.id,
            updated_at=now,
        )
        try:
            self._upsert(converted.to_record())
        except PersistenceFailedError:
            self._invoices.remove(invoice.id)
            logger.error(
                "quote_conversion_reverted",
                extra={"quote_id": quote.id, "invoice_id": invoice.id},
            )
            raise

        logger.info(
            "quote_converted",
            extra={"quote_id": quote.id, "invoice_id": invoice.id, "number": invoice.number},
        )
        return QuoteConversionResult(quote=converted, invoice=invoice)

    def _decide(self, quote_id: str, status: QuoteStatus, decision_date: Any) -> Quote:
        decided_at = coerce_instant(decision_date, self._clock.now_utc())
        return self.update(
            quote_id,
            {"status": status.value, "decisionDate": to_iso(decided_at)},
        )

    def _check_transition(self, from_state: QuoteStatus | str, to_state: QuoteStatus) -> None:
        from_value = from_state.value if isinstance(from_state, QuoteStatus) else from_state
        # Conversion only happens through convert_to_invoice.
        if to_state == QuoteStatus.CONVERTED and from_value != to_state.value:
            raise InvalidTransitionError(QUOTE_WORKFLOW.name, from_value, to_state.value)
        if not QUOTE_WORKFLOW.can_transition(from_value, to_state.value):
            raise InvalidTransitionError(QUOTE_WORKFLOW.name, from_value, to_state.value)
