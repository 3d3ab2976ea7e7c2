"""
DocumentNormalizer -- raw input to canonical invoices and quotes.

Responsibility:
    Sanitizes line items, resolves the client snapshot, coerces dates,
    recomputes every derived amount through the Monetary Engine and
    allocates document numbers.  The result is always a fully consistent
    ``Invoice`` or ``Quote``; derived values in the input are never trusted.

Architecture position:
    Modules > Documents -- shared by the invoice, quote and recurring
    services.  Reads clients, settings and the document sequence; writes
    nothing except the sequence counter when a number is allocated.

Invariants enforced:
    - At least one line item survives sanitation (non-empty description,
      positive quantity).
    - ``amount_paid <= total``; status follows from the balance.
    - Read paths never allocate numbers.

Failure modes:
    - MissingFieldError when ``clientId`` is blank.
    - ClientNotFoundError when strict and the client does not resolve.
    - MissingLineItemsError when no line item survives sanitation.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any

from invoicing_config.schema import DocumentRules
from invoicing_engines.recurrence import add_days
from invoicing_engines.totals import compute_line, compute_totals, sanitize_amount
from invoicing_kernel.domain.clock import Clock
from invoicing_kernel.domain.dates import coerce_instant, instant_or_none
from invoicing_kernel.domain.records import clean_str, parse_flag, require_mapping
from invoicing_kernel.exceptions import (
    ClientNotFoundError,
    MissingFieldError,
    MissingLineItemsError,
)
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.services.base import new_record_id
from invoicing_kernel.services.sequence_service import DocumentSequenceService
from invoicing_modules.clients.service import ClientService
from invoicing_modules.documents.models import ClientSnapshot, LineItem
from invoicing_modules.invoices.models import Invoice, InvoiceStatus
from invoicing_modules.invoices.workflows import derive_payment_state
from invoicing_modules.quotes.models import Quote, QuoteStatus
from invoicing_modules.settings.service import SettingsService

logger = get_logger("modules.documents.normalizer")


class DocumentNormalizer:
    """
    Canonicalizes invoice and quote payloads.

    Usage:
        normalizer = DocumentNormalizer(clients, settings, sequences, rules, clock)
        invoice = normalizer.normalize_invoice(
            raw, strict_client_validation=True, allocate_number=True,
            existing_numbers=["INV-0001"],
        )
    """

    def __init__(
        self,
        clients: ClientService,
        settings: SettingsService,
        sequences: DocumentSequenceService,
        rules: DocumentRules,
        clock: Clock,
    ):
        self._clients = clients
        self._settings = settings
        self._sequences = sequences
        self._rules = rules
        self._clock = clock

    @property
    def rules(self) -> DocumentRules:
        return self._rules

    def current_tax_rate(self) -> Decimal:
        return self._settings.get().gst_rate

    # -------------------------------------------------------------------------
    # Building blocks
    # -------------------------------------------------------------------------

    def normalize_line_items(self, raw_items: Any, tax_rate: Decimal) -> tuple[LineItem, ...]:
        """Sanitize raw line items, dropping blank or zero-quantity lines."""
        if not isinstance(raw_items, (list, tuple)):
            return ()
        items: list[LineItem] = []
        for raw in raw_items:
            if isinstance(raw, LineItem):
                raw = raw.to_record()
            if not isinstance(raw, Mapping):
                continue
            description = clean_str(raw.get("description"))
            quantity = sanitize_amount(raw.get("quantity"))
            if not description or quantity <= 0:
                continue
            unit_price = sanitize_amount(raw.get("unitPrice", raw.get("unit_price")))
            apply_gst = parse_flag(raw.get("applyGst", raw.get("apply_gst")))
            totals = compute_line(quantity, unit_price, apply_gst, tax_rate)
            items.append(
                LineItem(
                    id=clean_str(raw.get("id")) or new_record_id(),
                    service_id=clean_str(raw.get("serviceId")),
                    description=description,
                    quantity=quantity,
                    unit_price=unit_price,
                    apply_gst=apply_gst,
                    subtotal=totals.subtotal,
                    gst=totals.gst,
                    total=totals.total,
                )
            )
        return tuple(items)

    def resolve_client(
        self,
        client_id: Any,
        fallback: Mapping[str, Any],
        *,
        strict: bool,
        document_type: str,
    ) -> ClientSnapshot:
        """Look up the client, or degrade to the stored snapshot when not strict."""
        resolved_id = clean_str(client_id)
        if not resolved_id:
            raise MissingFieldError(document_type, "client")
        client = self._clients.find_by_id(resolved_id)
        if client is not None:
            return ClientSnapshot(
                id=client.id,
                name=client.name,
                business_name=client.business_name,
                prefix=client.prefix,
            )
        if strict:
            raise ClientNotFoundError(resolved_id)
        logger.debug(
            "document_client_unresolved",
            extra={"document_type": document_type, "client_id": resolved_id},
        )
        return ClientSnapshot(
            id=resolved_id,
            name=clean_str(fallback.get("clientName")) or self._rules.unknown_client_label,
            business_name=clean_str(fallback.get("clientBusinessName")),
        )

    def _document_number(
        self,
        data: Mapping[str, Any],
        client: ClientSnapshot,
        default_prefix: str,
        sequence_name: str,
        allocate_number: bool,
        existing_numbers: Collection[str],
    ) -> str:
        number = clean_str(data.get("number"))
        if number or not allocate_number:
            return number
        prefix = client.prefix or default_prefix
        number = self._sequences.next_document_number(
            sequence_name,
            prefix,
            self._rules.number_padding,
            floor=len(existing_numbers),
            in_use=set(existing_numbers),
        )
        logger.info(
            "document_number_allocated",
            extra={"sequence_name": sequence_name, "number": number},
        )
        return number

    def _timestamps(self, data: Mapping[str, Any], now: datetime) -> tuple[datetime, datetime]:
        return (
            coerce_instant(data.get("createdAt"), now),
            coerce_instant(data.get("updatedAt"), now),
        )

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def normalize_invoice(
        self,
        raw: Any,
        *,
        strict_client_validation: bool = True,
        allocate_number: bool = False,
        existing_numbers: Collection[str] = (),
    ) -> Invoice:
        data = require_mapping(raw, "Invoice")
        client = self.resolve_client(
            data.get("clientId"), data, strict=strict_client_validation, document_type="Invoice"
        )
        settings = self._settings.get()
        now = self._clock.now_utc()

        issue_date = coerce_instant(data.get("issueDate"), now)
        due_date = coerce_instant(data.get("dueDate"), add_days(issue_date, self._rules.due_days))

        line_items = self.normalize_line_items(data.get("lineItems"), settings.gst_rate)
        if not line_items:
            raise MissingLineItemsError("Invoice")
        totals = compute_totals(line_items, settings.gst_rate)

        requested_status = clean_str(data.get("status")).lower()
        raw_amount_paid = data.get("amountPaid")
        if raw_amount_paid is None:
            raw_amount_paid = totals.total if requested_status == InvoiceStatus.PAID.value else 0
        amount_paid = min(totals.total, sanitize_amount(raw_amount_paid))
        status, balance_due = derive_payment_state(totals.total, amount_paid)

        paid_at = None
        if status == InvoiceStatus.PAID:
            paid_at = instant_or_none(data.get("paidAt")) or now

        created_at, updated_at = self._timestamps(data, now)
        return Invoice(
            id=clean_str(data.get("id")) or new_record_id(),
            number=self._document_number(
                data,
                client,
                settings.invoice_prefix,
                DocumentSequenceService.INVOICE,
                allocate_number,
                existing_numbers,
            ),
            client_id=client.id,
            client_name=client.name,
            client_business_name=client.business_name,
            issue_date=issue_date,
            due_date=due_date,
            status=status,
            line_items=line_items,
            subtotal=totals.subtotal,
            gst_total=totals.gst_total,
            total=totals.total,
            amount_paid=amount_paid,
            balance_due=balance_due,
            paid_at=paid_at,
            notes=clean_str(data.get("notes")),
            created_at=created_at,
            updated_at=updated_at,
        )

    def normalize_quote(
        self,
        raw: Any,
        *,
        strict_client_validation: bool = True,
        allocate_number: bool = False,
        existing_numbers: Collection[str] = (),
    ) -> Quote:
        data = require_mapping(raw, "Quote")
        client = self.resolve_client(
            data.get("clientId"), data, strict=strict_client_validation, document_type="Quote"
        )
        settings = self._settings.get()
        now = self._clock.now_utc()

        issue_date = coerce_instant(data.get("issueDate"), now)
        valid_until = coerce_instant(
            data.get("validUntil"), add_days(issue_date, self._rules.quote_valid_days)
        )

        line_items = self.normalize_line_items(data.get("lineItems"), settings.gst_rate)
        if not line_items:
            raise MissingLineItemsError("Quote")
        totals = compute_totals(line_items, settings.gst_rate)

        status = QuoteStatus.parse(data.get("status"))

        created_at, updated_at = self._timestamps(data, now)
        return Quote(
            id=clean_str(data.get("id")) or new_record_id(),
            number=self._document_number(
                data,
                client,
                settings.quote_prefix,
                DocumentSequenceService.QUOTE,
                allocate_number,
                existing_numbers,
            ),
            client_id=client.id,
            client_name=client.name,
            client_business_name=client.business_name,
            issue_date=issue_date,
            valid_until=valid_until,
            status=status,
            line_items=line_items,
            subtotal=totals.subtotal,
            gst_total=totals.gst_total,
            total=totals.total,
            decision_date=instant_or_none(data.get("decisionDate")),
            converted_invoice_id=clean_str(data.get("convertedInvoiceId")),
            notes=clean_str(data.get("notes")),
            created_at=created_at,
            updated_at=updated_at,
        )
