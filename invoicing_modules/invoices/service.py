"""
Invoice Service - invoice lifecycle over the ``invoices`` collection.

Every write goes through the document normalizer, so stored invoices are
always consistent: totals recomputed, ``amountPaid`` capped at the total,
status derived from the balance.  The payment projection
(``amountPaid``/``balanceDue``/``status``/``paidAt``) is owned by the
payment engine, which writes it through ``apply_payment_projection``.

Deleting an invoice never removes its payments.

Usage:
    invoices = InvoiceService(store, normalizer, clock)
    invoice = invoices.create({
        "clientId": client.id,
        "lineItems": [{"description": "Design", "quantity": 2,
                       "unitPrice": "150", "applyGst": True}],
    })
    assert invoice.total == Decimal("330.00")
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from invoicing_kernel.domain.clock import Clock
from invoicing_kernel.domain.dates import coerce_instant, to_iso
from invoicing_kernel.domain.records import clean_str, money_str, require_mapping
from invoicing_kernel.exceptions import InvoiceNotFoundError, ValidationError
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.services.base import RecordCollectionService, new_record_id
from invoicing_kernel.store.record_store import CollectionKey, RecordStore
from invoicing_modules.documents.normalizer import DocumentNormalizer
from invoicing_modules.invoices.models import Invoice, InvoiceStatus
from invoicing_modules.invoices.workflows import INVOICE_WORKFLOW, derive_payment_state

logger = get_logger("modules.invoices.service")


class InvoiceService(RecordCollectionService):
    """Owns the ``invoices`` collection."""

    collection = CollectionKey.INVOICES

    def __init__(
        self,
        store: RecordStore,
        normalizer: DocumentNormalizer,
        clock: Clock | None = None,
    ):
        super().__init__(store, clock)
        self._normalizer = normalizer

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _read(self, record: dict[str, Any]) -> Invoice | None:
        try:
            return self._normalizer.normalize_invoice(record, strict_client_validation=False)
        except ValidationError as exc:
            logger.warning(
                "invoice_record_invalid",
                extra={"invoice_id": record.get("id"), "error_code": exc.code},
            )
            return None

    def list(self) -> list[Invoice]:
        invoices = []
        for record in self._load_records():
            invoice = self._read(record)
            if invoice is not None:
                invoices.append(invoice)
        return invoices

    def find_by_id(self, invoice_id: str) -> Invoice | None:
        record = self._find_record(invoice_id)
        return self._read(record) if record is not None else None

    def get(self, invoice_id: str) -> Invoice:
        invoice = self.find_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(clean_str(invoice_id) or str(invoice_id))
        return invoice

    def get_outstanding_invoices(self) -> list[Invoice]:
        return [invoice for invoice in self.list() if invoice.balance_due > 0]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, raw: Mapping[str, Any]) -> Invoice:
        data = require_mapping(raw, "Invoice")
        now = to_iso(self._clock.now_utc())
        existing_numbers = [clean_str(record.get("number")) for record in self._load_records()]
        invoice = self._normalizer.normalize_invoice(
            {**data, "id": new_record_id(), "createdAt": now, "updatedAt": now},
            strict_client_validation=True,
            allocate_number=True,
            existing_numbers=existing_numbers,
        )
        self._upsert(invoice.to_record())
        logger.info(
            "invoice_created",
            extra={
                "invoice_id": invoice.id,
                "number": invoice.number,
                "client_id": invoice.client_id,
                "total": str(invoice.total),
                "status": invoice.status.value,
            },
        )
        return invoice

    def update(self, invoice_id: str, patch: Mapping[str, Any]) -> Invoice:
        existing = self.get(invoice_id)
        changes = require_mapping(patch, "Invoice")

        client_id = clean_str(changes.get("clientId"))
        if client_id and client_id != existing.client_id:
            self._normalizer.resolve_client(client_id, changes, strict=True, document_type="Invoice")

        current = existing.to_record()
        merged = {
            **current,
            **changes,
            "id": existing.id,
            "createdAt": current["createdAt"],
            "updatedAt": to_iso(self._clock.now_utc()),
        }
        # Marking paid without an amount settles the full total.
        if clean_str(changes.get("status")).lower() == InvoiceStatus.PAID.value and "amountPaid" not in changes:
            merged.pop("amountPaid", None)

        invoice = self._normalizer.normalize_invoice(merged, strict_client_validation=False)
        self._upsert(invoice.to_record())
        logger.info(
            "invoice_updated",
            extra={
                "invoice_id": invoice.id,
                "fields": sorted(changes.keys()),
                "from_status": existing.status.value,
                "to_status": invoice.status.value,
            },
        )
        return invoice

    def mark_paid(self, invoice_id: str, paid_date: Any = None) -> Invoice:
        """Force the projection to paid without touching the payment ledger.

        A later ledger payment re-derives the projection from the ledger.
        ``PaymentService.mark_paid`` settles through the ledger instead.
        """
        existing = self.get(invoice_id)
        paid_at = coerce_instant(paid_date, self._clock.now_utc())
        return self.update(
            existing.id,
            {
                "status": InvoiceStatus.PAID.value,
                "paidAt": to_iso(paid_at),
                "amountPaid": money_str(existing.total),
            },
        )

    def remove(self, invoice_id: str) -> bool:
        removed = self._delete(clean_str(invoice_id))
        if removed:
            logger.info("invoice_removed", extra={"invoice_id": invoice_id})
        return removed

    def apply_payment_projection(
        self,
        invoice_id: str,
        amount_paid: Decimal,
        paid_at: datetime | None = None,
    ) -> Invoice:
        """Write the payment projection derived from the payment ledger."""
        existing = self.get(invoice_id)
        amount = min(existing.total, max(Decimal("0"), amount_paid))
        status, balance_due = derive_payment_state(existing.total, amount)
        if status == InvoiceStatus.PAID:
            paid_at = paid_at or existing.paid_at or self._clock.now_utc()
        else:
            paid_at = None

        invoice = replace(
            existing,
            amount_paid=amount,
            balance_due=balance_due,
            status=status,
            paid_at=paid_at,
            updated_at=self._clock.now_utc(),
        )
        self._upsert(invoice.to_record())

        transition = INVOICE_WORKFLOW.find_transition(existing.status.value, status.value)
        logger.info(
            "invoice_projection_applied",
            extra={
                "invoice_id": invoice.id,
                "amount_paid": str(amount),
                "balance_due": str(balance_due),
                "from_status": existing.status.value,
                "to_status": status.value,
                "action": transition.action if transition else None,
            },
        )
        return invoice
