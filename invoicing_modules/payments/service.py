"""
Payment Service - the payment ledger and its projection onto invoices.

Responsibility:
    Records payments against invoices, validating every amount against the
    payment ledger (never against the cached ``amountPaid`` on the
    invoice), and keeps the invoice's payment projection in step.

Invariants enforced:
    - Each payment amount is positive and at most the outstanding balance,
      where outstanding = max(0, total - sum of prior ledger payments).
    - A payment is kept only if its projection was written; otherwise the
      ledger append is reverted.
    - Removing a payment rebuilds the invoice projection from the
      remaining ledger.

Failure modes:
    - InvoiceNotFoundError -- unknown invoice.
    - InvalidAmountError   -- amount missing, unparsable or not positive.
    - OverpaymentError     -- amount exceeds the outstanding balance.
    - PersistenceFailedError -- ledger or projection write refused.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from invoicing_engines.totals import round_money, to_decimal
from invoicing_kernel.domain.clock import Clock
from invoicing_kernel.domain.dates import coerce_instant
from invoicing_kernel.domain.records import clean_str
from invoicing_kernel.exceptions import (
    InvalidAmountError,
    OverpaymentError,
    PersistenceFailedError,
)
from invoicing_kernel.logging_config import LogContext, get_logger
from invoicing_kernel.services.base import RecordCollectionService, new_record_id
from invoicing_kernel.store.record_store import CollectionKey, RecordStore
from invoicing_modules.invoices.models import Invoice
from invoicing_modules.invoices.service import InvoiceService
from invoicing_modules.payments.models import Payment

logger = get_logger("modules.payments.service")

_ZERO = Decimal("0.00")
_SECONDS_PER_DAY = Decimal("86400")


class PaymentService(RecordCollectionService):
    """Owns the ``payments`` collection."""

    collection = CollectionKey.PAYMENTS

    def __init__(
        self,
        store: RecordStore,
        invoices: InvoiceService,
        clock: Clock | None = None,
    ):
        super().__init__(store, clock)
        self._invoices = invoices

    # -------------------------------------------------------------------------
    # Ledger reads
    # -------------------------------------------------------------------------

    def list(self) -> list[Payment]:
        payments = []
        for record in self._load_records():
            try:
                payments.append(Payment.from_record(record))
            except ValueError:
                logger.warning("payment_record_invalid", extra={"payment_id": record.get("id")})
        return payments

    def list_by_invoice(self, invoice_id: str) -> list[Payment]:
        invoice_id = clean_str(invoice_id)
        if not invoice_id:
            return []
        return [payment for payment in self.list() if payment.invoice_id == invoice_id]

    def _ledger_total(self, invoice_id: str) -> Decimal:
        return sum((payment.amount for payment in self.list_by_invoice(invoice_id)), _ZERO)

    # -------------------------------------------------------------------------
    # Ledger writes
    # -------------------------------------------------------------------------

    def record_payment(
        self,
        invoice_id: str,
        amount: Any,
        payment_date: Any = None,
        notes: str = "",
    ) -> Payment:
        invoice = self._invoices.get(invoice_id)
        now = self._clock.now_utc()
        paid_on = coerce_instant(payment_date, now)

        parsed = to_decimal(amount)
        if parsed is None or round_money(parsed) <= 0:
            raise InvalidAmountError(str(amount))
        payment_amount = round_money(parsed)

        already_paid = self._ledger_total(invoice.id)
        outstanding = max(_ZERO, invoice.total - already_paid)
        if payment_amount > outstanding:
            logger.warning(
                "payment_rejected_overpayment",
                extra={
                    "invoice_id": invoice.id,
                    "amount": str(payment_amount),
                    "outstanding": str(outstanding),
                },
            )
            raise OverpaymentError(invoice.id, payment_amount, outstanding)

        payment = Payment(
            id=new_record_id(),
            invoice_id=invoice.id,
            invoice_number=invoice.number,
            client_id=invoice.client_id,
            client_name=invoice.client_name,
            amount=payment_amount,
            payment_date=paid_on,
            recorded_at=now,
            notes=clean_str(notes),
        )
        with LogContext.for_document(invoice):
            projected = self._append(payment, already_paid + payment_amount)
            logger.info(
                "payment_recorded",
                extra={
                    "payment_id": payment.id,
                    "amount": payment_amount,
                    "balance_due": projected.balance_due,
                    "status": projected.status,
                },
            )
        return payment

    def mark_paid(self, invoice_id: str, payment_date: Any = None, notes: str = "") -> Invoice:
        """Settle an invoice in full through the ledger.

        Appends one payment for whatever the ledger still shows outstanding,
        so later payments are validated against a settled ledger. An invoice
        already settled by the ledger only has its projection refreshed.
        """
        invoice = self._invoices.get(invoice_id)
        outstanding = max(_ZERO, invoice.total - self._ledger_total(invoice.id))
        if outstanding == _ZERO:
            return self.rebuild_invoice_projection(invoice.id)
        self.record_payment(invoice.id, outstanding, payment_date, notes or "Marked as paid")
        return self._invoices.get(invoice.id)

    def _append(self, payment: Payment, ledger_total: Decimal) -> Invoice:
        records = self._load_records()
        records.append(payment.to_record())
        self._save_records(records)
        try:
            return self._invoices.apply_payment_projection(
                payment.invoice_id, ledger_total, payment.payment_date
            )
        except PersistenceFailedError:
            self._delete(payment.id)
            logger.error("payment_reverted", extra={"payment_id": payment.id})
            raise

    def remove(self, payment_id: str) -> bool:
        record = self._find_record(payment_id)
        if record is None:
            return False
        self._delete(record["id"])
        invoice_id = clean_str(record.get("invoiceId"))
        logger.info("payment_removed", extra={"payment_id": record["id"], "invoice_id": invoice_id})
        if self._invoices.find_by_id(invoice_id) is not None:
            self.rebuild_invoice_projection(invoice_id)
        return True

    def rebuild_invoice_projection(self, invoice_id: str) -> Invoice:
        """Recompute ``amountPaid``/``balanceDue``/``status``/``paidAt`` from the ledger."""
        invoice = self._invoices.get(invoice_id)
        payments = self.list_by_invoice(invoice.id)
        total_paid = sum((payment.amount for payment in payments), _ZERO)
        dates = [payment.payment_date for payment in payments if payment.payment_date is not None]
        return self._invoices.apply_payment_projection(
            invoice.id, total_paid, max(dates) if dates else None
        )

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    def get_outstanding_invoices(self) -> list[Invoice]:
        return self._invoices.get_outstanding_invoices()

    def get_outstanding_balance(self) -> Decimal:
        return sum((invoice.balance_due for invoice in self.get_outstanding_invoices()), _ZERO)

    def get_average_payment_days(self) -> Decimal:
        """Mean whole days from issue to payment over paid invoices, one decimal."""
        durations = []
        for invoice in self._invoices.list():
            if invoice.paid_at is None or invoice.issue_date is None:
                continue
            seconds = Decimal(str((invoice.paid_at - invoice.issue_date).total_seconds()))
            days = (seconds / _SECONDS_PER_DAY).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            durations.append(max(Decimal("0"), days))
        if not durations:
            return Decimal("0.0")
        mean = sum(durations, Decimal("0")) / len(durations)
        return mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
