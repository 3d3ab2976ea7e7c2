"""
Invoice Workflows (``invoicing_modules.invoices.workflows``).

Responsibility
--------------
Declares the invoice payment-status state machine and the single function
that derives status from the payment projection.

Invoice status is never set directly: it follows from ``amount_paid``
against ``total``.  ``INVOICE_WORKFLOW`` documents the moves that result
(payments move forward; removing a payment or raising the total moves
back).

Invariants enforced
-------------------
* ``balance_due == 0``  -> ``paid`` (a zero-total invoice is paid).
* ``amount_paid > 0``   -> ``partial``.
* otherwise             -> ``unpaid``.
"""

from __future__ import annotations

from decimal import Decimal

from invoicing_kernel.domain.workflow import Guard, Transition, Workflow
from invoicing_kernel.logging_config import get_logger
from invoicing_modules.invoices.models import InvoiceStatus

logger = get_logger("modules.invoices.workflows")

_ZERO = Decimal("0")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

BALANCE_CLEARED = Guard(
    name="balance_cleared",
    description="Recorded payments cover the invoice total",
)

PAYMENT_RECORDED = Guard(
    name="payment_recorded",
    description="At least one payment is recorded against the invoice",
)

PAYMENTS_REMOVED = Guard(
    name="payments_removed",
    description="Payment ledger for the invoice is empty",
)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Invoice payment status derived from the payment ledger",
    initial_state=InvoiceStatus.UNPAID.value,
    states=tuple(status.value for status in InvoiceStatus),
    transitions=(
        Transition("unpaid", "partial", action="record_payment", guard=PAYMENT_RECORDED),
        Transition("unpaid", "paid", action="settle", guard=BALANCE_CLEARED),
        Transition("partial", "paid", action="settle", guard=BALANCE_CLEARED),
        Transition("partial", "unpaid", action="remove_payment", guard=PAYMENTS_REMOVED),
        Transition("paid", "partial", action="reopen", guard=PAYMENT_RECORDED),
        Transition("paid", "unpaid", action="reopen", guard=PAYMENTS_REMOVED),
    ),
)

logger.info(
    "invoice_workflow_defined",
    extra={
        "workflow": INVOICE_WORKFLOW.name,
        "states": len(INVOICE_WORKFLOW.states),
        "transitions": len(INVOICE_WORKFLOW.transitions),
    },
)


def derive_payment_state(total: Decimal, amount_paid: Decimal) -> tuple[InvoiceStatus, Decimal]:
    """Return ``(status, balance_due)`` for a total and the amount paid against it."""
    balance_due = max(_ZERO, total - amount_paid)
    if balance_due == _ZERO:
        return InvoiceStatus.PAID, balance_due
    if amount_paid > _ZERO:
        return InvoiceStatus.PARTIAL, balance_due
    return InvoiceStatus.UNPAID, balance_due
