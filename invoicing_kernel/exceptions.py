"""
Typed Exception Hierarchy for the Invoicing Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (a dashboard, the CLI, a scheduled job) must react differently to a
bad form field, a missing client and a broken backup file. Matching on
message text is brittle, so every error here is:
  1. A TYPED class (catch by type, not message)
  2. Tagged with a CODE attribute (machine-readable, API-safe)
  3. Carrying structured DATA as attributes (not just a message string)

Example:
    try:
        payments.record_payment(invoice_id, Decimal("231.00"))
    except OverpaymentError as e:
        show_error(f"Only {e.outstanding} is outstanding")
        api_response(code=e.code, outstanding=str(e.outstanding))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InvoicingError (base)
    |
    +-- ValidationError
    |   +-- MissingFieldError
    |   +-- InvalidEmailError
    |   +-- InvalidAmountError
    |   +-- MissingLineItemsError
    |
    +-- RecordNotFoundError
    |   +-- ClientNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- QuoteNotFoundError
    |   +-- ScheduleNotFoundError
    |   +-- ServiceNotFoundError
    |
    +-- PaymentError
    |   +-- OverpaymentError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |
    +-- ScheduleError
    |   +-- ScheduleAdvanceError
    |
    +-- FormatError
    |   +-- BackupFormatError
    |   +-- UnsupportedSchemaVersionError
    |
    +-- StorageError
        +-- PersistenceFailedError
        +-- RestoreFailedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | MISSING_FIELD               | Required field empty or absent
                | INVALID_EMAIL               | Email does not look like an address
                | INVALID_AMOUNT              | Payment amount <= 0 or unparsable
                | MISSING_LINE_ITEMS          | No line item survived sanitation
----------------|-----------------------------|-----------------------------------------
Reference       | CLIENT_NOT_FOUND            | Client id does not resolve
                | INVOICE_NOT_FOUND           | Invoice id does not resolve
                | QUOTE_NOT_FOUND             | Quote id does not resolve
                | SCHEDULE_NOT_FOUND          | Recurring schedule id does not resolve
                | SERVICE_NOT_FOUND           | Catalog service id does not resolve
----------------|-----------------------------|-----------------------------------------
Payment         | OVERPAYMENT                 | Amount exceeds outstanding balance
----------------|-----------------------------|-----------------------------------------
Workflow        | INVALID_TRANSITION          | Status change not allowed by workflow
----------------|-----------------------------|-----------------------------------------
Schedule        | SCHEDULE_ADVANCE_EXHAUSTED  | Next run never passed the reference
----------------|-----------------------------|-----------------------------------------
Format          | BACKUP_FORMAT_INVALID       | Backup payload malformed
                | UNSUPPORTED_SCHEMA_VERSION  | Backup newer than this build
----------------|-----------------------------|-----------------------------------------
Storage         | PERSISTENCE_FAILED          | Record store refused a save
                | RESTORE_FAILED              | Restore refused or rolled back

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Validation and reference errors are raised BEFORE any record store write.
   Catching one never requires cleanup.

2. FormatError is raised while parsing a backup, before restore touches
   the store.

3. StorageError means the store said no. Restore has already rolled back
   every collection when RestoreFailedError reaches the caller.
"""

from __future__ import annotations

from decimal import Decimal


class InvoicingError(Exception):
    """
    Base exception for all invoicing ledger errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "INVOICING_ERROR"


# Validation exceptions


class ValidationError(InvoicingError):
    """Base exception for rejected caller input."""

    code: str = "VALIDATION_FAILED"


class MissingFieldError(ValidationError):
    """A required field is missing or blank."""

    code: str = "MISSING_FIELD"

    def __init__(self, entity: str, field: str):
        self.entity = entity
        self.field = field
        super().__init__(f"{entity} {field} is required")


class InvalidEmailError(ValidationError):
    """Email address is present but malformed."""

    code: str = "INVALID_EMAIL"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Invalid email address: {email}")


class InvalidAmountError(ValidationError):
    """Payment amount is not a positive number."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__("amount must be greater than zero")


class MissingLineItemsError(ValidationError):
    """No line item survived sanitation."""

    code: str = "MISSING_LINE_ITEMS"

    def __init__(self, document_type: str):
        self.document_type = document_type
        super().__init__("at least one line item is required")


# Reference exceptions


class RecordNotFoundError(InvoicingError):
    """Base exception for ids that do not resolve."""

    code: str = "RECORD_NOT_FOUND"


class ClientNotFoundError(RecordNotFoundError):
    """Client with given ID was not found."""

    code: str = "CLIENT_NOT_FOUND"

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"No client found for id {client_id}")


class InvoiceNotFoundError(RecordNotFoundError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class QuoteNotFoundError(RecordNotFoundError):
    """Quote with given ID was not found."""

    code: str = "QUOTE_NOT_FOUND"

    def __init__(self, quote_id: str):
        self.quote_id = quote_id
        super().__init__(f"Quote not found: {quote_id}")


class ScheduleNotFoundError(RecordNotFoundError):
    """Recurring schedule with given ID was not found."""

    code: str = "SCHEDULE_NOT_FOUND"

    def __init__(self, schedule_id: str):
        self.schedule_id = schedule_id
        super().__init__(f"Recurring schedule not found: {schedule_id}")


class ServiceNotFoundError(RecordNotFoundError):
    """Catalog service with given ID was not found."""

    code: str = "SERVICE_NOT_FOUND"

    def __init__(self, service_id: str):
        self.service_id = service_id
        super().__init__(f"Service not found: {service_id}")


# Payment exceptions


class PaymentError(InvoicingError):
    """Base exception for payment application errors."""

    code: str = "PAYMENT_ERROR"


class OverpaymentError(PaymentError):
    """Payment amount is larger than what the ledger says is outstanding."""

    code: str = "OVERPAYMENT"

    def __init__(self, invoice_id: str, amount: Decimal, outstanding: Decimal):
        self.invoice_id = invoice_id
        self.amount = amount
        self.outstanding = outstanding
        super().__init__("amount exceeds outstanding balance")


# Workflow exceptions


class WorkflowError(InvoicingError):
    """Base exception for document status workflow errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """Requested status change is not a transition of the workflow."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, workflow: str, from_state: str, to_state: str):
        self.workflow = workflow
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"{workflow}: cannot move from {from_state} to {to_state}"
        )


# Schedule exceptions


class ScheduleError(InvoicingError):
    """Base exception for recurring schedule errors."""

    code: str = "SCHEDULE_ERROR"


class ScheduleAdvanceError(ScheduleError):
    """Advancing a schedule did not pass the reference instant in time."""

    code: str = "SCHEDULE_ADVANCE_EXHAUSTED"

    def __init__(self, reference: str, max_iterations: int):
        self.reference = reference
        self.max_iterations = max_iterations
        super().__init__(
            f"Schedule did not advance past {reference} "
            f"within {max_iterations} iterations"
        )


# Format exceptions


class FormatError(InvoicingError):
    """Base exception for unreadable payloads."""

    code: str = "FORMAT_ERROR"


class BackupFormatError(FormatError):
    """Backup payload is malformed."""

    code: str = "BACKUP_FORMAT_INVALID"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid backup payload: {reason}")


class UnsupportedSchemaVersionError(FormatError):
    """Backup was written by a newer schema than this build understands."""

    code: str = "UNSUPPORTED_SCHEMA_VERSION"

    def __init__(self, schema_version: int, supported_version: int):
        self.schema_version = schema_version
        self.supported_version = supported_version
        super().__init__(
            f"Backup schema version {schema_version} is newer than "
            f"supported version {supported_version}"
        )


# Storage exceptions


class StorageError(InvoicingError):
    """Base exception for record store failures."""

    code: str = "STORAGE_ERROR"


class PersistenceFailedError(StorageError):
    """The record store refused to save a collection."""

    code: str = "PERSISTENCE_FAILED"

    def __init__(self, collection: str):
        self.collection = collection
        super().__init__(f"Failed to persist collection: {collection}")


class RestoreFailedError(StorageError):
    """Restore could not complete; nothing from the snapshot remains written."""

    code: str = "RESTORE_FAILED"

    def __init__(self, collection: str, reason: str | None = None):
        self.collection = collection
        self.reason = reason
        if reason:
            message = f"Restore refused: {collection} {reason}; nothing was written"
        else:
            message = f"Restore failed while writing {collection}; changes rolled back"
        super().__init__(message)
