"""
invoicing_services.ledger -- composition root for the invoicing ledger.

Responsibility:
    Creates every manager exactly once against one record store, clock and
    configuration, and wires them together.  No manager constructs another
    manager internally.

Architecture position:
    Services -- top of the stack.  Callers (CLI, web handlers, tests)
    build an ``InvoicingLedger`` and use its attributes.

Invariants enforced:
    - Single-instance lifecycle: every manager in one ledger shares the
      same store, clock and config.

Usage:
    from invoicing_kernel.store.record_store import InMemoryRecordStore
    from invoicing_services.ledger import InvoicingLedger

    ledger = InvoicingLedger(InMemoryRecordStore())
    client = ledger.clients.create({...})
    invoice = ledger.invoices.create({"clientId": client.id, "lineItems": [...]})
    ledger.payments.record_payment(invoice.id, "100.00")
"""

from __future__ import annotations

from invoicing_config import get_active_config
from invoicing_config.schema import LedgerConfig
from invoicing_kernel.domain.clock import Clock, SystemClock
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.services.sequence_service import DocumentSequenceService
from invoicing_kernel.store.record_store import RecordStore
from invoicing_modules.catalog.service import ServiceCatalog
from invoicing_modules.clients.service import ClientService
from invoicing_modules.documents.normalizer import DocumentNormalizer
from invoicing_modules.invoices.service import InvoiceService
from invoicing_modules.payments.service import PaymentService
from invoicing_modules.quotes.service import QuoteService
from invoicing_modules.recurring.service import RecurringBillingService
from invoicing_modules.reporting.service import ReportingService
from invoicing_modules.settings.service import SettingsService
from invoicing_services.backup_service import BackupService

logger = get_logger("services.ledger")


class InvoicingLedger:
    """Central factory for the ledger's managers.

    Contract:
        Receives a RecordStore and optional LedgerConfig/Clock.  When no
        config is given the active configuration is loaded.

    Non-goals:
        - Does NOT run recurring schedules on its own; callers invoke
          ``recurring.execute_due_schedules()``.
    """

    def __init__(
        self,
        store: RecordStore,
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.config = config or get_active_config()
        self.clock = clock or SystemClock()

        # Order matters: each manager depends only on those above it.
        self.sequences = DocumentSequenceService(store)
        self.settings = SettingsService(store, self.config.defaults, self.clock)
        self.clients = ClientService(store, self.clock)
        self.catalog = ServiceCatalog(store, self.clock)
        self.normalizer = DocumentNormalizer(
            self.clients,
            self.settings,
            self.sequences,
            self.config.documents,
            self.clock,
        )
        self.invoices = InvoiceService(store, self.normalizer, self.clock)
        self.quotes = QuoteService(store, self.normalizer, self.invoices, self.clock)
        self.payments = PaymentService(store, self.invoices, self.clock)
        self.recurring = RecurringBillingService(
            store,
            self.normalizer,
            self.invoices,
            self.config.recurring,
            self.clock,
        )
        self.reports = ReportingService(self.invoices, self.quotes, self.payments)
        self.backups = BackupService(store, self.clock, self.config.backup)

        logger.info(
            "ledger_initialized",
            extra={
                "store": type(store).__name__,
                "config_id": self.config.config_id,
                "config_version": self.config.version,
            },
        )
