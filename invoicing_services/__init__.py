"""
invoicing_services -- Package init and public API.

Responsibility:
    Cross-module services: the backup codec and the ``InvoicingLedger``
    composition root.

Architecture position:
    Services -- top layer.

    Dependency direction:
        invoicing_services/ -> invoicing_modules/  (allowed)
        invoicing_services/ -> invoicing_kernel/   (allowed)
        invoicing_modules/  -> invoicing_services/ (FORBIDDEN)
        invoicing_kernel/   -> invoicing_services/ (FORBIDDEN)
"""

from invoicing_services.backup_service import BackupService, BackupSnapshot
from invoicing_services.ledger import InvoicingLedger

__all__ = [
    "BackupService",
    "BackupSnapshot",
    "InvoicingLedger",
]
