"""
Payments Module (``invoicing_modules.payments``).

The append-only payment ledger and ``PaymentService``, which validates
payments against the ledger and projects the result onto invoices.
"""
