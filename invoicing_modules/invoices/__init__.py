"""
Invoices Module (``invoicing_modules.invoices``).

Invoice models, the payment-status workflow and ``InvoiceService``, which
owns the invoice lifecycle: create, update, mark paid, remove and the
payment projection written by the payment engine.
"""
