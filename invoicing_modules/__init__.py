"""
Invoicing Modules.

Domain managers over the invoicing kernel and engines.
Each module contains:
- Domain models (the nouns)
- Workflows (state machines), where the module has statuses
- A service that owns one record collection

Modules:
- Clients: billed clients and their document prefixes
- Catalog: reusable billable services
- Settings: business identity, prefixes, GST rate
- Documents: line items and the invoice/quote normalizer
- Invoices: invoice lifecycle and payment projection
- Quotes: quote decisions and conversion to invoices
- Payments: the append-only payment ledger
- Recurring: recurring billing schedules
- Reporting: dashboard, monthly, GST and export projections
"""
