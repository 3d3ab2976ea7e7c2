"""
Reporting Module (``invoicing_modules.reporting``).

Read-only dashboard, monthly, GST and export projections.
"""
