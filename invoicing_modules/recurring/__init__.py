"""
Recurring Module (``invoicing_modules.recurring``).

Recurring billing schedules and ``RecurringBillingService``, which issues
invoices from them when the caller runs due schedules.
"""
