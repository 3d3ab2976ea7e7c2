"""
Quotes Module (``invoicing_modules.quotes``).

Quote models, the decision workflow and ``QuoteService`` (CRUD, accept,
decline, one-way conversion into an invoice).
"""
