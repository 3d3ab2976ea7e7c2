"""
Invoicing Kernel

Shared infrastructure for the invoicing ledger:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with machine-readable codes
- Injectable clock and date coercion
- Key-addressed Record Store (in-memory and SQL-backed)
- Monotonic document sequences
"""

__version__ = "0.1.0"
