"""
Pytest fixtures for the invoicing ledger test suite.

Provides:
- Structured logging configured once per session
- A deterministic clock and an in-memory record store per test
- An ``InvoicingLedger`` wired against both
- Helpers that create a valid client and a simple invoice

Every service test runs against ``InMemoryRecordStore``; the SQL store has
its own tests under ``tests/store``.
"""

import json
import logging
from io import StringIO

import pytest

from invoicing_config import get_active_config
from invoicing_kernel.domain.clock import DeterministicClock
from invoicing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from invoicing_kernel.store.record_store import InMemoryRecordStore, collection_name
from invoicing_services.ledger import InvoicingLedger


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture invoicing logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.payments.record_payment(...)
            logs = captured_logs()
            assert any(r["message"] == "payment_recorded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("invoicing")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Ledger fixtures
# =============================================================================


@pytest.fixture
def clock():
    """Deterministic clock fixed at 2024-01-01T12:00:00Z."""
    return DeterministicClock()


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture(scope="session")
def config():
    return get_active_config()


@pytest.fixture
def ledger(store, config, clock):
    return InvoicingLedger(store, config=config, clock=clock)


CLIENT_INPUT = {
    "name": "Jane Citizen",
    "businessName": "Acme Pty Ltd",
    "address": "1 Main St, Sydney NSW",
    "abn": "12 345 678 901",
    "contact": "Jane Citizen",
    "prefix": "acm",
    "email": "Jane@Acme.example",
}


@pytest.fixture
def make_client(ledger):
    """Factory creating a valid client; keyword overrides replace fields."""

    def _make(**overrides):
        return ledger.clients.create({**CLIENT_INPUT, **overrides})

    return _make


@pytest.fixture
def client(make_client):
    return make_client()


def line(description="Design work", quantity=2, unit_price="150", apply_gst=False):
    """Raw line-item input in record form."""
    return {
        "description": description,
        "quantity": quantity,
        "unitPrice": unit_price,
        "applyGst": apply_gst,
    }


@pytest.fixture
def make_invoice(ledger, client):
    """Factory creating an invoice for the default client."""

    def _make(*lines, **fields):
        return ledger.invoices.create(
            {"clientId": client.id, "lineItems": list(lines) or [line()], **fields}
        )

    return _make


class FlakyStore(InMemoryRecordStore):
    """In-memory store that refuses saves for the collections in ``refuse``.

    With ``fail_once`` set, each refused collection recovers after its first
    refusal, so rollbacks can write it again.  Collections in ``unreadable``
    are still stored but load as ``None``.
    """

    def __init__(self, initial=None):
        super().__init__(initial)
        self.refuse: set[str] = set()
        self.unreadable: set[str] = set()
        self.fail_once = False

    def load(self, key):
        if collection_name(key) in self.unreadable:
            return None
        return super().load(key)

    def save(self, key, value):
        name = collection_name(key)
        if name in self.refuse:
            if self.fail_once:
                self.refuse.discard(name)
            return False
        return super().save(key, value)


@pytest.fixture
def flaky_store():
    return FlakyStore()


@pytest.fixture
def flaky_ledger(flaky_store, config, clock):
    return InvoicingLedger(flaky_store, config=config, clock=clock)
