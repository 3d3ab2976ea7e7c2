"""Tests for backup export, payload validation and atomic restore."""

import json
from dataclasses import replace
from decimal import Decimal

import pytest

from invoicing_kernel.exceptions import (
    BackupFormatError,
    RestoreFailedError,
    UnsupportedSchemaVersionError,
)
from invoicing_kernel.store.record_store import CollectionKey, InMemoryRecordStore
from invoicing_services.backup_service import SNAPSHOT_COLLECTIONS, BackupService
from invoicing_services.ledger import InvoicingLedger
from tests.conftest import CLIENT_INPUT, line

SNAPSHOT_KEYS = {"clients", "invoices", "quotes", "services", "payments", "settings"}


@pytest.fixture
def populated(ledger, client, make_invoice):
    """A ledger holding one of everything a snapshot carries, plus a schedule."""
    invoice = make_invoice()
    ledger.payments.record_payment(invoice.id, "100", "2024-01-03")
    ledger.quotes.create({"clientId": client.id, "lineItems": [line()]})
    ledger.catalog.create({"description": "Hedging", "unitPrice": "60"})
    ledger.settings.update({"businessName": "Acme Gardens"})
    ledger.recurring.create({"name": "Monthly", "clientId": client.id, "lineItems": [line()]})
    return ledger


class TestExport:
    def test_snapshot_shape(self, populated):
        snapshot = populated.backups.export_all()
        assert snapshot.schema_version == populated.backups.schema_version == 1
        assert snapshot.exported_at == "2024-01-01T12:00:00+00:00"
        assert set(snapshot.data) == SNAPSHOT_KEYS
        assert len(snapshot.collection(CollectionKey.PAYMENTS)) == 1
        assert snapshot.collection(CollectionKey.SETTINGS)["businessName"] == "Acme Gardens"

    def test_empty_store(self, ledger):
        data = ledger.backups.export_all().data
        assert data["settings"] == {}
        assert all(data[key] == [] for key in SNAPSHOT_KEYS - {"settings"})

    def test_missing_keys_filled(self, store, clock):
        store.save(CollectionKey.CLIENTS, [{"id": "c1", "name": "Old"}, "junk"])
        clients = BackupService(store, clock).export_all().data["clients"]
        assert len(clients) == 1
        assert clients[0]["id"] == "c1"
        assert clients[0]["prefix"] == ""
        assert clients[0]["email"] == ""

    def test_dumps_is_json(self, populated):
        backups = populated.backups
        decoded = json.loads(backups.dumps(backups.export_all()))
        assert decoded["schemaVersion"] == 1
        assert set(decoded["data"]) == SNAPSHOT_KEYS


class TestParsePayload:
    @pytest.mark.parametrize(
        "payload",
        [
            b"\xff\xfe",
            "   ",
            "{not json",
            "[1, 2]",
            {"data": {}},
            {"schemaVersion": "1", "data": {}},
            {"schemaVersion": True, "data": {}},
            {"schemaVersion": 0, "data": {}},
            {"schemaVersion": 1},
            {"schemaVersion": 1, "data": []},
            {"schemaVersion": 1, "data": {"clients": {}}},
            {"schemaVersion": 1, "data": {"settings": []}},
        ],
    )
    def test_rejects_malformed(self, ledger, payload):
        with pytest.raises(BackupFormatError):
            ledger.backups.parse_backup_payload(payload)

    def test_rejects_newer_schema(self, ledger):
        newer = ledger.backups.schema_version + 1
        with pytest.raises(UnsupportedSchemaVersionError) as exc_info:
            ledger.backups.parse_backup_payload({"schemaVersion": newer, "data": {}})
        assert exc_info.value.supported_version == ledger.backups.schema_version
        assert exc_info.value.code == "UNSUPPORTED_SCHEMA_VERSION"

    def test_missing_collections_default_empty(self, ledger):
        snapshot = ledger.backups.parse_backup_payload('{"schemaVersion": 1, "data": {}}')
        assert snapshot.data["invoices"] == []
        assert snapshot.data["settings"] == {}
        assert snapshot.exported_at == ""

    def test_configured_schema_version(self, store, clock, config):
        backups = BackupService(store, clock, replace(config.backup, schema_version=2))
        snapshot = backups.parse_backup_payload({"schemaVersion": 2, "data": {}})
        assert snapshot.schema_version == 2
        assert backups.export_all().schema_version == 2
        with pytest.raises(UnsupportedSchemaVersionError):
            backups.parse_backup_payload({"schemaVersion": 3, "data": {}})


class TestRestore:
    def test_round_trip_into_fresh_store(self, populated, config, clock):
        text = populated.backups.dumps(populated.backups.export_all())
        target = InvoicingLedger(InMemoryRecordStore(), config=config, clock=clock)

        target.backups.restore_all(target.backups.parse_backup_payload(text))

        (invoice,) = target.invoices.list()
        assert invoice.amount_paid == Decimal("100.00")
        assert invoice.status.value == "partial"
        assert target.clients.list() == populated.clients.list()
        assert target.settings.get().business_name == "Acme Gardens"
        assert len(target.quotes.list()) == 1
        assert len(target.catalog.list()) == 1

    def test_same_store_round_trip_keeps_collections(self, populated):
        store = populated.store
        before = {key: store.load(key) for key in SNAPSHOT_COLLECTIONS}

        populated.backups.restore_all(populated.backups.export_all())

        assert {key: store.load(key) for key in SNAPSHOT_COLLECTIONS} == before

    def test_empty_store_round_trip_writes_nothing(self, store, clock):
        backups = BackupService(store, clock)
        backups.restore_all(backups.parse_backup_payload(backups.dumps(backups.export_all())))
        assert all(store.load(key) is None for key in SNAPSHOT_COLLECTIONS)
        assert store.keys() == []

    def test_schedules_and_counters_untouched(self, populated, config, clock):
        snapshot = populated.backups.export_all()
        target = InvoicingLedger(InMemoryRecordStore(), config=config, clock=clock)
        client = target.clients.create(CLIENT_INPUT)
        target.recurring.create({"name": "Kept", "clientId": client.id, "lineItems": [line()]})
        counters = target.store.load(CollectionKey.SEQUENCES)

        target.backups.restore_all(snapshot)

        assert [s.name for s in target.recurring.list()] == ["Kept"]
        assert target.store.load(CollectionKey.SEQUENCES) == counters

    def test_restored_invoice_does_not_reuse_number(self, populated, config, clock):
        target = InvoicingLedger(InMemoryRecordStore(), config=config, clock=clock)
        target.backups.restore_all(populated.backups.export_all())
        client_id = target.clients.list()[0].id
        invoice = target.invoices.create({"clientId": client_id, "lineItems": [line()]})
        assert invoice.number == "ACM-0002"

    def test_failed_write_rolls_back(self, populated, flaky_ledger, flaky_store, captured_logs):
        original = flaky_ledger.clients.create({**CLIENT_INPUT, "name": "Before restore"})
        flaky_store.refuse.add("payments")
        flaky_store.fail_once = True

        with pytest.raises(RestoreFailedError) as exc_info:
            flaky_ledger.backups.restore_all(populated.backups.export_all())

        assert exc_info.value.collection == "payments"
        assert [c.id for c in flaky_ledger.clients.list()] == [original.id]
        assert flaky_store.load(CollectionKey.INVOICES) is None
        assert flaky_ledger.quotes.list() == []
        messages = [r["message"] for r in captured_logs()]
        assert "backup_restore_failed" in messages
        assert "backup_restore_rolled_back" in messages

    def test_last_collection_failure_restores_everything(self, populated, flaky_ledger, flaky_store):
        client = flaky_ledger.clients.create({**CLIENT_INPUT, "name": "Before restore"})
        invoice = flaky_ledger.invoices.create({"clientId": client.id, "lineItems": [line()]})
        flaky_ledger.payments.record_payment(invoice.id, "50", "2024-01-02")
        flaky_ledger.catalog.create({"description": "Mowing", "unitPrice": "45"})
        flaky_ledger.settings.update({"businessName": "Before restore"})
        before = {key: flaky_store.load(key) for key in SNAPSHOT_COLLECTIONS}
        last = SNAPSHOT_COLLECTIONS[-1]
        flaky_store.refuse.add(last.value)
        flaky_store.fail_once = True

        with pytest.raises(RestoreFailedError) as exc_info:
            flaky_ledger.backups.restore_all(populated.backups.export_all())

        assert last == CollectionKey.SETTINGS
        assert exc_info.value.collection == last.value
        assert {key: flaky_store.load(key) for key in SNAPSHOT_COLLECTIONS} == before

    def test_unreadable_collection_refuses_restore(
        self, populated, flaky_ledger, flaky_store, captured_logs
    ):
        original = flaky_ledger.clients.create({**CLIENT_INPUT, "name": "Keep me"})
        stored = flaky_store.load(CollectionKey.CLIENTS)
        flaky_store.unreadable.add("clients")
        flaky_store.refuse.add("settings")

        with pytest.raises(RestoreFailedError) as exc_info:
            flaky_ledger.backups.restore_all(populated.backups.export_all())

        assert exc_info.value.collection == "clients"
        assert exc_info.value.reason == "could not be read"
        flaky_store.unreadable.clear()
        assert flaky_store.load(CollectionKey.CLIENTS) == stored
        assert [c.id for c in flaky_ledger.clients.list()] == [original.id]
        assert flaky_store.load(CollectionKey.INVOICES) is None
        messages = [r["message"] for r in captured_logs()]
        assert "backup_restore_refused" in messages
        assert "backup_restore_failed" not in messages

    def test_incomplete_rollback_is_critical(self, populated, flaky_ledger, flaky_store, captured_logs):
        flaky_ledger.settings.update({"businessName": "Before restore"})
        flaky_store.refuse.add("settings")

        with pytest.raises(RestoreFailedError):
            flaky_ledger.backups.restore_all(populated.backups.export_all())

        critical = [r for r in captured_logs() if r["message"] == "backup_rollback_incomplete"]
        assert critical and critical[0]["collections"] == ["settings"]
        assert critical[0]["level"] == "CRITICAL"


class TestBackupFiles:
    def test_write_and_read(self, populated, tmp_path):
        path = tmp_path / "backup.json"
        written = populated.backups.write_backup(path)
        assert populated.backups.read_backup(path) == written

    def test_read_corrupt_file(self, ledger, tmp_path):
        path = tmp_path / "backup.json"
        path.write_text("{oops", encoding="utf-8")
        with pytest.raises(BackupFormatError):
            ledger.backups.read_backup(path)
