"""
invoicing_services.backup_service -- versioned export and atomic restore.

Responsibility:
    Serialize the whole dataset (clients, invoices, quotes, services,
    payments, settings) into a versioned JSON snapshot, validate snapshots
    on the way back in, and restore them all-or-nothing.

Architecture position:
    Services -- reads and writes the record store directly.  Export does
    not run business validation; import re-validates the snapshot shape
    and schema version before anything is written.

Invariants enforced:
    - A snapshot is accepted only when ``schemaVersion`` is an integer no
      newer than the supported version.
    - Restore is atomic from the caller's view: if any collection write
      fails, every collection is put back to its pre-restore value.
    - Recurring schedules and document counters are not part of a snapshot;
      restore leaves them untouched.

Failure modes:
    - BackupFormatError -- malformed JSON, non-object root, bad
      ``schemaVersion`` or bad ``data`` shape.
    - UnsupportedSchemaVersionError -- snapshot newer than supported.
    - RestoreFailedError -- a collection write returned False (rolled back),
      or a stored collection could not be read (nothing written).
    - Any exception raised by the store during restore propagates after
      rollback.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from invoicing_config.schema import BackupRules
from invoicing_kernel.domain.clock import Clock, SystemClock
from invoicing_kernel.domain.dates import to_iso
from invoicing_kernel.domain.records import clean_str
from invoicing_kernel.exceptions import (
    BackupFormatError,
    RestoreFailedError,
    UnsupportedSchemaVersionError,
)
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.store.record_store import CollectionKey, RecordStore

logger = get_logger("services.backup")

# Record collections in a snapshot, with the keys every record carries and
# the value used when a key is missing.
RECORD_COLLECTIONS: dict[CollectionKey, dict[str, Any]] = {
    CollectionKey.CLIENTS: {
        "id": "", "name": "", "businessName": "", "address": "", "abn": "",
        "contact": "", "prefix": "", "email": "", "createdAt": "", "updatedAt": "",
    },
    CollectionKey.INVOICES: {
        "id": "", "number": "", "clientId": "", "clientName": "",
        "clientBusinessName": "", "issueDate": "", "dueDate": "", "paidAt": "",
        "status": "unpaid", "notes": "", "lineItems": [], "subtotal": "0.00",
        "gstTotal": "0.00", "total": "0.00", "amountPaid": "0.00",
        "balanceDue": "0.00", "createdAt": "", "updatedAt": "",
    },
    CollectionKey.QUOTES: {
        "id": "", "number": "", "clientId": "", "clientName": "",
        "clientBusinessName": "", "issueDate": "", "validUntil": "",
        "status": "pending", "decisionDate": "", "convertedInvoiceId": "",
        "notes": "", "lineItems": [], "subtotal": "0.00", "gstTotal": "0.00",
        "total": "0.00", "createdAt": "", "updatedAt": "",
    },
    CollectionKey.SERVICES: {
        "id": "", "description": "", "unitPrice": "0.00", "createdAt": "", "updatedAt": "",
    },
    CollectionKey.PAYMENTS: {
        "id": "", "invoiceId": "", "invoiceNumber": "", "clientId": "",
        "clientName": "", "amount": "0.00", "recordedAt": "", "paymentDate": "",
        "notes": "",
    },
}

SNAPSHOT_COLLECTIONS: tuple[CollectionKey, ...] = (*RECORD_COLLECTIONS, CollectionKey.SETTINGS)


@dataclass(frozen=True)
class BackupSnapshot:
    """A versioned copy of every snapshot collection."""
    schema_version: int
    exported_at: str
    data: dict[str, Any] = field(default_factory=dict)

    def collection(self, key: CollectionKey) -> Any:
        return self.data.get(key.value)

    def to_record(self) -> dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "exportedAt": self.exported_at,
            "data": self.data,
        }


def _shape_record(record: dict[str, Any], expected: dict[str, Any]) -> dict[str, Any]:
    shaped = dict(record)
    for key, default in expected.items():
        if key not in shaped:
            shaped[key] = list(default) if isinstance(default, list) else default
    return shaped


def _shape_records(value: Any, expected: dict[str, Any]) -> list[dict[str, Any]]:
    return [_shape_record(record, expected) for record in value if isinstance(record, dict)]


class BackupService:
    """
    Export, validate and restore full-dataset snapshots.

    Usage:
        backups = BackupService(store, clock)
        snapshot = backups.export_all()
        text = backups.dumps(snapshot)
        backups.restore_all(backups.parse_backup_payload(text))
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock | None = None,
        rules: BackupRules | None = None,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._schema_version = (rules or BackupRules()).schema_version

    @property
    def schema_version(self) -> int:
        return self._schema_version

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export_all(self) -> BackupSnapshot:
        data: dict[str, Any] = {}
        for key, expected in RECORD_COLLECTIONS.items():
            value = self._store.load(key)
            data[key.value] = _shape_records(value, expected) if isinstance(value, list) else []
        settings = self._store.load(CollectionKey.SETTINGS)
        data[CollectionKey.SETTINGS.value] = dict(settings) if isinstance(settings, dict) else {}

        snapshot = BackupSnapshot(
            schema_version=self._schema_version,
            exported_at=to_iso(self._clock.now_utc()),
            data=data,
        )
        logger.info(
            "backup_exported",
            extra={
                "schema_version": snapshot.schema_version,
                "counts": {key.value: len(data[key.value]) for key in RECORD_COLLECTIONS},
            },
        )
        return snapshot

    def dumps(self, snapshot: BackupSnapshot) -> str:
        return json.dumps(snapshot.to_record(), indent=2)

    def write_backup(self, path: Path | str) -> BackupSnapshot:
        snapshot = self.export_all()
        Path(path).write_text(self.dumps(snapshot), encoding="utf-8")
        logger.info("backup_written", extra={"path": str(path)})
        return snapshot

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    def parse_backup_payload(self, raw: str | bytes | Mapping[str, Any]) -> BackupSnapshot:
        """Validate a backup payload and return it as a shaped snapshot."""
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise BackupFormatError("payload is not valid UTF-8") from exc
        if isinstance(raw, str):
            if not raw.strip():
                raise BackupFormatError("payload is empty")
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise BackupFormatError(f"malformed JSON: {exc.msg}") from exc
        if not isinstance(raw, Mapping):
            raise BackupFormatError("root must be a JSON object")

        schema_version = raw.get("schemaVersion")
        if not isinstance(schema_version, int) or isinstance(schema_version, bool):
            raise BackupFormatError("schemaVersion must be an integer")
        if schema_version < 1:
            raise BackupFormatError(f"schemaVersion {schema_version} is not valid")
        if schema_version > self._schema_version:
            raise UnsupportedSchemaVersionError(schema_version, self._schema_version)

        payload = raw.get("data")
        if not isinstance(payload, Mapping):
            raise BackupFormatError("data must be a JSON object")

        data: dict[str, Any] = {}
        for key, expected in RECORD_COLLECTIONS.items():
            value = payload.get(key.value, [])
            if not isinstance(value, list):
                raise BackupFormatError(f"data.{key.value} must be an array")
            data[key.value] = _shape_records(value, expected)
        settings = payload.get(CollectionKey.SETTINGS.value, {})
        if not isinstance(settings, Mapping):
            raise BackupFormatError("data.settings must be a JSON object")
        data[CollectionKey.SETTINGS.value] = dict(settings)

        return BackupSnapshot(
            schema_version=schema_version,
            exported_at=clean_str(raw.get("exportedAt")),
            data=data,
        )

    def read_backup(self, path: Path | str) -> BackupSnapshot:
        return self.parse_backup_payload(Path(path).read_bytes())

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    def restore_all(self, snapshot: BackupSnapshot) -> None:
        """Write every snapshot collection, or none of them.

        Refuses to start while any stored collection cannot be read, since
        its previous value could not be put back.  An empty collection is
        not written over a collection the store has never held.
        """
        previous = {key: self._store.load(key) for key in SNAPSHOT_COLLECTIONS}
        unreadable = [
            key.value
            for key, value in previous.items()
            if value is None and self._store.exists(key)
        ]
        if unreadable:
            logger.error("backup_restore_refused", extra={"unreadable": unreadable})
            raise RestoreFailedError(unreadable[0], reason="could not be read")

        written: list[CollectionKey] = []
        try:
            for key in SNAPSHOT_COLLECTIONS:
                default: Any = {} if key == CollectionKey.SETTINGS else []
                value = snapshot.data.get(key.value, default)
                if previous[key] is None and not value:
                    continue
                if not self._store.save(key, value):
                    raise RestoreFailedError(key.value)
                written.append(key)
        except Exception as exc:
            logger.error(
                "backup_restore_failed",
                extra={
                    "written": [key.value for key in written],
                    "error_type": type(exc).__name__,
                },
            )
            self._rollback(previous)
            raise

        logger.info(
            "backup_restored",
            extra={
                "schema_version": snapshot.schema_version,
                "exported_at": snapshot.exported_at,
            },
        )

    def _rollback(self, previous: dict[CollectionKey, Any]) -> None:
        failed = []
        for key, value in previous.items():
            ok = self._store.remove(key) if value is None else self._store.save(key, value)
            if not ok:
                failed.append(key.value)
        if failed:
            logger.critical("backup_rollback_incomplete", extra={"collections": failed})
        else:
            logger.warning(
                "backup_restore_rolled_back",
                extra={"collections": [key.value for key in previous]},
            )
