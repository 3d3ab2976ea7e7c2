#!/usr/bin/env python3
"""
Operate an invoicing ledger stored in a SQL database.

Commands:
    export      Write a versioned JSON backup of the ledger.
    restore     Validate a backup file and restore it atomically.
    run-due     Issue invoices for every recurring schedule that is due.
    outstanding List invoices with a balance still owing.

Usage:
    python3 scripts/ledger_cli.py [--db-url URL] [--config PATH] <command> [options]

Examples:
    # Back up to a file
    python3 scripts/ledger_cli.py export --output backup.json

    # Restore (all collections or none)
    python3 scripts/ledger_cli.py restore --input backup.json

    # Run schedules due as of a given instant
    python3 scripts/ledger_cli.py run-due --as-of 2024-03-01T00:00:00+00:00

The database URL defaults to the INVOICING_DATABASE_URL environment
variable, then to a local SQLite file.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

DB_URL = os.environ.get("INVOICING_DATABASE_URL", "sqlite:///invoicing.db")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Export, restore and run recurring billing for an invoicing ledger.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--db-url",
        default=DB_URL,
        help=f"Database URL (default: {DB_URL!r}).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Ledger configuration YAML (default: INVOICING_CONFIG env or bundled default).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Emit DEBUG-level structured logs.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    export = commands.add_parser("export", help="Write a JSON backup.")
    export.add_argument("--output", required=True, type=Path, help="Backup file to write.")

    restore = commands.add_parser("restore", help="Restore a JSON backup.")
    restore.add_argument("--input", required=True, type=Path, help="Backup file to read.")

    run_due = commands.add_parser("run-due", help="Run every due recurring schedule.")
    run_due.add_argument(
        "--as-of",
        default=None,
        help="Reference instant (ISO-8601). Default: now.",
    )

    commands.add_parser("outstanding", help="List invoices with a balance owing.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    import logging

    from invoicing_config import get_active_config
    from invoicing_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
    from invoicing_kernel.exceptions import InvoicingError
    from invoicing_kernel.logging_config import configure_logging
    from invoicing_kernel.store.sql_store import SqlRecordStore
    from invoicing_services.ledger import InvoicingLedger

    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = get_active_config(args.config)
    except (OSError, ValueError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    init_engine_from_url(args.db_url)
    create_tables()
    ledger = InvoicingLedger(SqlRecordStore(get_session_factory()), config=config)

    try:
        if args.command == "export":
            snapshot = ledger.backups.write_backup(args.output)
            counts = ", ".join(
                f"{name}={len(value)}"
                for name, value in snapshot.data.items()
                if isinstance(value, list)
            )
            print(f"Wrote {args.output} (schema {snapshot.schema_version}; {counts})")
            return 0

        if args.command == "restore":
            if not args.input.is_file():
                print(f"ERROR: File not found: {args.input}", file=sys.stderr)
                return 1
            snapshot = ledger.backups.read_backup(args.input)
            ledger.backups.restore_all(snapshot)
            print(f"Restored backup exported at {snapshot.exported_at or '(unknown)'}")
            return 0

        if args.command == "run-due":
            results = ledger.recurring.execute_due_schedules(args.as_of)
            for result in results:
                print(
                    f"  {result.schedule.name}: issued {result.invoice.number} "
                    f"({result.invoice.total}); next run {result.schedule.next_run_date.date()}"
                )
            print(f"Ran {len(results)} schedule(s).")
            return 0

        if args.command == "outstanding":
            invoices = ledger.payments.get_outstanding_invoices()
            for invoice in invoices:
                print(
                    f"  {invoice.number:<12} {invoice.client_name:<30} "
                    f"{invoice.balance_due:>12} due {invoice.due_date.date()}"
                )
            print(f"Outstanding balance: {ledger.payments.get_outstanding_balance()}")
            return 0
    except InvoicingError as e:
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return 1

    return 2


if __name__ == "__main__":
    sys.exit(main())
