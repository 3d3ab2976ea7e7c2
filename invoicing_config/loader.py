"""
Configuration Loader (``invoicing_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the typed
``invoicing_config.schema`` dataclasses.  Runtime callers use
``invoicing_config.get_active_config()``; this module is the parsing
machinery behind it.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Out-of-range values raise ``ValueError`` with a descriptive message.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from invoicing_config.schema import (
    BackupRules,
    DocumentRules,
    FrequencyDef,
    IntegerBounds,
    LedgerConfig,
    RecurringRules,
    SettingsDefaults,
)

_FREQUENCY_UNITS = ("days", "months")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document root is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: configuration root must be a mapping")
    return data


def parse_decimal(value: Any, name: str) -> Decimal:
    """Parse a YAML scalar into Decimal via its string form (never float math)."""
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name}: not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"{name}: must be finite")
    return result


def _positive_int(value: Any, name: str, *, allow_zero: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name}: expected an integer, got {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValueError(f"{name}: must be {'>= 0' if allow_zero else '> 0'}")
    return value


def parse_defaults(data: dict[str, Any]) -> SettingsDefaults:
    gst_rate = parse_decimal(data.get("gst_rate", "0.1"), "defaults.gst_rate")
    if gst_rate < 0 or gst_rate > 1:
        raise ValueError("defaults.gst_rate: must be within [0, 1]")
    return SettingsDefaults(
        business_name=str(data.get("business_name", "")),
        abn=str(data.get("abn", "")),
        contact_name=str(data.get("contact_name", "")),
        contact_email=str(data.get("contact_email", "")).lower(),
        contact_phone=str(data.get("contact_phone", "")),
        address=str(data.get("address", "")),
        invoice_prefix=str(data.get("invoice_prefix", "INV")).upper(),
        quote_prefix=str(data.get("quote_prefix", "QTE")).upper(),
        gst_rate=gst_rate,
    )


def parse_documents(data: dict[str, Any]) -> DocumentRules:
    return DocumentRules(
        number_padding=_positive_int(data.get("number_padding", 4), "documents.number_padding"),
        due_days=_positive_int(data.get("due_days", 14), "documents.due_days", allow_zero=True),
        quote_valid_days=_positive_int(
            data.get("quote_valid_days", 14), "documents.quote_valid_days", allow_zero=True
        ),
        unknown_client_label=str(data.get("unknown_client_label", "Unknown client")),
    )


def parse_bounds(data: dict[str, Any], name: str) -> IntegerBounds:
    minimum = _positive_int(data["min"], f"{name}.min", allow_zero=True)
    maximum = _positive_int(data["max"], f"{name}.max", allow_zero=True)
    default = _positive_int(data["default"], f"{name}.default", allow_zero=True)
    if not minimum <= default <= maximum:
        raise ValueError(f"{name}: expected min <= default <= max")
    return IntegerBounds(minimum=minimum, maximum=maximum, default=default)


def parse_frequency(key: str, data: dict[str, Any]) -> FrequencyDef:
    unit = data.get("unit")
    if unit not in _FREQUENCY_UNITS:
        raise ValueError(f"frequencies.{key}.unit: expected one of {_FREQUENCY_UNITS}")
    value = data.get("value")
    if value is not None:
        value = _positive_int(value, f"frequencies.{key}.value")
    return FrequencyDef(
        key=key,
        label=str(data.get("label", key.title())),
        unit=unit,
        value=value,
    )


def parse_recurring(data: dict[str, Any]) -> RecurringRules:
    raw_frequencies = data.get("frequencies") or {}
    if not raw_frequencies:
        raise ValueError("recurring.frequencies: at least one frequency is required")
    frequencies = tuple(
        parse_frequency(key, value) for key, value in raw_frequencies.items()
    )
    default_frequency = str(data.get("default_frequency", "monthly"))
    if default_frequency not in {f.key for f in frequencies}:
        raise ValueError(
            f"recurring.default_frequency: {default_frequency!r} is not a defined frequency"
        )
    return RecurringRules(
        frequencies=frequencies,
        default_frequency=default_frequency,
        interval_days=parse_bounds(data["interval_days"], "recurring.interval_days"),
        payment_terms=parse_bounds(data["payment_terms"], "recurring.payment_terms"),
        reminder_lead=parse_bounds(data["reminder_lead"], "recurring.reminder_lead"),
        max_advance_iterations=_positive_int(
            data.get("max_advance_iterations", 10000), "recurring.max_advance_iterations"
        ),
    )


def parse_backup(data: dict[str, Any]) -> BackupRules:
    return BackupRules(
        schema_version=_positive_int(data.get("schema_version", 1), "backup.schema_version"),
    )


def parse_ledger_config(data: dict[str, Any]) -> LedgerConfig:
    """Parse a whole configuration document into a LedgerConfig."""
    return LedgerConfig(
        config_id=str(data.get("config_id", "default")),
        version=_positive_int(data.get("version", 1), "version"),
        defaults=parse_defaults(data.get("defaults") or {}),
        documents=parse_documents(data.get("documents") or {}),
        recurring=parse_recurring(data.get("recurring") or {}),
        backup=parse_backup(data.get("backup") or {}),
        checksum=compute_checksum(data),
    )


def load_ledger_config(path: Path) -> LedgerConfig:
    return parse_ledger_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """Compute SHA-256 checksum of canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
