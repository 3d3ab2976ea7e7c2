"""
Structured JSON logging for the invoicing ledger.

Every record under the ``invoicing`` logger is emitted as one JSON object
per line.  Three things are specific to the ledger:

- Log context is a single immutable mapping of ledger fields
  (``client_id``, ``document_id``, ``document_number``, ``schedule_id``
  and request identifiers).  ``LogContext.for_document()`` and
  ``LogContext.for_schedule()`` bind the fields of a domain object in one
  call, so every line logged while a payment or schedule run is in flight
  names the document it concerns.
- Domain values serialize the way they are stored: ``Decimal`` in plain
  notation (``"231.00"``, never ``"2.31E+2"``), enums by value, instants
  as UTC ISO-8601 and any object with ``to_record()`` as its record.
- Typed ledger errors contribute ``exc_code`` plus one ``exc_<field>``
  per structured attribute.

Usage:
    from invoicing_kernel.logging_config import LogContext, get_logger

    logger = get_logger("modules.payments.service")
    with LogContext.for_document(invoice):
        logger.info("payment_recorded", extra={"amount": amount})
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "CONTEXT_FIELDS",
    "get_logger",
    "configure_logging",
    "reset_logging",
    "to_log_value",
]

import json
import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import fields, is_dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "invoicing"

# Order is the order fields appear in each JSON line.
CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "client_id",
    "document_id",
    "document_number",
    "schedule_id",
    "trace_id",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("invoicing_log_context", default=_EMPTY)


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


def _checked(values: Mapping[str, Any]) -> dict[str, str]:
    unknown = sorted(set(values) - set(CONTEXT_FIELDS))
    if unknown:
        raise TypeError(f"unknown log context field(s): {', '.join(unknown)}")
    return {key: str(value) for key, value in values.items() if value not in (None, "")}


class LogContext:
    """Ledger fields attached to every log line of the current operation."""

    @staticmethod
    def set(**values: Any) -> None:
        """Merge fields into the current context. ``None`` and ``""`` are ignored."""
        _context.set(MappingProxyType({**_context.get(), **_checked(values)}))

    @staticmethod
    def get_all() -> dict[str, str]:
        current = _context.get()
        return {key: current[key] for key in CONTEXT_FIELDS if key in current}

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**values: Any) -> Iterator[None]:
        """Set fields for the duration of a ``with`` block, then restore."""
        token = _context.set(MappingProxyType({**_context.get(), **_checked(values)}))
        try:
            yield
        finally:
            _context.reset(token)

    @classmethod
    def for_document(cls, document: Any):
        """Bind an invoice or quote: its id, number and client."""
        return cls.bind(
            document_id=getattr(document, "id", None),
            document_number=getattr(document, "number", None),
            client_id=getattr(document, "client_id", None),
        )

    @classmethod
    def for_schedule(cls, schedule: Any):
        """Bind a recurring schedule and its client."""
        return cls.bind(
            schedule_id=getattr(schedule, "id", None),
            client_id=getattr(schedule, "client_id", None),
        )


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def to_log_value(value: Any) -> Any:
    """Convert a ledger value into something ``json`` can emit."""
    if isinstance(value, Decimal):
        return format(value, "f") if value.is_finite() else str(value)
    if isinstance(value, Enum):
        return to_log_value(value.value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if hasattr(value, "to_record"):
        return value.to_record()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_log_value(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (set, frozenset)):
        return sorted(to_log_value(item) for item in value)
    return str(value)


_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: header, context, extras, then error fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STDLIB_KEYS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._error_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=to_log_value)

    @staticmethod
    def _error_fields(exc: BaseException) -> dict[str, Any]:
        error: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            error["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                error[f"exc_{name}"] = value
        return error


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """``get_logger("modules.payments.service")`` -> ``invoicing.modules.payments.service``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def _ledger_handlers(root: logging.Logger) -> list[logging.Handler]:
    return [h for h in root.handlers if getattr(h, "_invoicing_structured", False)]


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install the structured handler on the ``invoicing`` logger.

    Calling again once a structured handler is installed does nothing.
    ``level`` accepts a number or a name such as ``"DEBUG"``.
    """
    root = logging.getLogger(_LOGGER_PREFIX)
    if _ledger_handlers(root):
        return
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            raise ValueError(f"unknown log level: {level!r}")
        level = resolved

    installed = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    installed.setFormatter(StructuredFormatter())
    installed._invoicing_structured = True
    root.addHandler(installed)
    root.setLevel(level)
    root.propagate = False


def reset_logging() -> None:
    """Remove the structured handler and restore defaults. For tests."""
    root = logging.getLogger(_LOGGER_PREFIX)
    for installed in _ledger_handlers(root):
        root.removeHandler(installed)
    root.setLevel(logging.WARNING)
    root.propagate = True
