"""
LedgerConfig schema.

Frozen dataclasses describing every tunable rule of the ledger: default
settings, document numbering and date fallbacks, payment-terms and reminder
bounds, recurring frequency rules and backup schema gating.  YAML sets are
parsed into these types by the loader.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

# ---------------------------------------------------------------------------
# Defaults and document rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SettingsDefaults:
    """Values a fresh ledger starts with before the owner edits settings."""

    business_name: str = ""
    abn: str = ""
    contact_name: str = ""
    contact_email: str = ""
    contact_phone: str = ""
    address: str = ""
    invoice_prefix: str = "INV"
    quote_prefix: str = "QTE"
    gst_rate: Decimal = Decimal("0.1")


@dataclass(frozen=True)
class DocumentRules:
    """Numbering and date fallbacks for invoices and quotes."""

    number_padding: int = 4
    due_days: int = 14
    quote_valid_days: int = 14
    unknown_client_label: str = "Unknown client"


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IntegerBounds:
    """Inclusive clamp range with a fallback for unparsable input."""

    minimum: int
    maximum: int
    default: int

    def clamp(self, value: object) -> int:
        """Coerce ``value`` into the range, using ``default`` when unreadable."""
        if value is None or isinstance(value, bool):
            return self.default
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            return self.default
        if not number.is_finite():
            return self.default
        return min(max(int(number), self.minimum), self.maximum)


# ---------------------------------------------------------------------------
# Recurring billing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FrequencyDef:
    """One named frequency as authored in YAML."""

    key: str
    label: str
    unit: str  # "days" | "months"
    value: int | None = None


@dataclass(frozen=True)
class RecurringRules:
    frequencies: tuple[FrequencyDef, ...]
    default_frequency: str = "monthly"
    interval_days: IntegerBounds = field(
        default_factory=lambda: IntegerBounds(minimum=1, maximum=365, default=30)
    )
    payment_terms: IntegerBounds = field(
        default_factory=lambda: IntegerBounds(minimum=1, maximum=180, default=14)
    )
    reminder_lead: IntegerBounds = field(
        default_factory=lambda: IntegerBounds(minimum=0, maximum=60, default=0)
    )
    max_advance_iterations: int = 10000

    def frequency(self, key: str) -> FrequencyDef | None:
        for definition in self.frequencies:
            if definition.key == key:
                return definition
        return None


@dataclass(frozen=True)
class BackupRules:
    schema_version: int = 1


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerConfig:
    """Fully parsed, validated configuration set."""

    config_id: str
    version: int
    defaults: SettingsDefaults
    documents: DocumentRules
    recurring: RecurringRules
    backup: BackupRules
    checksum: str = ""
