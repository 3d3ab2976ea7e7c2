"""
Recurring Billing Service - schedules that issue invoices on a frequency.

Responsibility:
    CRUD for recurring schedules, running a schedule (issue an invoice,
    then advance the next run date), caller-driven execution of every due
    schedule, reminder windows and human-readable frequency labels.

Architecture position:
    Modules > Recurring.  Date math is delegated to
    ``invoicing_engines.recurrence``; invoices are issued through
    ``InvoiceService`` so they follow the ordinary invoice rules.
    Nothing here runs on a timer.

Invariants enforced:
    - After a run, ``nextRunDate`` is strictly after both the run date and
      the reference instant; missed occurrences are skipped, not issued.
    - Month frequencies carry ``intervalDays == 0``; day frequencies carry
      ``intervalMonths == 0``.
    - Payment terms and reminder lead are clamped to the configured bounds.

Failure modes:
    - ScheduleNotFoundError for unknown schedule ids.
    - MissingFieldError / ClientNotFoundError / MissingLineItemsError from
      schedule normalization.
    - ScheduleAdvanceError when advancing cannot pass the reference.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from invoicing_config.schema import RecurringRules
from invoicing_engines.recurrence import (
    FrequencyRule,
    FrequencyUnit,
    add_days,
    advance_until_after,
    describe_frequency,
    next_occurrence,
)
from invoicing_engines.totals import compute_totals
from invoicing_kernel.domain.clock import Clock
from invoicing_kernel.domain.dates import coerce_instant, instant_or_none, to_iso
from invoicing_kernel.domain.records import clean_str, parse_flag, require_mapping
from invoicing_kernel.exceptions import (
    MissingFieldError,
    MissingLineItemsError,
    ScheduleNotFoundError,
    ValidationError,
)
from invoicing_kernel.logging_config import LogContext, get_logger
from invoicing_kernel.services.base import RecordCollectionService, new_record_id
from invoicing_kernel.store.record_store import CollectionKey, RecordStore
from invoicing_modules.documents.normalizer import DocumentNormalizer
from invoicing_modules.invoices.models import Invoice, InvoiceStatus
from invoicing_modules.invoices.service import InvoiceService
from invoicing_modules.recurring.models import RecurringRunResult, RecurringSchedule

logger = get_logger("modules.recurring.service")

_ONE_DAY = timedelta(days=1)


def _first_present(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


class RecurringBillingService(RecordCollectionService):
    """Owns the ``schedules`` collection."""

    collection = CollectionKey.SCHEDULES

    def __init__(
        self,
        store: RecordStore,
        normalizer: DocumentNormalizer,
        invoices: InvoiceService,
        rules: RecurringRules,
        clock: Clock | None = None,
    ):
        super().__init__(store, clock)
        self._normalizer = normalizer
        self._invoices = invoices
        self._rules = rules
        self._frequencies: dict[str, FrequencyRule] = {
            definition.key: FrequencyRule(
                key=definition.key,
                label=definition.label,
                unit=FrequencyUnit(definition.unit),
                value=definition.value,
            )
            for definition in rules.frequencies
        }

    @property
    def frequencies(self) -> dict[str, FrequencyRule]:
        return dict(self._frequencies)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _read(self, record: dict[str, Any]) -> RecurringSchedule | None:
        try:
            return self._normalize(record, strict_client_validation=False)
        except ValidationError as exc:
            logger.warning(
                "schedule_record_invalid",
                extra={"schedule_id": record.get("id"), "error_code": exc.code},
            )
            return None

    def list(self) -> list[RecurringSchedule]:
        schedules = []
        for record in self._load_records():
            schedule = self._read(record)
            if schedule is not None:
                schedules.append(schedule)
        return schedules

    def find_by_id(self, schedule_id: str) -> RecurringSchedule | None:
        record = self._find_record(schedule_id)
        return self._read(record) if record is not None else None

    def get(self, schedule_id: str) -> RecurringSchedule:
        schedule = self.find_by_id(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(clean_str(schedule_id) or str(schedule_id))
        return schedule

    def _resolve(self, schedule_or_id: RecurringSchedule | str) -> RecurringSchedule:
        if isinstance(schedule_or_id, RecurringSchedule):
            return schedule_or_id
        return self.get(schedule_or_id)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, raw: Mapping[str, Any]) -> RecurringSchedule:
        data = require_mapping(raw, "Schedule")
        now = to_iso(self._clock.now_utc())
        schedule = self._normalize(
            {**data, "id": new_record_id(), "createdAt": now, "updatedAt": now},
            strict_client_validation=True,
        )
        self._upsert(schedule.to_record())
        logger.info(
            "schedule_created",
            extra={
                "schedule_id": schedule.id,
                "client_id": schedule.client_id,
                "frequency": schedule.frequency,
                "next_run_date": to_iso(schedule.next_run_date),
            },
        )
        return schedule

    def update(self, schedule_id: str, patch: Mapping[str, Any]) -> RecurringSchedule:
        existing = self.get(schedule_id)
        changes = require_mapping(patch, "Schedule")
        client_id = clean_str(changes.get("clientId"))
        strict = bool(client_id) and client_id != existing.client_id

        current = existing.to_record()
        frequency = clean_str(changes.get("frequency")).lower()
        if frequency and frequency != existing.frequency and "intervalDays" not in changes:
            # The stored interval belongs to the old frequency.
            current.pop("intervalDays", None)
        schedule = self._normalize(
            {
                **current,
                **changes,
                "id": existing.id,
                "createdAt": current["createdAt"],
                "updatedAt": to_iso(self._clock.now_utc()),
            },
            strict_client_validation=strict,
        )
        self._upsert(schedule.to_record())
        logger.info(
            "schedule_updated",
            extra={"schedule_id": schedule.id, "fields": sorted(changes.keys())},
        )
        return schedule

    def remove(self, schedule_id: str) -> bool:
        removed = self._delete(clean_str(schedule_id))
        if removed:
            logger.info("schedule_removed", extra={"schedule_id": schedule_id})
        return removed

    # -------------------------------------------------------------------------
    # Date math
    # -------------------------------------------------------------------------

    def calculate_next_run_date(
        self,
        schedule_or_id: RecurringSchedule | str,
        reference_date: Any = None,
    ) -> datetime:
        """Apply the schedule's frequency once to ``reference_date`` (default: next run)."""
        schedule = self._resolve(schedule_or_id)
        reference = coerce_instant(reference_date, schedule.next_run_date)
        return next_occurrence(reference, schedule.interval_days, schedule.interval_months)

    def calculate_due_date(self, issue_date: Any, payment_terms_days: Any = None) -> datetime:
        terms = self._rules.payment_terms.clamp(payment_terms_days)
        return add_days(coerce_instant(issue_date, self._clock.now_utc()), terms)

    def advance_schedule(
        self,
        schedule_or_id: RecurringSchedule | str,
        run_date: Any = None,
        *,
        reference: Any = None,
        reset_reminder: bool = True,
    ) -> RecurringSchedule:
        """Record a run and move ``nextRunDate`` past ``max(reference, run_date)``."""
        schedule = self._resolve(schedule_or_id)
        run_at = coerce_instant(run_date, schedule.next_run_date)
        floor = max(coerce_instant(reference, self._clock.now_utc()), run_at)
        next_run = advance_until_after(
            run_at,
            floor,
            schedule.interval_days,
            schedule.interval_months,
            self._rules.max_advance_iterations,
        )
        changes: dict[str, Any] = {
            "lastRunAt": to_iso(run_at),
            "nextRunDate": to_iso(next_run),
        }
        if reset_reminder:
            changes["lastReminderAt"] = ""
        updated = self.update(schedule.id, changes)
        logger.info(
            "schedule_advanced",
            extra={
                "schedule_id": schedule.id,
                "run_date": to_iso(run_at),
                "next_run_date": to_iso(next_run),
            },
        )
        return updated

    # -------------------------------------------------------------------------
    # Runs
    # -------------------------------------------------------------------------

    def generate_invoice(
        self,
        schedule_or_id: RecurringSchedule | str,
        issue_date: Any = None,
        due_date: Any = None,
    ) -> Invoice:
        """Issue an unpaid invoice from the schedule template."""
        schedule = self._resolve(schedule_or_id)
        issued = coerce_instant(issue_date, schedule.next_run_date)
        if due_date is not None:
            due = coerce_instant(due_date, issued)
        else:
            due = self.calculate_due_date(issued, schedule.payment_terms_days)
        return self._invoices.create(
            {
                "clientId": schedule.client_id,
                "issueDate": to_iso(issued),
                "dueDate": to_iso(due),
                "notes": schedule.notes,
                "status": InvoiceStatus.UNPAID.value,
                "lineItems": [
                    {
                        "serviceId": item.service_id,
                        "description": item.description,
                        "quantity": str(item.quantity),
                        "unitPrice": str(item.unit_price),
                        "applyGst": item.apply_gst,
                    }
                    for item in schedule.line_items
                ],
            }
        )

    def run_now(
        self,
        schedule_or_id: RecurringSchedule | str,
        issue_date: Any = None,
        *,
        reference: Any = None,
    ) -> RecurringRunResult:
        schedule = self._resolve(schedule_or_id)
        with LogContext.for_schedule(schedule):
            issued = coerce_instant(issue_date, schedule.next_run_date)
            invoice = self.generate_invoice(schedule, issued)
            updated = self.advance_schedule(
                schedule, issued, reference=reference, reset_reminder=True
            )
            logger.info(
                "schedule_run",
                extra={
                    "invoice_id": invoice.id,
                    "number": invoice.number,
                },
            )
        return RecurringRunResult(invoice=invoice, schedule=updated)

    def execute_due_schedules(self, reference: Any = None) -> list[RecurringRunResult]:
        """Run every schedule whose ``nextRunDate`` is at or before ``reference``."""
        as_of = coerce_instant(reference, self._clock.now_utc())
        due = [schedule for schedule in self.list() if schedule.next_run_date <= as_of]
        logger.info(
            "due_schedules_found",
            extra={"reference": to_iso(as_of), "count": len(due)},
        )
        return [self.run_now(schedule, reference=as_of) for schedule in due]

    # -------------------------------------------------------------------------
    # Reminders and presentation
    # -------------------------------------------------------------------------

    def needs_reminder(
        self,
        schedule_or_id: RecurringSchedule | str,
        reference: Any = None,
    ) -> bool:
        """True inside the lead window before the next run, once per window."""
        schedule = self._resolve(schedule_or_id)
        lead_days = schedule.reminder_lead_days
        if lead_days <= 0:
            return False
        as_of = self._reference_or_none(reference)
        if as_of is None:
            return False
        until = schedule.next_run_date - as_of
        if until < timedelta(0) or until > timedelta(days=lead_days):
            return False
        if schedule.last_reminder_at is None:
            return True
        return schedule.last_reminder_at < add_days(schedule.next_run_date, -lead_days)

    def record_reminder_sent(
        self,
        schedule_or_id: RecurringSchedule | str,
        reminder_date: Any = None,
    ) -> RecurringSchedule:
        schedule = self._resolve(schedule_or_id)
        sent_at = coerce_instant(reminder_date, self._clock.now_utc())
        logger.info(
            "schedule_reminder_recorded",
            extra={"schedule_id": schedule.id, "sent_at": to_iso(sent_at)},
        )
        return self.update(schedule.id, {"lastReminderAt": to_iso(sent_at)})

    def days_until_next_run(
        self,
        schedule_or_id: RecurringSchedule | str,
        reference: Any = None,
    ) -> int | None:
        schedule = self._resolve(schedule_or_id)
        as_of = self._reference_or_none(reference)
        if as_of is None:
            return None
        return (schedule.next_run_date - as_of) // _ONE_DAY

    def is_overdue(
        self,
        schedule_or_id: RecurringSchedule | str,
        reference: Any = None,
    ) -> bool:
        days = self.days_until_next_run(schedule_or_id, reference)
        return days is not None and days < 0

    def describe_frequency(self, schedule_or_id: RecurringSchedule | str) -> str:
        schedule = self._resolve(schedule_or_id)
        return describe_frequency(
            schedule.frequency,
            schedule.interval_days,
            schedule.interval_months,
            self._frequencies,
        )

    def _reference_or_none(self, reference: Any) -> datetime | None:
        if reference is None:
            return self._clock.now_utc()
        return instant_or_none(reference)

    # -------------------------------------------------------------------------
    # Normalization
    # -------------------------------------------------------------------------

    def _normalize(
        self,
        data: Mapping[str, Any],
        *,
        strict_client_validation: bool,
    ) -> RecurringSchedule:
        name = clean_str(data.get("name"))
        if not name:
            raise MissingFieldError("Schedule", "name")
        client = self._normalizer.resolve_client(
            data.get("clientId"),
            data,
            strict=strict_client_validation,
            document_type="Schedule",
        )

        frequency = clean_str(data.get("frequency")).lower()
        if frequency not in self._frequencies:
            frequency = self._rules.default_frequency
        rule = self._frequencies[frequency]
        if rule.is_monthly:
            interval_days, interval_months = 0, rule.value or 1
        elif rule.value is not None:
            # An explicit intervalDays overrides the rule's day count.
            bounds = replace(self._rules.interval_days, default=rule.value)
            interval_days, interval_months = bounds.clamp(data.get("intervalDays")), 0
        else:
            interval_days, interval_months = self._rules.interval_days.clamp(data.get("intervalDays")), 0

        now = self._clock.now_utc()
        next_run = coerce_instant(_first_present(data, "nextRunDate", "startDate"), now)

        tax_rate = self._normalizer.current_tax_rate()
        line_items = self._normalizer.normalize_line_items(data.get("lineItems"), tax_rate)
        if not line_items:
            raise MissingLineItemsError("Schedule")
        totals = compute_totals(line_items, tax_rate)

        return RecurringSchedule(
            id=clean_str(data.get("id")) or new_record_id(),
            name=name,
            client_id=client.id,
            client_name=client.name,
            client_business_name=client.business_name,
            frequency=frequency,
            interval_days=interval_days,
            interval_months=interval_months,
            payment_terms_days=self._rules.payment_terms.clamp(
                _first_present(data, "paymentTermsDays", "paymentTerms")
            ),
            reminder_lead_days=self._rules.reminder_lead.clamp(
                _first_present(data, "reminderLeadDays", "reminderLead")
            ),
            next_run_date=next_run,
            line_items=line_items,
            subtotal=totals.subtotal,
            gst_total=totals.gst_total,
            total=totals.total,
            last_run_at=instant_or_none(data.get("lastRunAt")),
            last_reminder_at=instant_or_none(data.get("lastReminderAt")),
            requires_materials=parse_flag(data.get("requiresMaterials")),
            notes=clean_str(data.get("notes")),
            created_at=coerce_instant(data.get("createdAt"), now),
            updated_at=coerce_instant(data.get("updatedAt"), now),
        )
