"""Tests for recurring billing schedules."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from invoicing_kernel.exceptions import (
    ClientNotFoundError,
    MissingFieldError,
    MissingLineItemsError,
    ScheduleAdvanceError,
    ScheduleNotFoundError,
)
from invoicing_modules.invoices.models import InvoiceStatus
from invoicing_modules.recurring.service import RecurringBillingService
from tests.conftest import line

UTC = timezone.utc
NOW = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


def _at(year, month, day, hour=0):
    return datetime(year, month, day, hour, tzinfo=UTC)


@pytest.fixture
def make_schedule(ledger, client):
    def _make(**fields):
        data = {
            "name": "Monthly maintenance",
            "clientId": client.id,
            "frequency": "monthly",
            "startDate": "2024-01-31T00:00:00Z",
            "lineItems": [line(description="Maintenance", quantity=1, unit_price="200", apply_gst=True)],
        }
        data.update(fields)
        return ledger.recurring.create(data)

    return _make


class TestScheduleCreate:
    def test_monthly(self, make_schedule, client):
        schedule = make_schedule()
        assert schedule.frequency == "monthly"
        assert (schedule.interval_days, schedule.interval_months) == (0, 1)
        assert schedule.next_run_date == _at(2024, 1, 31)
        assert schedule.total == Decimal("220.00")
        assert schedule.client_name == client.name
        assert schedule.payment_terms_days == 14
        assert schedule.reminder_lead_days == 0
        assert schedule.last_run_at is None

    def test_quarterly_and_yearly(self, make_schedule):
        assert make_schedule(frequency="quarterly").interval_months == 3
        assert make_schedule(frequency="Yearly").interval_months == 12

    def test_fixed_day_frequency_defaults_to_rule(self, make_schedule):
        assert make_schedule(frequency="weekly").interval_days == 7
        assert make_schedule(frequency="fortnightly", intervalDays="").interval_days == 14

    def test_fixed_day_frequency_honours_interval(self, ledger, make_schedule):
        schedule = make_schedule(frequency="weekly", intervalDays=3)
        assert (schedule.interval_days, schedule.interval_months) == (3, 0)
        nxt = ledger.recurring.calculate_next_run_date(schedule)
        assert nxt.isoformat() == "2024-02-03T00:00:00+00:00"

    def test_fixed_day_interval_clamped(self, make_schedule):
        assert make_schedule(frequency="fortnightly", intervalDays=900).interval_days == 365

    @pytest.mark.parametrize("interval,expected", [("10", 10), (0, 1), (900, 365), ("abc", 30)])
    def test_custom_interval_clamped(self, make_schedule, interval, expected):
        schedule = make_schedule(frequency="custom", intervalDays=interval)
        assert schedule.interval_days == expected
        assert schedule.interval_months == 0

    def test_unknown_frequency_uses_default(self, make_schedule):
        assert make_schedule(frequency="hourly").frequency == "monthly"

    def test_terms_and_lead_clamped(self, make_schedule):
        schedule = make_schedule(paymentTerms=500, reminderLeadDays=-2)
        assert schedule.payment_terms_days == 180
        assert schedule.reminder_lead_days == 0

    def test_start_defaults_to_now(self, make_schedule):
        assert make_schedule(startDate=None).next_run_date == NOW

    def test_requires_materials_flag(self, make_schedule):
        assert make_schedule(requiresMaterials="yes").requires_materials is True
        assert make_schedule().requires_materials is False

    def test_name_required(self, make_schedule):
        with pytest.raises(MissingFieldError) as exc_info:
            make_schedule(name=" ")
        assert exc_info.value.entity == "Schedule"

    def test_client_must_exist(self, make_schedule):
        with pytest.raises(ClientNotFoundError):
            make_schedule(clientId="ghost")

    def test_lines_required(self, make_schedule):
        with pytest.raises(MissingLineItemsError):
            make_schedule(lineItems=[])


class TestScheduleCrud:
    def test_get_unknown(self, ledger):
        with pytest.raises(ScheduleNotFoundError):
            ledger.recurring.get("missing")

    def test_update_frequency(self, ledger, make_schedule):
        schedule = make_schedule()
        updated = ledger.recurring.update(schedule.id, {"frequency": "fortnightly"})
        assert (updated.interval_days, updated.interval_months) == (14, 0)
        assert updated.next_run_date == schedule.next_run_date

    def test_update_keeps_custom_interval_for_same_frequency(self, ledger, make_schedule):
        schedule = make_schedule(frequency="weekly", intervalDays=3)
        updated = ledger.recurring.update(schedule.id, {"notes": "Back gate"})
        assert updated.interval_days == 3
        changed = ledger.recurring.update(schedule.id, {"frequency": "fortnightly"})
        assert changed.interval_days == 14

    def test_update_survives_deleted_client(self, ledger, client, make_schedule):
        schedule = make_schedule()
        ledger.clients.remove(client.id)
        updated = ledger.recurring.update(schedule.id, {"notes": "Gate code 1234"})
        assert updated.client_name == client.name
        assert [s.id for s in ledger.recurring.list()] == [schedule.id]

    def test_remove(self, ledger, make_schedule):
        schedule = make_schedule()
        assert ledger.recurring.remove(schedule.id) is True
        assert ledger.recurring.list() == []

    def test_describe_frequency(self, ledger, make_schedule):
        assert ledger.recurring.describe_frequency(make_schedule()) == "Monthly"
        assert ledger.recurring.describe_frequency(make_schedule(frequency="quarterly")) == "Every 3 months"
        custom = make_schedule(frequency="custom", intervalDays=10)
        assert ledger.recurring.describe_frequency(custom.id) == "Every 10 days"


class TestScheduleDates:
    def test_next_run_date_one_step(self, ledger, make_schedule):
        schedule = make_schedule()
        assert ledger.recurring.calculate_next_run_date(schedule) == _at(2024, 2, 29)
        assert ledger.recurring.calculate_next_run_date(schedule, "2023-01-31") == _at(2023, 2, 28)

    def test_due_date(self, ledger):
        assert ledger.recurring.calculate_due_date("2024-01-10", 7) == _at(2024, 1, 17)
        assert ledger.recurring.calculate_due_date("2024-01-10", 0) == _at(2024, 1, 11)
        assert ledger.recurring.calculate_due_date("2024-01-10", None) == _at(2024, 1, 24)
        assert ledger.recurring.calculate_due_date("2024-01-10", 999) == _at(2024, 1, 10) + timedelta(days=180)

    def test_advance_skips_missed_runs(self, ledger, make_schedule):
        schedule = make_schedule(startDate="2023-10-15T00:00:00Z")
        advanced = ledger.recurring.advance_schedule(schedule)
        assert advanced.last_run_at == _at(2023, 10, 15)
        # now is 2024-01-01T12:00Z, so the next run lands after it.
        assert advanced.next_run_date == _at(2024, 1, 15)

    def test_advance_exhausted(self, ledger, config, make_schedule):
        schedule = make_schedule(frequency="weekly", startDate="2000-01-01T00:00:00Z")
        service = RecurringBillingService(
            ledger.store,
            ledger.normalizer,
            ledger.invoices,
            replace(config.recurring, max_advance_iterations=5),
            ledger.clock,
        )
        with pytest.raises(ScheduleAdvanceError):
            service.advance_schedule(schedule.id)
        assert ledger.recurring.get(schedule.id).next_run_date == _at(2000, 1, 1)


class TestRunNow:
    def test_issues_invoice_and_advances(self, ledger, make_schedule, client):
        schedule = make_schedule(paymentTermsDays=7, notes="Monthly service")
        result = ledger.recurring.run_now(schedule.id)

        invoice = result.invoice
        assert invoice.number == "ACM-0001"
        assert invoice.status == InvoiceStatus.UNPAID
        assert invoice.client_id == client.id
        assert invoice.issue_date == _at(2024, 1, 31)
        assert invoice.due_date == _at(2024, 2, 7)
        assert invoice.total == Decimal("220.00")
        assert invoice.notes == "Monthly service"
        assert [i.description for i in invoice.line_items] == ["Maintenance"]

        assert result.schedule.next_run_date == _at(2024, 2, 29)
        assert result.schedule.last_run_at == _at(2024, 1, 31)
        assert ledger.recurring.get(schedule.id) == result.schedule

    def test_explicit_issue_date(self, ledger, make_schedule):
        result = ledger.recurring.run_now(make_schedule(), "2024-01-05")
        assert result.invoice.issue_date == _at(2024, 1, 5)
        assert result.schedule.next_run_date == _at(2024, 2, 5)

    def test_resets_reminder(self, ledger, make_schedule):
        schedule = make_schedule(reminderLeadDays=3)
        ledger.recurring.record_reminder_sent(schedule, "2024-01-29")
        result = ledger.recurring.run_now(schedule.id)
        assert result.schedule.last_reminder_at is None

    def test_logs_schedule_context(self, ledger, make_schedule, captured_logs):
        schedule = make_schedule()
        ledger.recurring.run_now(schedule.id)
        (run,) = [r for r in captured_logs() if r["message"] == "schedule_run"]
        assert run["schedule_id"] == schedule.id

    def test_deleted_client_blocks_run(self, ledger, client, make_schedule):
        schedule = make_schedule()
        ledger.clients.remove(client.id)
        with pytest.raises(ClientNotFoundError):
            ledger.recurring.run_now(schedule.id)
        assert ledger.recurring.get(schedule.id).next_run_date == _at(2024, 1, 31)


class TestExecuteDueSchedules:
    def test_runs_only_due_schedules_once(self, ledger, make_schedule):
        due = make_schedule(startDate="2024-01-15T00:00:00Z")
        later = make_schedule(startDate="2024-04-01T00:00:00Z")

        results = ledger.recurring.execute_due_schedules("2024-03-10T00:00:00Z")

        assert [r.schedule.id for r in results] == [due.id]
        assert results[0].invoice.issue_date == _at(2024, 1, 15)
        assert results[0].schedule.next_run_date == _at(2024, 3, 15)
        assert len(ledger.invoices.list()) == 1
        assert ledger.recurring.get(later.id).next_run_date == _at(2024, 4, 1)

    def test_second_pass_is_idle(self, ledger, make_schedule):
        make_schedule(startDate="2024-01-01T00:00:00Z")
        assert len(ledger.recurring.execute_due_schedules()) == 1
        assert ledger.recurring.execute_due_schedules() == []

    def test_nothing_due(self, ledger, make_schedule):
        make_schedule()
        assert ledger.recurring.execute_due_schedules() == []


class TestReminders:
    @pytest.fixture
    def schedule(self, make_schedule):
        return make_schedule(startDate="2024-01-05T12:00:00Z", reminderLeadDays=3)

    def test_outside_window(self, ledger, schedule):
        assert ledger.recurring.needs_reminder(schedule) is False

    def test_inside_window(self, ledger, schedule):
        assert ledger.recurring.needs_reminder(schedule, "2024-01-03T00:00:00Z") is True

    def test_once_per_window(self, ledger, schedule):
        updated = ledger.recurring.record_reminder_sent(schedule.id, "2024-01-03T00:00:00Z")
        assert updated.last_reminder_at == _at(2024, 1, 3)
        assert ledger.recurring.needs_reminder(updated, "2024-01-04T00:00:00Z") is False

    def test_reminder_from_earlier_window_does_not_count(self, ledger, schedule):
        updated = ledger.recurring.record_reminder_sent(schedule.id, "2023-12-20T00:00:00Z")
        assert ledger.recurring.needs_reminder(updated, "2024-01-03T00:00:00Z") is True

    def test_after_run_date(self, ledger, schedule):
        assert ledger.recurring.needs_reminder(schedule, "2024-01-06T00:00:00Z") is False

    def test_no_lead_no_reminder(self, ledger, make_schedule):
        schedule = make_schedule(startDate="2024-01-02T00:00:00Z")
        assert ledger.recurring.needs_reminder(schedule) is False

    def test_unreadable_reference(self, ledger, schedule):
        assert ledger.recurring.needs_reminder(schedule, "whenever") is False

    def test_days_until_next_run(self, ledger, schedule):
        assert ledger.recurring.days_until_next_run(schedule) == 4
        assert ledger.recurring.days_until_next_run(schedule, "2024-01-06T12:00:00Z") == -1
        assert ledger.recurring.days_until_next_run(schedule, "whenever") is None

    def test_is_overdue(self, ledger, schedule):
        assert ledger.recurring.is_overdue(schedule) is False
        assert ledger.recurring.is_overdue(schedule, "2024-01-06T12:00:00Z") is True
