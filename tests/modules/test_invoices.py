"""Tests for document normalization and the invoice lifecycle."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from invoicing_kernel.exceptions import (
    ClientNotFoundError,
    InvoiceNotFoundError,
    MissingFieldError,
    MissingLineItemsError,
)
from invoicing_kernel.store.record_store import CollectionKey
from invoicing_modules.documents.models import LineItem
from invoicing_modules.invoices.models import InvoiceStatus
from tests.conftest import line

UTC = timezone.utc
NOW = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


# =============================================================================
# Normalizer
# =============================================================================


class TestNormalizeLineItems:
    def test_drops_blank_and_zero_quantity_lines(self, ledger):
        items = ledger.normalizer.normalize_line_items(
            [
                line(description="  "),
                line(quantity=0),
                line(quantity="-1"),
                "not a line",
                line(description="Kept", quantity=1, unit_price="10"),
            ],
            Decimal("0.1"),
        )
        assert [item.description for item in items] == ["Kept"]

    def test_recomputes_derived_values(self, ledger):
        raw = {**line(quantity=2, unit_price="150", apply_gst=True), "subtotal": "1", "gst": "2", "total": "999"}
        (item,) = ledger.normalizer.normalize_line_items([raw], Decimal("0.1"))
        assert item.subtotal == Decimal("300.00")
        assert item.gst == Decimal("30.00")
        assert item.total == Decimal("330.00")

    def test_negative_price_clamped(self, ledger):
        (item,) = ledger.normalizer.normalize_line_items([line(unit_price="-20")], Decimal("0.1"))
        assert item.unit_price == Decimal("0.00")
        assert item.total == Decimal("0.00")

    def test_string_flags_and_snake_case(self, ledger):
        (item,) = ledger.normalizer.normalize_line_items(
            [{"description": "Hedge", "quantity": "1", "unit_price": "50", "apply_gst": "true"}],
            Decimal("0.1"),
        )
        assert item.apply_gst is True
        assert item.total == Decimal("55.00")

    def test_accepts_line_item_objects_and_assigns_ids(self, ledger):
        (first,) = ledger.normalizer.normalize_line_items([line()], Decimal("0"))
        assert first.id
        (again,) = ledger.normalizer.normalize_line_items([first], Decimal("0"))
        assert isinstance(again, LineItem)
        assert again.id == first.id

    def test_non_list_input(self, ledger):
        assert ledger.normalizer.normalize_line_items({"description": "x"}, Decimal("0")) == ()


class TestResolveClient:
    def test_blank_id(self, ledger):
        with pytest.raises(MissingFieldError) as exc_info:
            ledger.normalizer.resolve_client("  ", {}, strict=False, document_type="Invoice")
        assert exc_info.value.field == "client"

    def test_strict_unknown(self, ledger):
        with pytest.raises(ClientNotFoundError):
            ledger.normalizer.resolve_client("ghost", {}, strict=True, document_type="Invoice")

    def test_lenient_uses_stored_snapshot(self, ledger):
        snapshot = ledger.normalizer.resolve_client(
            "ghost",
            {"clientName": "Old Name", "clientBusinessName": "Old Biz"},
            strict=False,
            document_type="Invoice",
        )
        assert (snapshot.name, snapshot.business_name) == ("Old Name", "Old Biz")

    def test_lenient_placeholder(self, ledger):
        snapshot = ledger.normalizer.resolve_client("ghost", {}, strict=False, document_type="Invoice")
        assert snapshot.name == "Unknown client"


# =============================================================================
# Create
# =============================================================================


class TestInvoiceCreate:
    def test_simple_invoice(self, ledger, client):
        invoice = ledger.invoices.create({"clientId": client.id, "lineItems": [line()]})
        assert invoice.number == "ACM-0001"
        assert invoice.subtotal == Decimal("300.00")
        assert invoice.gst_total == Decimal("0.00")
        assert invoice.total == Decimal("300.00")
        assert invoice.amount_paid == Decimal("0.00")
        assert invoice.balance_due == Decimal("300.00")
        assert invoice.status == InvoiceStatus.UNPAID
        assert invoice.paid_at is None
        assert invoice.client_name == client.name
        assert invoice.client_business_name == client.business_name

    def test_gst_invoice(self, ledger, client):
        invoice = ledger.invoices.create(
            {"clientId": client.id, "lineItems": [line(apply_gst=True)]}
        )
        assert invoice.gst_total == Decimal("30.00")
        assert invoice.total == Decimal("330.00")

    def test_date_fallbacks(self, ledger, client):
        invoice = ledger.invoices.create(
            {"clientId": client.id, "lineItems": [line()], "issueDate": "2024-02-10", "dueDate": "soon"}
        )
        assert invoice.issue_date == datetime(2024, 2, 10, tzinfo=UTC)
        assert invoice.due_date == datetime(2024, 2, 24, tzinfo=UTC)

    def test_missing_issue_date_is_now(self, ledger, client):
        invoice = ledger.invoices.create({"clientId": client.id, "lineItems": [line()]})
        assert invoice.issue_date == NOW
        assert invoice.due_date == NOW + timedelta(days=14)

    def test_client_required(self, ledger):
        with pytest.raises(MissingFieldError):
            ledger.invoices.create({"lineItems": [line()]})

    def test_unknown_client(self, ledger):
        with pytest.raises(ClientNotFoundError):
            ledger.invoices.create({"clientId": "ghost", "lineItems": [line()]})
        assert ledger.invoices.list() == []

    def test_no_surviving_lines(self, ledger, client):
        with pytest.raises(MissingLineItemsError):
            ledger.invoices.create({"clientId": client.id, "lineItems": [line(quantity=0)]})
        assert ledger.store.load(CollectionKey.INVOICES) is None

    def test_input_derived_values_ignored(self, ledger, client):
        invoice = ledger.invoices.create(
            {
                "clientId": client.id,
                "lineItems": [line()],
                "total": "999.00",
                "balanceDue": "1.00",
                "status": "partial",
            }
        )
        assert invoice.total == Decimal("300.00")
        assert invoice.balance_due == Decimal("300.00")
        assert invoice.status == InvoiceStatus.UNPAID

    def test_amount_paid_capped_at_total(self, ledger, client):
        invoice = ledger.invoices.create(
            {"clientId": client.id, "lineItems": [line()], "amountPaid": "500"}
        )
        assert invoice.amount_paid == Decimal("300.00")
        assert invoice.balance_due == Decimal("0.00")
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.paid_at == NOW

    def test_paid_status_without_amount_settles_total(self, ledger, client):
        invoice = ledger.invoices.create(
            {"clientId": client.id, "lineItems": [line()], "status": "PAID", "paidAt": "2024-01-05"}
        )
        assert invoice.amount_paid == Decimal("300.00")
        assert invoice.paid_at == datetime(2024, 1, 5, tzinfo=UTC)

    def test_zero_total_invoice_is_paid(self, ledger, client):
        invoice = ledger.invoices.create(
            {"clientId": client.id, "lineItems": [line(unit_price="0")]}
        )
        assert invoice.total == Decimal("0.00")
        assert invoice.status == InvoiceStatus.PAID


class TestInvoiceNumbering:
    def test_sequential_numbers(self, make_invoice):
        numbers = [make_invoice().number for _ in range(3)]
        assert numbers == ["ACM-0001", "ACM-0002", "ACM-0003"]

    def test_supplied_number_kept(self, make_invoice):
        assert make_invoice(number="CUSTOM-1").number == "CUSTOM-1"

    def test_numbers_not_reused_after_delete(self, ledger, make_invoice):
        make_invoice()
        second = make_invoice()
        ledger.invoices.remove(second.id)
        assert make_invoice().number == "ACM-0003"

    def test_numbers_unique_across_clients(self, ledger, make_invoice, make_client):
        other = make_client(prefix="bld", name="Bob")
        first = make_invoice()
        second = ledger.invoices.create({"clientId": other.id, "lineItems": [line()]})
        assert first.number == "ACM-0001"
        assert second.number.startswith("BLD-")
        assert second.number != first.number

    def test_skips_numbers_already_used(self, ledger, store, make_invoice):
        make_invoice()
        # Counter lost (e.g. restored from a backup without counters).
        store.remove(CollectionKey.SEQUENCES)
        assert make_invoice().number == "ACM-0002"

    def test_logs_allocation(self, make_invoice, captured_logs):
        make_invoice()
        logs = captured_logs()
        allocated = [r for r in logs if r["message"] == "document_number_allocated"]
        assert allocated[0]["number"] == "ACM-0001"


# =============================================================================
# Reads
# =============================================================================


class TestInvoiceReads:
    def test_get_unknown(self, ledger):
        with pytest.raises(InvoiceNotFoundError) as exc_info:
            ledger.invoices.get("missing")
        assert exc_info.value.code == "INVOICE_NOT_FOUND"

    def test_find_by_blank_id(self, ledger):
        assert ledger.invoices.find_by_id("") is None

    def test_read_recomputes_tampered_record(self, ledger, store, make_invoice):
        invoice = make_invoice()
        records = store.load(CollectionKey.INVOICES)
        records[0]["total"] = "1.00"
        records[0]["balanceDue"] = "-5"
        records[0]["lineItems"][0]["total"] = "0.01"
        store.save(CollectionKey.INVOICES, records)

        reread = ledger.invoices.get(invoice.id)
        assert reread.total == Decimal("300.00")
        assert reread.balance_due == Decimal("300.00")
        assert reread.number == invoice.number

    def test_read_never_allocates(self, ledger, store, client):
        store.save(
            CollectionKey.INVOICES,
            [{"id": "legacy", "clientId": client.id, "lineItems": [line()]}],
        )
        invoice = ledger.invoices.get("legacy")
        assert invoice.number == ""
        assert ledger.sequences.current_value("invoice") == 0

    def test_invalid_record_skipped(self, ledger, store, make_invoice, captured_logs):
        good = make_invoice()
        records = store.load(CollectionKey.INVOICES)
        records.append({"id": "broken", "clientId": "x", "lineItems": []})
        records.append("not a record")
        store.save(CollectionKey.INVOICES, records)

        assert [invoice.id for invoice in ledger.invoices.list()] == [good.id]
        assert any(r["message"] == "invoice_record_invalid" for r in captured_logs())

    def test_corrupt_collection_reads_empty(self, ledger, store):
        store.save(CollectionKey.INVOICES, {"not": "a list"})
        assert ledger.invoices.list() == []

    def test_outstanding(self, ledger, make_invoice):
        open_invoice = make_invoice()
        make_invoice(status="paid")
        assert [i.id for i in ledger.invoices.get_outstanding_invoices()] == [open_invoice.id]


# =============================================================================
# Update / remove
# =============================================================================


class TestInvoiceUpdate:
    def test_line_change_recomputes(self, ledger, make_invoice, clock):
        invoice = make_invoice()
        clock.advance_days(1)
        updated = ledger.invoices.update(
            invoice.id, {"lineItems": [line(quantity=3, unit_price="100", apply_gst=True)]}
        )
        assert updated.total == Decimal("330.00")
        assert updated.number == invoice.number
        assert updated.created_at == invoice.created_at
        assert updated.updated_at == NOW + timedelta(days=1)

    def test_patch_cannot_change_identity(self, ledger, make_invoice):
        invoice = make_invoice()
        updated = ledger.invoices.update(invoice.id, {"id": "other", "createdAt": "2020-01-01"})
        assert updated.id == invoice.id
        assert updated.created_at == invoice.created_at

    def test_status_paid_settles_full_total(self, ledger, make_invoice):
        invoice = make_invoice(amountPaid="100")
        assert invoice.status == InvoiceStatus.PARTIAL
        updated = ledger.invoices.update(invoice.id, {"status": "paid"})
        assert updated.amount_paid == Decimal("300.00")
        assert updated.status == InvoiceStatus.PAID

    def test_lower_total_caps_amount_paid(self, ledger, make_invoice):
        invoice = make_invoice(amountPaid="200")
        updated = ledger.invoices.update(invoice.id, {"lineItems": [line(quantity=1, unit_price="50")]})
        assert updated.amount_paid == Decimal("50.00")
        assert updated.status == InvoiceStatus.PAID

    def test_new_client_must_exist(self, ledger, make_invoice):
        invoice = make_invoice()
        with pytest.raises(ClientNotFoundError):
            ledger.invoices.update(invoice.id, {"clientId": "ghost"})

    def test_new_client_snapshot(self, ledger, make_invoice, make_client):
        invoice = make_invoice()
        other = make_client(name="Bob Builder", businessName="Builder Co", prefix="bld")
        updated = ledger.invoices.update(invoice.id, {"clientId": other.id})
        assert updated.client_name == "Bob Builder"
        assert updated.client_business_name == "Builder Co"
        assert updated.number == invoice.number

    def test_update_survives_deleted_client(self, ledger, client, make_invoice):
        invoice = make_invoice()
        ledger.clients.remove(client.id)
        updated = ledger.invoices.update(invoice.id, {"notes": "Thanks"})
        assert updated.notes == "Thanks"
        assert updated.client_name == client.name

    def test_unknown(self, ledger):
        with pytest.raises(InvoiceNotFoundError):
            ledger.invoices.update("missing", {"notes": "x"})


class TestMarkPaidAndRemove:
    def test_mark_paid(self, ledger, make_invoice):
        invoice = make_invoice()
        paid = ledger.invoices.mark_paid(invoice.id, "2024-01-20")
        assert paid.status == InvoiceStatus.PAID
        assert paid.amount_paid == paid.total
        assert paid.balance_due == Decimal("0.00")
        assert paid.paid_at == datetime(2024, 1, 20, tzinfo=UTC)

    def test_mark_paid_defaults_to_now(self, ledger, make_invoice):
        paid = ledger.invoices.mark_paid(make_invoice().id)
        assert paid.paid_at == NOW

    def test_remove(self, ledger, make_invoice, captured_logs):
        invoice = make_invoice()
        assert ledger.invoices.remove(invoice.id) is True
        assert ledger.invoices.find_by_id(invoice.id) is None
        assert ledger.invoices.remove(invoice.id) is False
        assert any(r["message"] == "invoice_removed" for r in captured_logs())


class TestPaymentProjection:
    def test_projection_clamps_and_derives(self, ledger, make_invoice):
        invoice = make_invoice()
        projected = ledger.invoices.apply_payment_projection(invoice.id, Decimal("400.00"))
        assert projected.amount_paid == Decimal("300.00")
        assert projected.status == InvoiceStatus.PAID
        assert projected.paid_at == NOW

    def test_projection_clears_paid_at(self, ledger, make_invoice):
        invoice = make_invoice(status="paid")
        reopened = ledger.invoices.apply_payment_projection(invoice.id, Decimal("0"))
        assert reopened.status == InvoiceStatus.UNPAID
        assert reopened.paid_at is None

    def test_projection_logs_transition(self, ledger, make_invoice, captured_logs):
        invoice = make_invoice()
        ledger.invoices.apply_payment_projection(invoice.id, Decimal("100.00"))
        (record,) = [r for r in captured_logs() if r["message"] == "invoice_projection_applied"]
        assert record["action"] == "record_payment"
        assert record["to_status"] == "partial"
