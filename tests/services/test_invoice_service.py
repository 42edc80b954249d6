"""
Tests for InvoiceService.

Covers:
- Hourly (summary/itemized) and fixed-fee generation against the database
- Sequential invoice numbering per year
- Duplicate period rejection and billed-entry exclusion
- Payment and the overdue sweep, including stale snapshots
- Filtered invoice lists
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from billing_config import BillingConfig
from billing_engines.billing import AggregationMode
from billing_kernel.domain.dtos import InvoiceStatus
from billing_kernel.exceptions import (
    DuplicateInvoiceError,
    EmptyInvoiceError,
    EngagementNotFoundError,
    InvalidDateFormatError,
    InvalidInvoiceTransitionError,
    InvoiceNotFoundError,
)
from billing_kernel.models.invoice import InvoiceRecord
from billing_services.engagement_service import EngagementService
from billing_services.invoice_service import InvoiceService
from billing_services.time_entry_service import TimeEntryService


@pytest.fixture
def engagements(session, clock, config):
    service = EngagementService(session, clock, config)
    return {
        "hourly": service.create(
            client_name="Initech",
            project_name="Cost Review",
            start_date="2025-01-01",
            end_date="2025-12-31",
            billing_mode="hourly",
            hourly_rate="150",
        ),
        "fixed": service.create(
            client_name="Umbrella",
            project_name="Security Audit",
            start_date="2025-03-01",
            end_date="2025-05-31",
            billing_mode="fixed_fee",
            fixed_fee="7500",
            net_terms_days=15,
        ),
    }


@pytest.fixture
def entries(session, clock, config, engagements):
    service = TimeEntryService(session, clock, config)
    hourly = engagements["hourly"].id
    return [
        service.log(hourly, "2025-04-02", "4", "Interviews"),
        service.log(hourly, "2025-04-03", "3.5", "Analysis"),
        service.log(hourly, "2025-04-08", "2", "Readout"),
    ]


@pytest.fixture
def service(session, clock, config):
    return InvoiceService(session, clock, config)


class TestGenerateHourly:
    """Tests for hourly invoice generation."""

    def test_summary_invoice(self, service, engagements, entries):
        invoice = service.generate_invoice(engagements["hourly"].id, "2025-04-01", "2025-04-30")

        assert invoice.invoice_number == "INV-2025-0001"
        assert invoice.total_hours == Decimal("9.5")
        assert invoice.total_amount.amount == Decimal("1425.00")
        assert len(invoice.line_items) == 1
        assert invoice.status is InvoiceStatus.SUBMITTED
        assert invoice.issue_date == date(2025, 4, 15)
        assert invoice.due_date == date(2025, 5, 15)

    def test_period_is_span_of_entries(self, service, engagements, entries):
        invoice = service.generate_invoice(engagements["hourly"].id, "2025-04-01", "2025-04-30")

        assert invoice.period_start == date(2025, 4, 2)
        assert invoice.period_end == date(2025, 4, 8)

    def test_entries_outside_period_not_billed(self, service, engagements, entries):
        invoice = service.generate_invoice(engagements["hourly"].id, "2025-04-01", "2025-04-05")

        assert invoice.total_hours == Decimal("7.5")
        assert invoice.total_amount.amount == Decimal("1125.00")

    def test_itemized_invoice(self, service, engagements, entries):
        invoice = service.generate_invoice(
            engagements["hourly"].id, "2025-04-01", "2025-04-30", mode="itemized"
        )

        assert [line.time_entry_id for line in invoice.line_items] == [e.id for e in entries]
        assert [line.amount.amount for line in invoice.line_items] == [
            Decimal("600.00"), Decimal("525.00"), Decimal("300.00"),
        ]
        assert invoice.total_amount.amount == Decimal("1425.00")

    def test_config_default_mode(self, session, clock, engagements, entries):
        config = BillingConfig(aggregation_mode=AggregationMode.ITEMIZED)
        invoice = InvoiceService(session, clock, config).generate_invoice(
            engagements["hourly"].id, "2025-04-01", "2025-04-30"
        )
        assert len(invoice.line_items) == 3

    def test_persisted_invoice_round_trips(self, service, engagements, entries):
        generated = service.generate_invoice(
            engagements["hourly"].id, "2025-04-01", "2025-04-30", mode="itemized"
        )

        loaded = service.get(generated.id)

        assert loaded == generated

    def test_half_up_rounding(self, session, clock, config):
        engagement = EngagementService(session, clock, config).create(
            client_name="Hooli",
            project_name="Odd Rate",
            start_date="2025-01-01",
            end_date="2025-12-31",
            billing_mode="hourly",
            hourly_rate="97.50",
        )
        TimeEntryService(session, clock, config).log(engagement.id, "2025-04-01", "2.33")

        invoice = InvoiceService(session, clock, config).generate_invoice(
            engagement.id, "2025-04-01", "2025-04-30"
        )

        # 2.33 * 97.50 = 227.175
        assert invoice.total_amount.amount == Decimal("227.18")

    def test_no_entries_rejected(self, service, engagements):
        with pytest.raises(EmptyInvoiceError):
            service.generate_invoice(engagements["hourly"].id, "2025-04-01", "2025-04-30")

    def test_allow_empty(self, service, engagements):
        invoice = service.generate_invoice(
            engagements["hourly"].id, "2025-04-01", "2025-04-30", allow_empty=True
        )

        assert invoice.total_amount.is_zero
        assert invoice.period_start == date(2025, 4, 1)
        assert invoice.period_end == date(2025, 4, 30)


class TestGenerateFixedFee:
    """Tests for fixed-fee invoice generation."""

    def test_fixed_fee_invoice(self, service, engagements):
        invoice = service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")

        assert invoice.total_amount.amount == Decimal("7500.00")
        assert invoice.total_hours == Decimal("0")
        assert invoice.due_date == date(2025, 4, 30)
        assert invoice.period_start == date(2025, 4, 1)

    def test_logged_hours_ignored(self, service, session, clock, config, engagements):
        TimeEntryService(session, clock, config).log(engagements["fixed"].id, "2025-04-02", "8")

        invoice = service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")

        assert invoice.total_hours == Decimal("0")
        assert invoice.total_amount.amount == Decimal("7500.00")


class TestNumberingAndDuplicates:
    """Tests for invoice numbers and the one-invoice-per-period rule."""

    def test_numbers_are_sequential(self, service, engagements, entries):
        first = service.generate_invoice(engagements["hourly"].id, "2025-04-01", "2025-04-30")
        second = service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")

        assert first.invoice_number == "INV-2025-0001"
        assert second.invoice_number == "INV-2025-0002"

    def test_numbering_restarts_each_year(self, service, engagements, entries):
        service.generate_invoice(engagements["fixed"].id, "2025-03-01", "2025-03-31")
        invoice = service.generate_invoice(
            engagements["fixed"].id, "2025-04-01", "2025-04-30", issue_date="2026-01-05"
        )

        assert invoice.invoice_number == "INV-2026-0001"

    def test_custom_prefix(self, session, clock, engagements):
        config = BillingConfig(invoice_number_prefix="ACME")
        invoice = InvoiceService(session, clock, config).generate_invoice(
            engagements["fixed"].id, "2025-04-01", "2025-04-30"
        )
        assert invoice.invoice_number == "ACME-2025-0001"

    def test_duplicate_period_rejected(self, service, session, engagements, captured_logs):
        service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")

        with pytest.raises(DuplicateInvoiceError):
            service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")

        count = len(session.execute(select(InvoiceRecord)).scalars().all())
        assert count == 1
        assert any(r["message"] == "invoice_duplicate_rejected" for r in captured_logs())

    def test_rejected_duplicate_consumes_no_number(self, service, engagements):
        service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")
        with pytest.raises(DuplicateInvoiceError):
            service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")

        invoice = service.generate_invoice(engagements["fixed"].id, "2025-05-01", "2025-05-31")
        assert invoice.invoice_number == "INV-2025-0002"

    def test_inverted_period_rejected(self, service, engagements):
        with pytest.raises(InvalidDateFormatError):
            service.generate_invoice(engagements["fixed"].id, "2025-04-30", "2025-04-01")

    def test_unknown_engagement(self, service):
        with pytest.raises(EngagementNotFoundError):
            service.generate_invoice(uuid4(), "2025-04-01", "2025-04-30")


class TestBilledEntries:
    """A time entry or fixed-fee day is billed on at most one invoice."""

    def test_narrower_window_over_billed_entries_rejected(
        self, service, session, engagements, entries, captured_logs
    ):
        """An April invoice covers 04-02; billing Apr 1-5 again finds nothing new."""
        service.generate_invoice(engagements["hourly"].id, "2025-04-01", "2025-04-30")

        with pytest.raises(DuplicateInvoiceError):
            service.generate_invoice(engagements["hourly"].id, "2025-04-01", "2025-04-05")

        assert len(session.execute(select(InvoiceRecord)).scalars().all()) == 1
        assert any(r["message"] == "invoice_duplicate_rejected" for r in captured_logs())

    def test_rerun_bills_only_new_entries(
        self, service, session, clock, config, engagements, entries
    ):
        first = service.generate_invoice(engagements["hourly"].id, "2025-04-01", "2025-04-30")
        late = TimeEntryService(session, clock, config).log(
            engagements["hourly"].id, "2025-04-05", "3", "Late"
        )

        second = service.generate_invoice(
            engagements["hourly"].id, "2025-04-01", "2025-04-30", mode="itemized"
        )

        assert first.total_hours == Decimal("9.5")
        assert second.total_hours == Decimal("3")
        assert second.total_amount.amount == Decimal("450.00")
        assert [line.time_entry_id for line in second.line_items] == [late.id]
        assert (second.period_start, second.period_end) == (date(2025, 4, 5), date(2025, 4, 5))

    def test_billed_entries_recorded_for_summary(self, service, session, engagements, entries):
        invoice = service.generate_invoice(engagements["hourly"].id, "2025-04-01", "2025-04-30")

        record = session.get(InvoiceRecord, invoice.id)
        assert {link.time_entry_id for link in record.billed_entries} == {e.id for e in entries}

    def test_overlapping_fixed_fee_period_rejected(self, service, session, engagements):
        service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")

        with pytest.raises(DuplicateInvoiceError):
            service.generate_invoice(engagements["fixed"].id, "2025-04-15", "2025-05-15")

        assert len(session.execute(select(InvoiceRecord)).scalars().all()) == 1

    def test_adjacent_fixed_fee_period_allowed(self, service, engagements):
        service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")
        invoice = service.generate_invoice(engagements["fixed"].id, "2025-05-01", "2025-05-31")

        assert invoice.period_start == date(2025, 5, 1)


class TestPayment:
    """Tests for recording payment."""

    def test_mark_paid(self, service, session, engagements):
        invoice = service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")

        paid = service.mark_paid(invoice.id)

        assert paid.status is InvoiceStatus.PAID
        record = session.get(InvoiceRecord, invoice.id)
        assert record.status == "paid"
        assert record.paid_date == date(2025, 4, 15)

    def test_paid_is_terminal(self, service, engagements):
        invoice = service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")
        service.mark_paid(invoice.id)

        with pytest.raises(InvalidInvoiceTransitionError):
            service.mark_paid(invoice.id)

    def test_unknown_invoice(self, service):
        with pytest.raises(InvoiceNotFoundError):
            service.mark_paid(uuid4())


class TestOverdueSweep:
    """Tests for the submitted -> overdue sweep (invoice due 2025-04-30)."""

    @pytest.fixture
    def invoice(self, service, engagements):
        return service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")

    def test_not_overdue_on_due_date(self, service, clock, invoice):
        clock.set_time(clock.now().replace(month=4, day=30))
        assert service.run_overdue_sweep() == ()
        assert service.get(invoice.id).status is InvoiceStatus.SUBMITTED

    def test_overdue_day_after_due_date(self, service, clock, invoice):
        clock.set_time(clock.now().replace(month=5, day=1))

        applied = service.run_overdue_sweep()

        assert [t.invoice_id for t in applied] == [invoice.id]
        assert service.get(invoice.id).status is InvoiceStatus.OVERDUE

    def test_sweep_is_idempotent(self, service, clock, invoice):
        clock.set_time(clock.now().replace(month=5, day=1))
        service.run_overdue_sweep()

        assert service.run_overdue_sweep() == ()
        assert service.get(invoice.id).status is InvoiceStatus.OVERDUE

    def test_overdue_invoice_can_be_paid(self, service, clock, invoice):
        clock.set_time(clock.now().replace(month=5, day=1))
        service.run_overdue_sweep()

        assert service.mark_paid(invoice.id).status is InvoiceStatus.PAID

    def test_paid_invoice_never_overdue(self, service, clock, invoice):
        service.mark_paid(invoice.id)
        clock.set_time(clock.now().replace(month=12, day=31))

        assert service.run_overdue_sweep() == ()
        assert service.get(invoice.id).status is InvoiceStatus.PAID

    def test_stale_snapshot_skipped(self, service, clock, invoice, captured_logs, monkeypatch):
        """An invoice paid after the sweep read it keeps its PAID status."""
        stale = service.get(invoice.id)
        service.mark_paid(invoice.id)
        monkeypatch.setattr(service._selector, "load_invoices_by_status", lambda status: (stale,))
        clock.set_time(clock.now().replace(month=5, day=1))

        assert service.run_overdue_sweep() == ()
        assert service.get(invoice.id).status is InvoiceStatus.PAID

        done = [r for r in captured_logs() if r["message"] == "overdue_sweep_completed"][-1]
        assert done["transition_count"] == 1
        assert done["skipped_count"] == 1


class TestListInvoices:
    """Tests for the invoice list view."""

    @pytest.fixture
    def invoices(self, service, engagements, entries):
        hourly = service.generate_invoice(engagements["hourly"].id, "2025-04-01", "2025-04-30")
        march = service.generate_invoice(
            engagements["fixed"].id, "2025-03-01", "2025-03-31", issue_date="2025-03-31"
        )
        april = service.generate_invoice(engagements["fixed"].id, "2025-04-01", "2025-04-30")
        service.mark_paid(march.id)
        return {"hourly": hourly, "march": march, "april": april}

    def test_newest_first(self, service, invoices):
        numbers = [inv.invoice_number for inv in service.list_invoices()]
        assert numbers == ["INV-2025-0003", "INV-2025-0001", "INV-2025-0002"]

    def test_filter_by_status(self, service, invoices):
        paid = service.list_invoices(status="paid")
        assert [inv.id for inv in paid] == [invoices["march"].id]

    def test_filter_by_issue_month(self, service, invoices):
        assert len(service.list_invoices(range_key="thisMonth")) == 2

    def test_filter_by_engagement(self, service, engagements, invoices):
        result = service.list_invoices(engagement_id=engagements["hourly"].id)
        assert [inv.id for inv in result] == [invoices["hourly"].id]
