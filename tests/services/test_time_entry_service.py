"""
Tests for TimeEntryService.

Covers:
- Logging hours with validation
- Editing and deleting unbilled entries
- Freezing entries once an invoice bills them
- Range-filtered time log
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_config import BillingConfig
from billing_kernel.exceptions import (
    EngagementNotFoundError,
    InvalidDateFormatError,
    InvalidTimeEntryError,
    TimeEntryFrozenError,
    TimeEntryNotFoundError,
)
from billing_kernel.models.time_entry import TimeEntryRecord
from billing_services.engagement_service import EngagementService
from billing_services.invoice_service import InvoiceService
from billing_services.time_entry_service import TimeEntryService


@pytest.fixture
def engagement(session, clock, config):
    return EngagementService(session, clock, config).create(
        client_name="Globex",
        project_name="Pricing Study",
        start_date="2025-01-01",
        end_date="2025-12-31",
        billing_mode="hourly",
        hourly_rate="120",
    )


@pytest.fixture
def service(session, clock, config):
    return TimeEntryService(session, clock, config)


class TestLog:
    """Tests for logging time."""

    def test_log_entry(self, service, session, engagement):
        entry = service.log(engagement.id, "2025-04-14", "6.5", "Workshop")

        assert entry.hours == Decimal("6.5")
        assert entry.entry_date == date(2025, 4, 14)
        record = session.get(TimeEntryRecord, entry.id)
        assert record.description == "Workshop"

    def test_full_day_allowed(self, service, engagement):
        assert service.log(engagement.id, "2025-04-14", 8).hours == Decimal("8")

    @pytest.mark.parametrize("hours", ["0", "-1", "8.01", "12"])
    def test_hours_out_of_bounds(self, service, engagement, hours):
        with pytest.raises(InvalidTimeEntryError):
            service.log(engagement.id, "2025-04-14", hours)

    def test_rejection_logged(self, service, engagement, captured_logs):
        with pytest.raises(InvalidTimeEntryError):
            service.log(engagement.id, "2025-04-14", "9")

        rejected = [r for r in captured_logs() if r["message"] == "time_entry_rejected"]
        assert rejected[0]["error_code"] == "INVALID_TIME_ENTRY"

    def test_bad_date(self, service, engagement):
        with pytest.raises(InvalidDateFormatError):
            service.log(engagement.id, "04/14/2025", "2")

    def test_unknown_engagement(self, service):
        with pytest.raises(EngagementNotFoundError):
            service.log(uuid4(), "2025-04-14", "2")


class TestEdit:
    """Tests for updating and deleting unbilled entries."""

    def test_update_hours_and_date(self, service, session, engagement):
        entry = service.log(engagement.id, "2025-04-14", "2")

        updated = service.update(entry.id, entry_date="2025-04-11", hours="3.25")

        assert updated.hours == Decimal("3.25")
        record = session.get(TimeEntryRecord, entry.id)
        assert record.entry_date == date(2025, 4, 11)

    def test_clear_description(self, service, engagement):
        entry = service.log(engagement.id, "2025-04-14", "2", "Draft notes")
        assert service.update(entry.id, description=None).description is None

    def test_update_keeps_description_when_omitted(self, service, engagement):
        entry = service.log(engagement.id, "2025-04-14", "2", "Draft notes")
        assert service.update(entry.id, hours="1").description == "Draft notes"

    def test_update_validates_hours(self, service, engagement):
        entry = service.log(engagement.id, "2025-04-14", "2")
        with pytest.raises(InvalidTimeEntryError):
            service.update(entry.id, hours="10")

    def test_delete(self, service, session, engagement):
        entry = service.log(engagement.id, "2025-04-14", "2")
        service.delete(entry.id)
        assert session.get(TimeEntryRecord, entry.id) is None

    def test_unknown_entry(self, service):
        with pytest.raises(TimeEntryNotFoundError):
            service.delete(uuid4())


class TestFreeze:
    """Billed entries cannot change while freezing is enabled."""

    def test_summary_invoice_freezes_billed_entries(
        self, service, session, clock, config, engagement
    ):
        billed = service.log(engagement.id, "2025-04-01", "4")
        InvoiceService(session, clock, config).generate_invoice(
            engagement.id, "2025-04-01", "2025-04-07"
        )

        with pytest.raises(TimeEntryFrozenError):
            service.update(billed.id, hours="5")
        with pytest.raises(TimeEntryFrozenError):
            service.delete(billed.id)

    def test_entry_outside_invoice_period_editable(
        self, service, session, clock, config, engagement
    ):
        service.log(engagement.id, "2025-04-01", "4")
        later = service.log(engagement.id, "2025-04-10", "4")
        InvoiceService(session, clock, config).generate_invoice(
            engagement.id, "2025-04-01", "2025-04-07"
        )

        assert service.update(later.id, hours="5").hours == Decimal("5")

    def test_entry_logged_inside_billed_span_stays_editable(
        self, service, session, clock, config, engagement
    ):
        """Only entries an invoice actually billed are frozen."""
        service.log(engagement.id, "2025-04-01", "4")
        service.log(engagement.id, "2025-04-07", "4")
        InvoiceService(session, clock, config).generate_invoice(
            engagement.id, "2025-04-01", "2025-04-07"
        )

        late = service.log(engagement.id, "2025-04-05", "3", "Late")
        assert service.update(late.id, hours="2").hours == Decimal("2")
        service.delete(late.id)
        assert session.get(TimeEntryRecord, late.id) is None

    def test_itemized_line_freezes_entry(self, service, session, clock, config, engagement):
        billed = service.log(engagement.id, "2025-04-02", "4")
        InvoiceService(session, clock, config).generate_invoice(
            engagement.id, "2025-04-01", "2025-04-07", mode="itemized"
        )

        with pytest.raises(TimeEntryFrozenError) as exc_info:
            service.delete(billed.id)
        assert exc_info.value.code == "TIME_ENTRY_FROZEN"

    def test_freeze_can_be_disabled(self, session, clock, engagement):
        config = BillingConfig(freeze_invoiced_time_entries=False)
        service = TimeEntryService(session, clock, config)
        billed = service.log(engagement.id, "2025-04-01", "4")
        InvoiceService(session, clock, config).generate_invoice(
            engagement.id, "2025-04-01", "2025-04-07"
        )

        assert service.update(billed.id, hours="3").hours == Decimal("3")


class TestListEntries:
    """Tests for the time log view as of 2025-04-15."""

    @pytest.fixture
    def entries(self, service, engagement):
        return [
            service.log(engagement.id, day, "2")
            for day in ("2025-01-20", "2025-03-31", "2025-04-01", "2025-04-15")
        ]

    def test_newest_first(self, service, entries):
        days = [e.entry_date for e in service.list_entries()]
        assert days == sorted(days, reverse=True)
        assert len(days) == 4

    def test_this_month(self, service, entries):
        result = service.list_entries(range_key="thisMonth")
        assert [e.entry_date for e in result] == [date(2025, 4, 15), date(2025, 4, 1)]

    def test_this_quarter(self, service, entries):
        result = service.list_entries(range_key="thisQuarter")
        assert len(result) == 2

    def test_filter_by_engagement(self, service, entries, engagement):
        assert len(service.list_entries(engagement_id=engagement.id)) == 4
        assert service.list_entries(engagement_id=uuid4()) == ()
