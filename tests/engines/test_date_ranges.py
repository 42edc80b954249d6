"""
Tests for named date-range resolution and overlap.

Covers:
- Every range keyword, including legacy aliases
- Custom ranges and their validation
- Overlap semantics
"""

from datetime import date

import pytest

from billing_engines.date_ranges import (
    DateRangeKey,
    custom_range,
    overlaps,
    parse_range_key,
    resolve_named_range,
)
from billing_kernel.domain.dtos import ALL_TIME, DateInterval
from billing_kernel.exceptions import (
    BillingValidationError,
    InvalidDateFormatError,
    UnknownDateRangeError,
)

REF = date(2025, 4, 15)  # a Tuesday


def _interval(start: str, end: str) -> DateInterval:
    return DateInterval(date.fromisoformat(start), date.fromisoformat(end))


class TestNamedRanges:
    """Tests for each supported keyword around 2025-04-15."""

    @pytest.mark.parametrize(
        "key,expected",
        [
            ("today", _interval("2025-04-15", "2025-04-15")),
            ("thisWeek", _interval("2025-04-14", "2025-04-20")),
            ("thisMonth", _interval("2025-04-01", "2025-04-30")),
            ("thisQuarter", _interval("2025-04-01", "2025-06-30")),
            ("thisYear", _interval("2025-01-01", "2025-12-31")),
            ("lastYear", _interval("2024-01-01", "2024-12-31")),
            ("trailing3Months", _interval("2025-01-01", "2025-04-30")),
            ("trailing6Months", _interval("2024-10-01", "2025-04-30")),
            ("trailing12Months", _interval("2024-04-01", "2025-04-30")),
        ],
    )
    def test_keyword(self, key, expected):
        assert resolve_named_range(key, REF) == expected

    def test_this_month_scenario(self):
        """thisMonth at 2025-04-15 is April; straddling March entity overlaps, May does not."""
        april = resolve_named_range(DateRangeKey.THIS_MONTH, REF)

        assert april == _interval("2025-04-01", "2025-04-30")
        assert overlaps(_interval("2025-03-20", "2025-04-05"), april)
        assert not overlaps(_interval("2025-05-01", "2025-05-31"), april)

    def test_week_starts_monday(self):
        """A Sunday belongs to the week that started the previous Monday."""
        week = resolve_named_range("thisWeek", date(2025, 4, 20))
        assert week == _interval("2025-04-14", "2025-04-20")

    def test_all_time_is_sentinel(self):
        assert resolve_named_range("allTime", REF) is ALL_TIME

    def test_all_time_overlaps_everything(self):
        assert overlaps(_interval("1999-01-01", "1999-01-01"), resolve_named_range("allTime", REF))

    def test_quarter_at_year_end(self):
        assert resolve_named_range("thisQuarter", date(2025, 12, 31)) == _interval(
            "2025-10-01", "2025-12-31"
        )


class TestLegacyAliases:
    """Tests for keywords sent by older callers."""

    @pytest.mark.parametrize(
        "alias,key",
        [
            ("week", DateRangeKey.THIS_WEEK),
            ("month", DateRangeKey.THIS_MONTH),
            ("quarter", DateRangeKey.THIS_QUARTER),
            ("year", DateRangeKey.THIS_YEAR),
            ("current", DateRangeKey.THIS_YEAR),
            ("last", DateRangeKey.LAST_YEAR),
            ("last3", DateRangeKey.TRAILING_3_MONTHS),
            ("last6", DateRangeKey.TRAILING_6_MONTHS),
            ("last12", DateRangeKey.TRAILING_12_MONTHS),
            ("all", DateRangeKey.ALL_TIME),
        ],
    )
    def test_alias(self, alias, key):
        assert parse_range_key(alias) is key

    def test_alias_resolves_like_keyword(self):
        assert resolve_named_range("last6", REF) == resolve_named_range("trailing6Months", REF)


class TestUnknownKeys:
    """Tests for rejected keywords."""

    @pytest.mark.parametrize("key", ["nextYear", "", "THISMONTH", None])
    def test_unknown_key_rejected(self, key):
        with pytest.raises(UnknownDateRangeError):
            resolve_named_range(key, REF)

    def test_unknown_key_is_validation_error(self):
        with pytest.raises(BillingValidationError) as exc_info:
            resolve_named_range("fortnight", REF)
        assert exc_info.value.code == "UNKNOWN_DATE_RANGE"
        assert exc_info.value.key == "fortnight"


class TestCustomRange:
    """Tests for explicit bounds."""

    def test_iso_strings(self):
        result = resolve_named_range("custom", REF, "2025-02-01", "2025-02-14")
        assert result == _interval("2025-02-01", "2025-02-14")

    def test_date_objects(self):
        result = custom_range(date(2025, 2, 1), date(2025, 2, 1))
        assert result.days == 1

    def test_missing_bound(self):
        with pytest.raises(InvalidDateFormatError):
            resolve_named_range("custom", REF, "2025-02-01", None)

    def test_unparseable_bound(self):
        with pytest.raises(InvalidDateFormatError):
            resolve_named_range("custom", REF, "02/01/2025", "2025-02-14")

    def test_start_after_end(self):
        with pytest.raises(InvalidDateFormatError, match="after end date"):
            resolve_named_range("custom", REF, "2025-03-01", "2025-02-01")

    def test_custom_bounds_ignored_for_other_keys(self):
        assert resolve_named_range("today", REF, "garbage", "garbage") == _interval(
            "2025-04-15", "2025-04-15"
        )


class TestOverlaps:
    """Tests for inclusive overlap."""

    def test_shared_boundary_day_overlaps(self):
        assert overlaps(_interval("2025-01-01", "2025-01-31"), _interval("2025-01-31", "2025-02-28"))

    def test_adjacent_do_not_overlap(self):
        assert not overlaps(_interval("2025-01-01", "2025-01-31"), _interval("2025-02-01", "2025-02-28"))

    def test_containment_overlaps(self):
        assert overlaps(_interval("2025-01-10", "2025-01-12"), _interval("2025-01-01", "2025-01-31"))
