"""
Module: billing_engines.date_ranges
Responsibility:
    Turn a range keyword ("thisMonth", "trailing6Months", ...) or explicit
    custom bounds into a closed calendar interval, and decide whether two
    intervals overlap.  Used to filter engagement, time-entry and invoice
    lists.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The reference date is
    always supplied by the caller.

Invariants enforced:
    - Weeks start on Monday.
    - Month, quarter and year ranges are calendar aligned.
    - ``trailingNMonths`` runs from the first day of the month N months
      before the reference month to the last day of the reference month.
    - ``allTime`` is the unbounded sentinel ``ALL_TIME``; it is never
      represented by "no interval".
    - Overlap is inclusive on both ends and symmetric.

Failure modes:
    - InvalidDateFormatError for missing, unparseable or inverted custom
      bounds.
    - UnknownDateRangeError for keywords outside the supported set.
"""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum

from billing_kernel.domain.dates import (
    add_months,
    month_end,
    month_start,
    parse_calendar_date,
    quarter_end,
    quarter_start,
)
from billing_kernel.domain.dtos import ALL_TIME, DateInterval
from billing_kernel.exceptions import InvalidDateFormatError, UnknownDateRangeError
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.date_ranges")


class DateRangeKey(str, Enum):
    """Supported range keywords."""

    TODAY = "today"
    THIS_WEEK = "thisWeek"
    THIS_MONTH = "thisMonth"
    THIS_QUARTER = "thisQuarter"
    THIS_YEAR = "thisYear"
    LAST_YEAR = "lastYear"
    TRAILING_3_MONTHS = "trailing3Months"
    TRAILING_6_MONTHS = "trailing6Months"
    TRAILING_12_MONTHS = "trailing12Months"
    ALL_TIME = "allTime"
    CUSTOM = "custom"


# Keywords still sent by older list views.
LEGACY_ALIASES: dict[str, DateRangeKey] = {
    "week": DateRangeKey.THIS_WEEK,
    "month": DateRangeKey.THIS_MONTH,
    "quarter": DateRangeKey.THIS_QUARTER,
    "year": DateRangeKey.THIS_YEAR,
    "current": DateRangeKey.THIS_YEAR,
    "last": DateRangeKey.LAST_YEAR,
    "last3": DateRangeKey.TRAILING_3_MONTHS,
    "last6": DateRangeKey.TRAILING_6_MONTHS,
    "last12": DateRangeKey.TRAILING_12_MONTHS,
    "all": DateRangeKey.ALL_TIME,
}

_TRAILING_MONTHS = {
    DateRangeKey.TRAILING_3_MONTHS: 3,
    DateRangeKey.TRAILING_6_MONTHS: 6,
    DateRangeKey.TRAILING_12_MONTHS: 12,
}


def parse_range_key(key: DateRangeKey | str) -> DateRangeKey:
    """
    Normalise a keyword, accepting legacy aliases.

    Raises:
        UnknownDateRangeError
    """
    if isinstance(key, DateRangeKey):
        return key
    if isinstance(key, str):
        if key in LEGACY_ALIASES:
            return LEGACY_ALIASES[key]
        try:
            return DateRangeKey(key)
        except ValueError:
            pass
    raise UnknownDateRangeError(str(key))


def custom_range(
    start: str | date | None,
    end: str | date | None,
) -> DateInterval:
    """
    Validate explicit bounds.

    Raises:
        InvalidDateFormatError: Missing or unparseable bound, or start > end.
    """
    start_date = parse_calendar_date(start)
    end_date = parse_calendar_date(end)
    if start_date > end_date:
        raise InvalidDateFormatError(
            f"{start_date.isoformat()}..{end_date.isoformat()}",
            "start date is after end date",
        )
    return DateInterval(start_date, end_date)


def resolve_named_range(
    key: DateRangeKey | str,
    reference_date: date,
    custom_start: str | date | None = None,
    custom_end: str | date | None = None,
) -> DateInterval:
    """
    Resolve a range keyword to a closed interval around ``reference_date``.

    Custom bounds are only consulted for ``custom``.

    Raises:
        UnknownDateRangeError: Unsupported keyword.
        InvalidDateFormatError: Bad custom bounds.
    """
    range_key = parse_range_key(key)
    ref = parse_calendar_date(reference_date)

    if range_key is DateRangeKey.TODAY:
        interval = DateInterval(ref, ref)
    elif range_key is DateRangeKey.THIS_WEEK:
        monday = ref - timedelta(days=ref.weekday())
        interval = DateInterval(monday, monday + timedelta(days=6))
    elif range_key is DateRangeKey.THIS_MONTH:
        interval = DateInterval(month_start(ref), month_end(ref))
    elif range_key is DateRangeKey.THIS_QUARTER:
        interval = DateInterval(quarter_start(ref), quarter_end(ref))
    elif range_key is DateRangeKey.THIS_YEAR:
        interval = DateInterval(date(ref.year, 1, 1), date(ref.year, 12, 31))
    elif range_key is DateRangeKey.LAST_YEAR:
        interval = DateInterval(date(ref.year - 1, 1, 1), date(ref.year - 1, 12, 31))
    elif range_key in _TRAILING_MONTHS:
        months = _TRAILING_MONTHS[range_key]
        interval = DateInterval(month_start(add_months(ref, -months)), month_end(ref))
    elif range_key is DateRangeKey.ALL_TIME:
        interval = ALL_TIME
    else:
        interval = custom_range(custom_start, custom_end)

    logger.debug("date_range_resolved", extra={
        "range_key": range_key.value,
        "reference_date": ref.isoformat(),
        "start": interval.start.isoformat(),
        "end": interval.end.isoformat(),
    })
    return interval


def overlaps(entity: DateInterval, query: DateInterval) -> bool:
    """
    True when the intervals share at least one calendar day.

    An entity straddling the query window counts; containment is not
    required.
    """
    return entity.end >= query.start and entity.start <= query.end
