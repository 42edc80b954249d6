"""
Calendar helpers shared by the status resolver and the range resolver.

All engagement, time-entry and invoice dates are ``datetime.date``.  An
instant (``datetime``) only enters the system through the clock and is
reduced to a calendar date in exactly one reference timezone here.

Normalisation rule:
    - ``date``           -> itself.
    - aware ``datetime`` -> converted to the reference zone, then its date.
    - naive ``datetime`` -> taken to be wall time in the reference zone.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from billing_kernel.exceptions import InvalidDateFormatError


def resolve_timezone(name: str) -> tzinfo:
    """
    Map a configured zone name to a ``tzinfo``.

    ``UTC`` resolves to ``timezone.utc`` without consulting the tz database.

    Raises:
        ValueError: If the zone name is unknown.
    """
    if name.upper() in ("UTC", "Z", "ETC/UTC"):
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name!r}") from e


def to_calendar_date(value: date | datetime, tz: tzinfo = timezone.utc) -> date:
    """Reduce a date or instant to a calendar date in the reference zone."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def parse_calendar_date(value: str | date | datetime | None) -> date:
    """
    Parse a caller-supplied calendar date.

    Accepts ``date`` objects and ISO ``YYYY-MM-DD`` strings.  A
    ``datetime`` is rejected: callers must decide which zone it belongs to.

    Raises:
        InvalidDateFormatError: On anything else.
    """
    if isinstance(value, datetime):
        raise InvalidDateFormatError(value, "expected a calendar date, got a timestamp")
    if isinstance(value, date):
        return value
    if value is None:
        raise InvalidDateFormatError(value, "missing")
    if not isinstance(value, str):
        raise InvalidDateFormatError(value, f"unsupported type {type(value).__name__}")
    text = value.strip()
    if len(text) != 10:
        raise InvalidDateFormatError(value, "expected YYYY-MM-DD")
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise InvalidDateFormatError(value, str(e)) from e


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    last = calendar.monthrange(year, month + 1)[1]
    return date(year, month + 1, min(day.day, last))


def quarter_start(day: date) -> date:
    return date(day.year, 3 * ((day.month - 1) // 3) + 1, 1)


def quarter_end(day: date) -> date:
    return month_end(add_months(quarter_start(day), 2))
