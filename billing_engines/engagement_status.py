"""
Module: billing_engines.engagement_status
Responsibility:
    Derive an engagement's lifecycle state (upcoming / active / completed)
    from its date range and the current instant.  This is the only place in
    the system that answers "is this engagement active".

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ``now`` is always passed
    in; the module never reads a clock.

Invariants enforced:
    - Total: every valid (start, end, now) maps to exactly one state.
    - Both boundary days are active.
    - All three inputs are reduced to calendar dates in one reference
      timezone before comparison.
    - The engagement's cached ``status`` field is never an input.

Failure modes:
    - InvalidRangeError when end < start.

Usage:
    from datetime import date
    from billing_engines.engagement_status import resolve_engagement_status

    resolve_engagement_status(date(2025, 1, 1), date(2025, 3, 31), clock.now())
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timezone, tzinfo

from billing_kernel.domain.dates import to_calendar_date
from billing_kernel.domain.dtos import DateInterval, Engagement, EngagementStatus
from billing_kernel.exceptions import InvalidRangeError
from billing_kernel.logging_config import get_logger
from billing_engines.date_ranges import overlaps

logger = get_logger("engines.engagement_status")


def resolve_engagement_status(
    start_date: date | datetime,
    end_date: date | datetime,
    now: date | datetime,
    tz: tzinfo = timezone.utc,
) -> EngagementStatus:
    """
    Lifecycle state of a date range as of ``now``.

    Evaluated in order: after end -> COMPLETED; before start -> UPCOMING;
    otherwise ACTIVE.

    Raises:
        InvalidRangeError: If end precedes start after normalisation.
    """
    start = to_calendar_date(start_date, tz)
    end = to_calendar_date(end_date, tz)
    today = to_calendar_date(now, tz)

    if end < start:
        logger.warning("engagement_status_invalid_range", extra={
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
        })
        raise InvalidRangeError(start, end)

    if today > end:
        return EngagementStatus.COMPLETED
    if today < start:
        return EngagementStatus.UPCOMING
    return EngagementStatus.ACTIVE


def engagement_status(
    engagement: Engagement,
    now: date | datetime,
    tz: tzinfo = timezone.utc,
) -> EngagementStatus:
    """Status of a single engagement; ignores its cached status."""
    return resolve_engagement_status(engagement.start_date, engagement.end_date, now, tz)


def refresh_statuses(
    engagements: Iterable[Engagement],
    now: date | datetime,
    tz: tzinfo = timezone.utc,
) -> tuple[Engagement, ...]:
    """
    Copies of ``engagements`` with the cached status recomputed.

    The caller decides whether to write the refreshed cache back.
    """
    today = to_calendar_date(now, tz)
    refreshed = []
    stale = 0
    for engagement in engagements:
        status = engagement_status(engagement, today, tz)
        if engagement.status is not status:
            stale += 1
        refreshed.append(engagement.with_status(status))

    logger.debug("engagement_statuses_refreshed", extra={
        "as_of": today.isoformat(),
        "engagement_count": len(refreshed),
        "stale_count": stale,
    })
    return tuple(refreshed)


def filter_engagements(
    engagements: Iterable[Engagement],
    now: date | datetime,
    *,
    status: EngagementStatus | None = None,
    interval: DateInterval | None = None,
    tz: tzinfo = timezone.utc,
) -> tuple[Engagement, ...]:
    """
    Refresh statuses, then keep engagements matching ``status`` and
    overlapping ``interval``.  None means "no constraint".
    """
    result = []
    for engagement in refresh_statuses(engagements, now, tz):
        if status is not None and engagement.status is not EngagementStatus(status):
            continue
        if interval is not None and not overlaps(engagement.interval, interval):
            continue
        result.append(engagement)
    return tuple(result)
