"""
billing_services.engagement_service -- Engagement CRUD and status cache upkeep.

Responsibility:
    Create, update and delete engagements; keep the cached lifecycle status
    in step with the status resolver; serve filtered engagement lists.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Validation lives in the ``Engagement`` DTO, status logic in
    ``billing_engines.engagement_status``, range logic in
    ``billing_engines.date_ranges``.  This module only wires them to the
    database.

Invariants enforced:
    - Every create, update and list rewrites the cached status from the
      resolver; nothing here reads the cache to decide anything.
    - The clock is read once per operation.
    - Flush-only: the caller owns commit/rollback.

Failure modes:
    - InvalidRangeError / InvalidBillingTermsError from DTO validation,
      logged at WARNING and re-raised.
    - EngagementNotFoundError for unknown identifiers.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from billing_config import BillingConfig
from billing_engines.date_ranges import DateRangeKey, resolve_named_range
from billing_engines.engagement_status import (
    engagement_status,
    filter_engagements,
    refresh_statuses,
)
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dates import parse_calendar_date
from billing_kernel.domain.dtos import BillingMode, Engagement, EngagementStatus
from billing_kernel.exceptions import BillingValidationError, EngagementNotFoundError
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.models.engagement import EngagementRecord
from billing_kernel.selectors.billing_selector import BillingSelector
from billing_kernel.services.base import BaseService

logger = get_logger("services.engagement")

_UPDATABLE_FIELDS = frozenset({
    "client_id",
    "client_name",
    "project_name",
    "description",
    "start_date",
    "end_date",
    "billing_mode",
    "hourly_rate",
    "fixed_fee",
    "net_terms_days",
    "currency",
})


def _write(record: EngagementRecord, engagement: Engagement) -> None:
    record.client_id = engagement.client_id
    record.client_name = engagement.client_name
    record.project_name = engagement.project_name
    record.description = engagement.description
    record.start_date = engagement.start_date
    record.end_date = engagement.end_date
    record.billing_mode = engagement.billing_mode.value
    record.hourly_rate = engagement.hourly_rate
    record.fixed_fee = engagement.fixed_fee
    record.net_terms_days = engagement.net_terms_days
    record.currency = engagement.currency
    record.status = engagement.status.value if engagement.status else None


class EngagementService(BaseService[EngagementRecord]):
    """
    Engagement writes and filtered reads.

    Contract:
        Receives Session, Clock and BillingConfig via constructor injection.
        Returns frozen ``Engagement`` DTOs, never ORM rows.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BillingConfig | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._config = config or BillingConfig()
        self._selector = BillingSelector(session)

    def _today(self) -> date:
        return self._clock.today(self._config.tz)

    def create(
        self,
        client_name: str,
        project_name: str,
        start_date: date | str,
        end_date: date | str,
        billing_mode: BillingMode | str,
        hourly_rate: Decimal | str | None = None,
        fixed_fee: Decimal | str | None = None,
        net_terms_days: int | None = None,
        currency: str | None = None,
        client_id: UUID | None = None,
        description: str | None = None,
    ) -> Engagement:
        """
        Validate and persist a new engagement with a fresh status cache.

        Raises:
            InvalidRangeError, InvalidBillingTermsError, InvalidDateFormatError
        """
        today = self._today()
        try:
            engagement = Engagement(
                id=uuid4(),
                client_id=client_id,
                client_name=client_name,
                project_name=project_name,
                description=description,
                start_date=parse_calendar_date(start_date),
                end_date=parse_calendar_date(end_date),
                billing_mode=billing_mode,
                hourly_rate=hourly_rate,
                fixed_fee=fixed_fee,
                net_terms_days=(
                    self._config.default_net_terms_days if net_terms_days is None else net_terms_days
                ),
                currency=currency or self._config.currency,
            )
        except BillingValidationError as e:
            logger.warning("engagement_rejected", extra={
                "client_name": client_name,
                "project_name": project_name,
                "error_code": e.code,
                "reason": str(e),
            })
            raise

        engagement = engagement.with_status(engagement_status(engagement, today, self._config.tz))
        record = EngagementRecord(id=engagement.id)
        _write(record, engagement)
        self.session.add(record)
        self.session.flush()

        logger.info("engagement_created", extra={
            "engagement_id": str(engagement.id),
            "billing_mode": engagement.billing_mode.value,
            "start_date": engagement.start_date.isoformat(),
            "end_date": engagement.end_date.isoformat(),
            "status": engagement.status.value,
        })
        return engagement

    def update(self, engagement_id: UUID, **changes: Any) -> Engagement:
        """
        Apply field changes, re-validate and refresh the status cache.

        Switching billing mode requires clearing the other mode's amount in
        the same call, e.g. ``billing_mode="fixed_fee", fixed_fee="5000",
        hourly_rate=None``.

        Raises:
            EngagementNotFoundError, ValueError on unknown fields, and the
            validation errors of ``create``.
        """
        unknown = sorted(set(changes) - _UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update engagement fields: {', '.join(unknown)}")

        record = self.session.get(EngagementRecord, engagement_id)
        if record is None:
            raise EngagementNotFoundError(engagement_id)

        for key in ("start_date", "end_date"):
            if key in changes:
                changes[key] = parse_calendar_date(changes[key])

        current = self._selector.load_engagement(engagement_id)
        with LogContext.bind(engagement_id=engagement_id):
            try:
                updated = replace(current, **changes)
            except BillingValidationError as e:
                logger.warning("engagement_update_rejected", extra={
                    "fields": sorted(changes),
                    "error_code": e.code,
                    "reason": str(e),
                })
                raise

            updated = updated.with_status(
                engagement_status(updated, self._today(), self._config.tz)
            )
            _write(record, updated)
            self.session.flush()

            logger.info("engagement_updated", extra={
                "fields": sorted(changes),
                "status": updated.status.value,
            })
        return updated

    def delete(self, engagement_id: UUID) -> None:
        """Delete an engagement together with its time entries and invoices."""
        record = self.session.get(EngagementRecord, engagement_id)
        if record is None:
            raise EngagementNotFoundError(engagement_id)
        self.session.delete(record)
        self.session.flush()
        logger.info("engagement_deleted", extra={"engagement_id": str(engagement_id)})

    def get(self, engagement_id: UUID) -> Engagement:
        engagement = self._selector.load_engagement(engagement_id)
        refreshed = engagement.with_status(
            engagement_status(engagement, self._today(), self._config.tz)
        )
        self._write_statuses((refreshed,))
        return refreshed

    def refresh_statuses(self) -> tuple[Engagement, ...]:
        """Recompute every engagement's status and write back the stale caches."""
        refreshed = refresh_statuses(
            self._selector.list_engagements(), self._today(), self._config.tz
        )
        self._write_statuses(refreshed)
        return refreshed

    def list_engagements(
        self,
        status: EngagementStatus | str | None = None,
        range_key: DateRangeKey | str | None = None,
        custom_start: date | str | None = None,
        custom_end: date | str | None = None,
    ) -> tuple[Engagement, ...]:
        """
        Engagements matching ``status`` and overlapping the named range.

        The range is resolved around today in the reference timezone.  The
        status cache of every listed engagement is refreshed as a side effect.

        Raises:
            UnknownDateRangeError, InvalidDateFormatError
        """
        today = self._today()
        interval = None
        if range_key is not None:
            interval = resolve_named_range(range_key, today, custom_start, custom_end)

        engagements = self._selector.list_engagements()
        self._write_statuses(refresh_statuses(engagements, today, self._config.tz))
        result = filter_engagements(
            engagements,
            today,
            status=EngagementStatus(status) if status is not None else None,
            interval=interval,
            tz=self._config.tz,
        )
        logger.debug("engagements_listed", extra={
            "status": EngagementStatus(status).value if status is not None else None,
            "range": str(interval) if interval is not None else None,
            "result_count": len(result),
        })
        return result

    def _write_statuses(self, engagements: tuple[Engagement, ...]) -> None:
        updated = 0
        for engagement in engagements:
            record = self.session.get(EngagementRecord, engagement.id)
            if record is not None and record.status != engagement.status.value:
                record.status = engagement.status.value
                updated += 1
        if updated:
            self.session.flush()
            logger.info("engagement_status_cache_updated", extra={"updated_count": updated})
