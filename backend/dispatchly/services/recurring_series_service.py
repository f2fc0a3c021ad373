# backend/dispatchly/services/recurring_series_service.py
"""
Recurring Series Generator.

Materializes future bookings from recurring series up to a horizon date.
A run over one series is idempotent and safe to repeat or race:

- the watermark (``generated_through``) only moves forward, and only after
  every candidate date up to the new watermark has been processed
- dates that already have a booking for the series are skipped regardless
  of the watermark, and the (series, date) unique constraint backs that up
- capacity refusals become DeferredOccurrence rows, recorded once and
  retried by later runs until placed

New bookings are handed to the assignment selector after the generation
transaction commits, so an assignment failure never undoes a booking.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
import logging
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.orm import Session

from ..core.calendar_utils import add_months, holiday_matches
from ..core.config import settings
from ..core.constants import MAX_BOOKING_DURATION, MIN_BOOKING_DURATION
from ..core.exceptions import (
    DomainException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..database import with_db_retry
from ..events.scheduling_events import EventKind, SchedulingEvent
from ..models.booking import AssignmentSource, BookingStatus
from ..models.recurring import (
    NAMED_FREQUENCIES,
    DeferredOccurrence,
    Frequency,
    FrequencyKind,
    IntervalFrequency,
    MonthlyDayFrequency,
    RecurringSeries,
    SeriesStatus,
)
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .assignment_selector import AssignmentSelector
from .base import BaseService
from .business_settings_service import BusinessSettingsService
from .capacity_guard import CapacityGuard
from .notification_hook import NotificationHook

logger = logging.getLogger(__name__)


def occurrence_dates(
    start_date: date, frequency: Frequency, cursor: date, stop: date
) -> Iterator[date]:
    """
    Yield the series' scheduled dates in ``[cursor, stop)``.

    Dates stay on the grid anchored at ``start_date``; a cursor that falls
    between occurrences resumes at the next grid date.
    """
    if stop <= cursor:
        return
    if isinstance(frequency, IntervalFrequency):
        step = frequency.days
        offset = max(0, (cursor - start_date).days)
        k = -(-offset // step)
        current = start_date + timedelta(days=k * step)
        while current < stop:
            yield current
            current += timedelta(days=step)
        return

    if isinstance(frequency, MonthlyDayFrequency):
        months_apart = (cursor.year - start_date.year) * 12 + cursor.month - start_date.month
        k = max(0, months_apart // frequency.months - 1)
        while True:
            current = add_months(start_date, k * frequency.months)
            if current >= stop:
                return
            if current >= cursor:
                yield current
            k += 1
    else:
        raise ValueError(f"Unsupported frequency: {frequency!r}")


@dataclass
class ExtensionResult:
    series_id: str
    created: int = 0
    deferred: int = 0
    skipped_holidays: int = 0
    skipped_duplicates: int = 0
    skipped_past: int = 0
    recovered: int = 0
    watermark: Optional[date] = None
    created_booking_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "series_id": self.series_id,
            "created": self.created,
            "deferred": self.deferred,
            "skipped_holidays": self.skipped_holidays,
            "skipped_duplicates": self.skipped_duplicates,
            "skipped_past": self.skipped_past,
            "recovered": self.recovered,
            "watermark": self.watermark,
            "created_booking_ids": list(self.created_booking_ids),
        }


@dataclass
class ExtendAllResult:
    series_count: int = 0
    created: int = 0
    deferred: int = 0
    failed: int = 0
    failed_series_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "series_count": self.series_count,
            "created": self.created,
            "deferred": self.deferred,
            "failed": self.failed,
            "failed_series_ids": list(self.failed_series_ids),
        }


@dataclass(frozen=True)
class _Deferral:
    occurrence_date: date
    reason: str


class RecurringSeriesService(BaseService):
    def __init__(
        self,
        db: Session,
        notification_hook: Optional[NotificationHook] = None,
        selector: Optional[AssignmentSelector] = None,
    ):
        super().__init__(db)
        self.notification_hook = notification_hook or NotificationHook(db)
        self.selector = selector or AssignmentSelector(db, notification_hook=self.notification_hook)
        self.settings_service = BusinessSettingsService(db)
        self.capacity_guard = CapacityGuard(db, settings_service=self.settings_service)
        self.repository = RepositoryFactory.create_recurring_series_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.business_repository = RepositoryFactory.create_business_settings_repository(db)
        self.provider_repository = RepositoryFactory.create_provider_repository(db)

    @staticmethod
    def default_horizon(today: date) -> date:
        return today + timedelta(days=settings.series_horizon_days)

    # Series lifecycle

    @staticmethod
    def _resolve_frequency(data: Dict[str, Any]) -> Dict[str, Any]:
        named = data.get("frequency")
        if named:
            key = str(named).lower()
            if key not in NAMED_FREQUENCIES:
                raise ValidationException(
                    f"Unknown frequency '{named}'",
                    code="INVALID_FREQUENCY",
                    details={"allowed": sorted(NAMED_FREQUENCIES)},
                )
            kind, amount = NAMED_FREQUENCIES[key]
        else:
            kind = FrequencyKind(data.get("frequency_kind") or FrequencyKind.INTERVAL_DAYS.value)
            amount = (
                data.get("interval_days")
                if kind == FrequencyKind.INTERVAL_DAYS
                else data.get("interval_months") or 1
            )
        if amount is None or int(amount) < 1:
            raise ValidationException(
                "Frequency interval must be at least 1", code="INVALID_FREQUENCY"
            )
        if kind == FrequencyKind.INTERVAL_DAYS:
            return {"frequency_kind": kind.value, "interval_days": int(amount), "interval_months": None}
        return {"frequency_kind": kind.value, "interval_days": None, "interval_months": int(amount)}

    @BaseService.measure_operation("create_series")
    def create_series(
        self,
        business_id: str,
        data: Dict[str, Any],
        today: date,
        now: datetime,
        horizon_date: Optional[date] = None,
    ) -> ExtensionResult:
        """
        Create a series from a booking template and generate its first horizon.

        Raises:
            ValidationException: bad cadence, dates or duration
            NotFoundException: unknown service or preferred provider
        """
        self.settings_service.ensure_business(business_id)

        start_date: date = data["start_date"]
        end_date: Optional[date] = data.get("end_date")
        if start_date < today:
            raise ValidationException(
                "Series cannot start in the past", code="PAST_DATE", details={"start_date": str(start_date)}
            )
        if end_date is not None and end_date < start_date:
            raise ValidationException("end_date must not be before start_date", code="INVALID_DATE_RANGE")

        duration = int(data["duration_minutes"])
        if not MIN_BOOKING_DURATION <= duration <= MAX_BOOKING_DURATION:
            raise ValidationException(
                f"Duration must be between {MIN_BOOKING_DURATION} and {MAX_BOOKING_DURATION} minutes",
                code="INVALID_DURATION",
            )

        service_name = data.get("service_name")
        service_category = data.get("service_category")
        service_id = data.get("service_id")
        if service_id:
            service = self.provider_repository.get_service(service_id, business_id)
            if service is None:
                raise NotFoundException("Service not found", code="SERVICE_NOT_FOUND")
            service_name = service_name or service.name
            service_category = service_category or service.category
        if not service_name:
            raise ValidationException("service_name or service_id is required", code="MISSING_SERVICE")

        preferred = data.get("preferred_provider_id")
        if preferred and self.provider_repository.get_scoped(preferred, business_id) is None:
            raise NotFoundException("Preferred provider not found", code="PROVIDER_NOT_FOUND")

        with self.transaction():
            series = self.repository.create(
                business_id=business_id,
                status=SeriesStatus.ACTIVE.value,
                customer_name=data["customer_name"],
                customer_email=data.get("customer_email"),
                customer_phone=data.get("customer_phone"),
                address=data.get("address"),
                service_id=service_id,
                service_name=service_name,
                service_category=service_category,
                price=data.get("price") or 0,
                duration_minutes=duration,
                scheduled_time=data["scheduled_time"],
                notes=data.get("notes"),
                preferred_provider_id=preferred,
                start_date=start_date,
                end_date=end_date,
                holiday_override=bool(data.get("holiday_override", False)),
                **self._resolve_frequency(data),
            )
        self.log_operation("create_series", series_id=series.id, business_id=business_id)

        horizon = horizon_date or self.default_horizon(today)
        return self.extend(series.id, business_id, horizon, today, now)

    def set_status(self, series_id: str, business_id: str, status: SeriesStatus) -> RecurringSeries:
        series = self.repository.get_scoped(series_id, business_id)
        if series is None:
            raise NotFoundException("Recurring series not found", code="SERIES_NOT_FOUND")
        with self.transaction():
            series.status = status.value
            self.repository.flush()
        return series

    def list_deferred(
        self, business_id: str, from_date: Optional[date] = None
    ) -> List[DeferredOccurrence]:
        return self.repository.list_deferred(business_id, from_date)

    # Generation

    def _is_holiday(self, holidays: List[Any], d: date) -> bool:
        return any(holiday_matches(h.holiday_date, bool(h.recurring), d) for h in holidays)

    def _next_open_date(self, holidays: List[Any], d: date) -> Optional[date]:
        candidate = d
        for _ in range(settings.holiday_skip_max_attempts):
            candidate += timedelta(days=1)
            if not self._is_holiday(holidays, candidate):
                return candidate
        return None

    def _template_for(self, series: RecurringSeries, on_date: date) -> Dict[str, Any]:
        return {
            "business_id": series.business_id,
            "recurring_series_id": series.id,
            "service_id": series.service_id,
            "service_name": series.service_name,
            "service_category": series.service_category,
            "customer_name": series.customer_name,
            "customer_email": series.customer_email,
            "customer_phone": series.customer_phone,
            "address": series.address,
            "scheduled_date": on_date,
            "scheduled_time": series.scheduled_time,
            "duration_minutes": series.duration_minutes,
            "price": series.price,
            "notes": series.notes,
            "status": BookingStatus.PENDING.value,
            "assignment_source": AssignmentSource.NONE.value,
        }

    def _place(
        self,
        series: RecurringSeries,
        target: date,
        today: date,
        result: ExtensionResult,
        deferrals: List[_Deferral],
    ) -> bool:
        """Capacity-check and insert one occurrence. Returns True when a booking was created."""
        capacity = self.capacity_guard.check_capacity(series.business_id, target, today)
        if not capacity.ok:
            recorded = self.repository.record_deferral(
                series.id, series.business_id, target, capacity.reason.value
            )
            result.deferred += 1
            if recorded is not None:
                deferrals.append(_Deferral(target, capacity.reason.value))
            return False

        booking = self.booking_repository.create_series_occurrence(**self._template_for(series, target))
        if booking is None:
            result.skipped_duplicates += 1
            return False
        self.repository.clear_deferral(series.id, target)
        result.created += 1
        result.created_booking_ids.append(booking.id)
        return True

    def _generate(
        self, series_id: str, business_id: str, horizon_date: date, today: date
    ) -> tuple:
        """One generation transaction. Returns (result, deferrals, series)."""
        result = ExtensionResult(series_id=series_id)
        deferrals: List[_Deferral] = []
        try:
            series = self.repository.get_scoped(series_id, business_id)
            if series is None:
                raise NotFoundException("Recurring series not found", code="SERIES_NOT_FOUND")
            result.watermark = series.generated_through
            if not series.is_active:
                return result, deferrals, series

            stop = horizon_date
            if series.end_date is not None:
                stop = min(horizon_date, series.end_date + timedelta(days=1))
            cursor = max(series.generated_through or series.start_date, series.start_date)
            open_deferrals = self.repository.list_open_deferrals(series.id, today, stop)
            if cursor >= stop and not open_deferrals:
                return result, deferrals, series

            # Serializes capacity counting with intake for this business
            self.business_repository.lock_business(business_id)
            options = self.settings_service.get_scheduling_options(business_id)
            holidays = self.business_repository.list_holidays(business_id)
            skip_window = stop + timedelta(days=settings.holiday_skip_max_attempts)
            existing = self.booking_repository.series_dates_between(
                series.id, min(cursor, today), skip_window
            )

            # Dates refused earlier get another try once capacity frees up
            retried = set()
            for deferral in open_deferrals:
                target = deferral.occurrence_date
                retried.add(target)
                if target in existing:
                    self.repository.clear_deferral(series.id, target)
                    continue
                if not series.holiday_override and self._is_holiday(holidays, target):
                    continue
                if self._place(series, target, today, result, deferrals):
                    existing.add(target)
                    result.recovered += 1

            for candidate in occurrence_dates(series.start_date, series.frequency, cursor, stop):
                target = candidate
                if not series.holiday_override and self._is_holiday(holidays, candidate):
                    moved = self._next_open_date(holidays, candidate) if options.holiday_skip_to_next else None
                    if moved is None or (series.end_date is not None and moved > series.end_date):
                        result.skipped_holidays += 1
                        continue
                    target = moved

                if target < today:
                    result.skipped_past += 1
                    continue
                if target in retried:
                    continue
                if target in existing:
                    result.skipped_duplicates += 1
                    continue
                if self._place(series, target, today, result, deferrals):
                    existing.add(target)

            if cursor < stop:
                self.repository.advance_watermark(series.id, stop)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(series)
        result.watermark = series.generated_through
        return result, deferrals, series

    @BaseService.measure_operation("extend_series")
    def extend(
        self,
        series_id: str,
        business_id: str,
        horizon_date: date,
        today: date,
        now: Optional[datetime] = None,
    ) -> ExtensionResult:
        """
        Generate the series' bookings for dates before ``horizon_date``.

        Open deferrals before the horizon are retried first; the watermark
        then moves to ``horizon_date`` (or the day after ``end_date``).

        Raises:
            NotFoundException: when the series is not in the business
        """
        now = now or datetime.combine(today, time(0))
        result, deferrals, series = with_db_retry(
            "extend_series",
            lambda: self._generate(series_id, business_id, horizon_date, today),
        )

        prometheus_metrics.record_series_occurrence("created", result.created)
        prometheus_metrics.record_series_occurrence("deferred", result.deferred)
        prometheus_metrics.record_series_occurrence("skipped_holiday", result.skipped_holidays)
        prometheus_metrics.record_series_occurrence("skipped_duplicate", result.skipped_duplicates)
        self.log_operation(
            "extend_series",
            series_id=series_id,
            created=result.created,
            deferred=result.deferred,
            watermark=str(result.watermark),
        )

        for deferral in deferrals:
            self.notification_hook.notify(
                SchedulingEvent(
                    kind=EventKind.GENERATION_DEFERRED,
                    business_id=business_id,
                    entity_type="recurring_series",
                    entity_id=series_id,
                    occurred_at=now,
                    summary=(
                        f"{series.service_name} for {series.customer_name} on "
                        f"{deferral.occurrence_date} was not scheduled: {deferral.reason}"
                    ),
                    payload={
                        "scheduled_date": deferral.occurrence_date,
                        "reason": deferral.reason,
                        "service_name": series.service_name,
                    },
                )
            )

        if result.created_booking_ids:
            self._assign_new_bookings(series, result.created_booking_ids, now)
        return result

    def _assign_new_bookings(
        self, series: RecurringSeries, booking_ids: List[str], now: datetime
    ) -> None:
        options = self.settings_service.get_scheduling_options(series.business_id)
        if not options.auto_assign_enabled:
            return
        for booking_id in booking_ids:
            try:
                if series.preferred_provider_id:
                    outcome = self.selector.assign_preferred(
                        booking_id, series.preferred_provider_id, series.business_id, now
                    )
                    if outcome.assigned:
                        continue
                self.selector.auto_assign(booking_id, series.business_id, now)
            except (DomainException, RepositoryException) as exc:
                self.logger.error(f"Assignment failed for generated booking {booking_id}: {exc}")
                self.db.rollback()

    @BaseService.measure_operation("extend_all_series")
    def extend_all(
        self,
        business_id: str,
        horizon_date: Optional[date],
        today: date,
        now: Optional[datetime] = None,
    ) -> ExtendAllResult:
        """Extend every active series; one failing series never stops the rest."""
        horizon = horizon_date or self.default_horizon(today)
        totals = ExtendAllResult()
        series_ids = [s.id for s in self.repository.list_active(business_id)]
        for series_id in series_ids:
            totals.series_count += 1
            try:
                result = self.extend(series_id, business_id, horizon, today, now)
            except Exception as exc:
                self.logger.error(f"Failed to extend series {series_id}: {exc}")
                self.db.rollback()
                totals.failed += 1
                totals.failed_series_ids.append(series_id)
                continue
            totals.created += result.created
            totals.deferred += result.deferred
        return totals
