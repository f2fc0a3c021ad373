# backend/dispatchly/services/capacity_guard.py
"""
Capacity Guard for the Dispatchly scheduling engine.

Enforces business-wide spot limits before any new booking is inserted,
whether it comes from intake or from the recurring-series generator.
Checks run in a fixed order and the first failure wins:

    DAILY_LIMIT_EXCEEDED -> WEEKLY_LIMIT_EXCEEDED (ISO week)
    -> MONTHLY_LIMIT_EXCEEDED -> ADVANCE_WINDOW_EXCEEDED

Only active bookings (pending, confirmed, in progress) consume capacity.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.calendar_utils import iso_week_bounds, month_bounds
from ..core.exceptions import CapacityExceededException
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .business_settings_service import BusinessSettingsService, SpotLimits

logger = logging.getLogger(__name__)


class CapacityReason(str, Enum):
    DAILY_LIMIT_EXCEEDED = "DAILY_LIMIT_EXCEEDED"
    WEEKLY_LIMIT_EXCEEDED = "WEEKLY_LIMIT_EXCEEDED"
    MONTHLY_LIMIT_EXCEEDED = "MONTHLY_LIMIT_EXCEEDED"
    ADVANCE_WINDOW_EXCEEDED = "ADVANCE_WINDOW_EXCEEDED"


_MESSAGES = {
    CapacityReason.DAILY_LIMIT_EXCEEDED: "Daily booking limit reached for this date",
    CapacityReason.WEEKLY_LIMIT_EXCEEDED: "Weekly booking limit reached for this week",
    CapacityReason.MONTHLY_LIMIT_EXCEEDED: "Monthly booking limit reached for this month",
    CapacityReason.ADVANCE_WINDOW_EXCEEDED: "Date is too far in advance",
}


@dataclass(frozen=True)
class CapacityResult:
    ok: bool
    reason: Optional[CapacityReason] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        return _MESSAGES[self.reason] if self.reason else "Capacity available"


class CapacityGuard(BaseService):
    def __init__(self, db: Session, settings_service: Optional[BusinessSettingsService] = None):
        super().__init__(db)
        self.settings_service = settings_service or BusinessSettingsService(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    def get_limits(self, business_id: str) -> SpotLimits:
        """Limits the guard enforces right now (fallbacks applied when disabled)."""
        return self.settings_service.get_spot_limits(business_id).effective()

    @BaseService.measure_operation("check_capacity")
    def check_capacity(
        self,
        business_id: str,
        on_date: date,
        today: date,
        *,
        already_counted: int = 0,
    ) -> CapacityResult:
        """
        Would one more active booking on ``on_date`` stay within every limit?

        ``already_counted`` is the number of the caller's own bookings that are
        already flushed and included in the counts (compare-after-write).
        """
        limits = self.get_limits(business_id)
        repo = self.booking_repository

        day_count = repo.count_active_between(business_id, on_date, on_date) - already_counted
        if day_count >= limits.max_bookings_per_day:
            return self._reject(
                CapacityReason.DAILY_LIMIT_EXCEEDED,
                on_date,
                count=day_count,
                limit=limits.max_bookings_per_day,
            )

        week_start, week_end = iso_week_bounds(on_date)
        week_count = repo.count_active_between(business_id, week_start, week_end) - already_counted
        if week_count >= limits.max_bookings_per_week:
            return self._reject(
                CapacityReason.WEEKLY_LIMIT_EXCEEDED,
                on_date,
                count=week_count,
                limit=limits.max_bookings_per_week,
                week_start=week_start,
            )

        month_start, month_end = month_bounds(on_date)
        month_count = (
            repo.count_active_between(business_id, month_start, month_end) - already_counted
        )
        if month_count >= limits.max_bookings_per_month:
            return self._reject(
                CapacityReason.MONTHLY_LIMIT_EXCEEDED,
                on_date,
                count=month_count,
                limit=limits.max_bookings_per_month,
            )

        days_ahead = (on_date - today).days
        if days_ahead > limits.max_advance_booking_days:
            return self._reject(
                CapacityReason.ADVANCE_WINDOW_EXCEEDED,
                on_date,
                days_ahead=days_ahead,
                limit=limits.max_advance_booking_days,
            )

        return CapacityResult(
            ok=True,
            details={
                "date": on_date,
                "day_count": day_count,
                "week_count": week_count,
                "month_count": month_count,
                "limits": limits.to_dict(),
            },
        )

    def ensure_capacity(
        self, business_id: str, on_date: date, today: date, *, already_counted: int = 0
    ) -> None:
        """Raise CapacityExceededException when check_capacity fails."""
        result = self.check_capacity(
            business_id, on_date, today, already_counted=already_counted
        )
        if not result.ok:
            raise CapacityExceededException(
                result.reason.value,
                result.message,
                details={k: str(v) for k, v in result.details.items()},
            )

    def _reject(self, reason: CapacityReason, on_date: date, **details: Any) -> CapacityResult:
        self.logger.info(f"Capacity check failed for {on_date}: {reason.value} {details}")
        prometheus_metrics.record_capacity_rejection(reason.value)
        return CapacityResult(ok=False, reason=reason, details={"date": on_date, **details})
