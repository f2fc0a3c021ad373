# backend/dispatchly/services/business_settings_service.py
"""
Business settings service.

Owns the admin-editable knobs the engine reads:
- spot limits (with defaults when never saved, fallbacks when disabled,
  and clamping on every save);
- scheduling options (auto-assign, grabbing, max minutes, holiday moves);
- holidays;
- provider availability rules (create, update, soft-disable, list).
"""

from dataclasses import asdict, dataclass
from datetime import date, time
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.calendar_utils import day_of_week, end_minutes_of, minutes_of
from ..core.config import settings
from ..core.constants import SPOT_LIMIT_BOUNDS
from ..core.exceptions import NotFoundException, ValidationException
from ..models.availability import AvailabilityRule
from ..models.business import BusinessHoliday, BusinessSchedulingOptions, BusinessSpotLimits
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpotLimits:
    """Limits as stored (or defaulted), before the enabled switch is applied."""

    max_bookings_per_day: int
    max_bookings_per_week: int
    max_bookings_per_month: int
    max_advance_booking_days: int
    enabled: bool

    def effective(self) -> "SpotLimits":
        """Limits the guard enforces; disabled limits fall back to generous caps."""
        if self.enabled:
            return self
        return SpotLimits(
            max_bookings_per_day=settings.fallback_max_bookings_per_day,
            max_bookings_per_week=settings.fallback_max_bookings_per_week,
            max_bookings_per_month=settings.fallback_max_bookings_per_month,
            max_advance_booking_days=settings.fallback_max_advance_booking_days,
            enabled=False,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SchedulingOptions:
    auto_assign_enabled: bool = True
    providers_can_grab: bool = True
    max_minutes_per_booking: Optional[int] = None
    holiday_skip_to_next: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_spot_limits() -> SpotLimits:
    return SpotLimits(
        max_bookings_per_day=settings.default_max_bookings_per_day,
        max_bookings_per_week=settings.default_max_bookings_per_week,
        max_bookings_per_month=settings.default_max_bookings_per_month,
        max_advance_booking_days=settings.default_max_advance_booking_days,
        enabled=True,
    )


def clamp_spot_limit(field_name: str, value: Any) -> int:
    """Clamp a submitted limit into its allowed range; non-numbers are rejected."""
    low, high = SPOT_LIMIT_BOUNDS[field_name]
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationException(
            f"{field_name} must be a whole number",
            code="INVALID_SPOT_LIMIT",
            details={"field": field_name, "value": value},
        )
    return max(low, min(high, number))


def _limits_from_row(row: Optional[BusinessSpotLimits]) -> SpotLimits:
    if row is None:
        return default_spot_limits()
    return SpotLimits(
        max_bookings_per_day=row.max_bookings_per_day,
        max_bookings_per_week=row.max_bookings_per_week,
        max_bookings_per_month=row.max_bookings_per_month,
        max_advance_booking_days=row.max_advance_booking_days,
        enabled=bool(row.enabled),
    )


def _options_from_row(row: Optional[BusinessSchedulingOptions]) -> SchedulingOptions:
    if row is None:
        return SchedulingOptions()
    return SchedulingOptions(
        auto_assign_enabled=bool(row.auto_assign_enabled),
        providers_can_grab=bool(row.providers_can_grab),
        max_minutes_per_booking=row.max_minutes_per_booking,
        holiday_skip_to_next=bool(row.holiday_skip_to_next),
    )


class BusinessSettingsService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_business_settings_repository(db)
        self.availability_repository = RepositoryFactory.create_availability_repository(db)
        self.provider_repository = RepositoryFactory.create_provider_repository(db)

    def ensure_business(self, business_id: str) -> None:
        if self.repository.get_by_id(business_id, load_relationships=False) is None:
            raise NotFoundException("Business not found", code="BUSINESS_NOT_FOUND")

    # Spot limits

    def get_spot_limits(self, business_id: str) -> SpotLimits:
        return _limits_from_row(self.repository.get_spot_limits(business_id))

    @BaseService.measure_operation("update_spot_limits")
    def update_spot_limits(self, business_id: str, **values: Any) -> SpotLimits:
        """Upsert limits; numeric fields are clamped to their allowed ranges."""
        self.ensure_business(business_id)
        current = self.get_spot_limits(business_id)
        merged = current.to_dict()
        for key, value in values.items():
            if value is None or key not in merged:
                continue
            merged[key] = bool(value) if key == "enabled" else clamp_spot_limit(key, value)

        with self.transaction():
            row = self.repository.upsert_spot_limits(business_id, **merged)
        self.log_operation("update_spot_limits", business_id=business_id)
        return _limits_from_row(row)

    # Scheduling options

    def get_scheduling_options(self, business_id: str) -> SchedulingOptions:
        return _options_from_row(self.repository.get_scheduling_options(business_id))

    @BaseService.measure_operation("update_scheduling_options")
    def update_scheduling_options(self, business_id: str, **values: Any) -> SchedulingOptions:
        self.ensure_business(business_id)
        merged = self.get_scheduling_options(business_id).to_dict()
        for key, value in values.items():
            if key not in merged:
                continue
            merged[key] = value
        max_minutes = merged.get("max_minutes_per_booking")
        if max_minutes is not None and int(max_minutes) <= 0:
            raise ValidationException(
                "max_minutes_per_booking must be positive",
                code="INVALID_MAX_MINUTES",
                details={"max_minutes_per_booking": max_minutes},
            )
        with self.transaction():
            row = self.repository.upsert_scheduling_options(business_id, **merged)
        return _options_from_row(row)

    # Holidays

    def list_holidays(self, business_id: str) -> List[BusinessHoliday]:
        return self.repository.list_holidays(business_id)

    def add_holiday(
        self, business_id: str, holiday_date: date, name: str, recurring: bool = False
    ) -> BusinessHoliday:
        self.ensure_business(business_id)
        if not (name or "").strip():
            raise ValidationException("Holiday name is required", code="INVALID_HOLIDAY")
        with self.transaction():
            holiday = self.repository.create_holiday(
                business_id, holiday_date, name.strip(), recurring
            )
        self.log_operation("add_holiday", business_id=business_id, holiday_date=str(holiday_date))
        return holiday

    def delete_holiday(self, business_id: str, holiday_id: str) -> None:
        with self.transaction():
            deleted = self.repository.delete_holiday(holiday_id, business_id)
        if not deleted:
            raise NotFoundException("Holiday not found", code="HOLIDAY_NOT_FOUND")

    # Availability rules

    def list_rules(self, provider_id: str, business_id: str) -> List[AvailabilityRule]:
        return self.availability_repository.list_for_provider(provider_id, business_id)

    @staticmethod
    def _validate_rule_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
        start: time = fields["start_time"]
        end: time = fields["end_time"]
        if minutes_of(start) >= end_minutes_of(end):
            raise ValidationException(
                "Rule start time must be before its end time",
                code="INVALID_TIME_RANGE",
                details={"start_time": str(start), "end_time": str(end)},
            )

        effective = fields.get("effective_date")
        expiry = fields.get("expiry_date")
        if expiry is not None and effective is None:
            raise ValidationException(
                "expiry_date requires effective_date", code="INVALID_RULE_DATES"
            )
        if expiry is not None and expiry < effective:
            raise ValidationException(
                "expiry_date must not be before effective_date", code="INVALID_RULE_DATES"
            )

        weekday = fields.get("day_of_week")
        if effective is not None and expiry is None:
            # A single-date rule can only ever match its own weekday
            derived = day_of_week(effective)
            if weekday is None:
                fields["day_of_week"] = derived
            elif int(weekday) != derived:
                raise ValidationException(
                    "day_of_week does not match effective_date",
                    code="WEEKDAY_MISMATCH",
                    details={"day_of_week": weekday, "expected": derived},
                )
        elif weekday is None or not 0 <= int(weekday) <= 6:
            raise ValidationException(
                "day_of_week must be between 0 (Sunday) and 6 (Saturday)",
                code="INVALID_DAY_OF_WEEK",
            )
        return fields

    @BaseService.measure_operation("create_rule")
    def create_rule(self, provider_id: str, business_id: str, **fields: Any) -> AvailabilityRule:
        if self.provider_repository.get_scoped(provider_id, business_id) is None:
            raise NotFoundException("Provider not found", code="PROVIDER_NOT_FOUND")
        fields.setdefault("is_available", True)
        validated = self._validate_rule_fields(dict(fields))
        with self.transaction():
            rule = self.availability_repository.create(
                provider_id=provider_id, business_id=business_id, **validated
            )
        return rule

    def update_rule(self, rule_id: str, business_id: str, **changes: Any) -> AvailabilityRule:
        rule = self.availability_repository.get_scoped(rule_id, business_id)
        if rule is None:
            raise NotFoundException("Availability rule not found", code="RULE_NOT_FOUND")
        merged = {
            "day_of_week": rule.day_of_week,
            "start_time": rule.start_time,
            "end_time": rule.end_time,
            "is_available": rule.is_available,
            "effective_date": rule.effective_date,
            "expiry_date": rule.expiry_date,
        }
        merged.update(changes)
        validated = self._validate_rule_fields(merged)
        with self.transaction():
            for key, value in validated.items():
                setattr(rule, key, value)
            self.availability_repository.flush()
        return rule

    def disable_rule(self, rule_id: str, business_id: str) -> AvailabilityRule:
        """Soft-disable: the row stays for history, flipped to unavailable."""
        return self.update_rule(rule_id, business_id, is_available=False)
