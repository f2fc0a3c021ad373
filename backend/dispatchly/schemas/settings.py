# backend/dispatchly/schemas/settings.py
"""Business settings schemas: spot limits, scheduling options, holidays, capacity."""

import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from .base import StandardizedModel, StrictRequestModel


class SpotLimitsUpdate(StrictRequestModel):
    """Submitted limits are clamped into range rather than rejected."""

    max_bookings_per_day: Optional[int] = None
    max_bookings_per_week: Optional[int] = None
    max_bookings_per_month: Optional[int] = None
    max_advance_booking_days: Optional[int] = None
    enabled: Optional[bool] = None


class SpotLimitsResponse(StandardizedModel):
    max_bookings_per_day: int
    max_bookings_per_week: int
    max_bookings_per_month: int
    max_advance_booking_days: int
    enabled: bool


class SchedulingOptionsUpdate(StrictRequestModel):
    auto_assign_enabled: Optional[bool] = None
    providers_can_grab: Optional[bool] = None
    max_minutes_per_booking: Optional[int] = Field(None, gt=0)
    holiday_skip_to_next: Optional[bool] = None


class SchedulingOptionsResponse(StandardizedModel):
    auto_assign_enabled: bool
    providers_can_grab: bool
    max_minutes_per_booking: Optional[int] = None
    holiday_skip_to_next: bool


class HolidayCreate(StrictRequestModel):
    holiday_date: datetime.date
    name: str = Field(..., min_length=1, max_length=200)
    recurring: bool = False


class HolidayResponse(StandardizedModel):
    id: str
    holiday_date: datetime.date
    name: str
    recurring: bool


class CapacityStatusResponse(StandardizedModel):
    date: datetime.date
    ok: bool
    reason: Optional[str] = None
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
