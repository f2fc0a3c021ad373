# backend/dispatchly/schemas/availability.py
"""
Availability schemas.

A rule is a weekly window (day_of_week 0=Sunday), optionally bounded by
effective/expiry dates, or a single-date override (effective_date only).
Rules with is_available=False are blocks subtracted from open time.
An end_time of 00:00 means the end of the day.
"""

import datetime
from typing import List, Optional

from pydantic import Field, model_validator

from .base import StandardizedModel, StrictRequestModel

DateType = datetime.date
TimeType = datetime.time
DateTimeType = datetime.datetime


class AvailabilityRuleCreate(StrictRequestModel):
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    start_time: TimeType
    end_time: TimeType
    is_available: bool = True
    effective_date: Optional[DateType] = None
    expiry_date: Optional[DateType] = None

    @model_validator(mode="after")
    def require_weekday_or_date(self) -> "AvailabilityRuleCreate":
        if self.day_of_week is None and self.effective_date is None:
            raise ValueError("day_of_week or effective_date is required")
        return self


class AvailabilityRuleUpdate(StrictRequestModel):
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    start_time: Optional[TimeType] = None
    end_time: Optional[TimeType] = None
    is_available: Optional[bool] = None
    effective_date: Optional[DateType] = None
    expiry_date: Optional[DateType] = None


class AvailabilityRuleResponse(StandardizedModel):
    id: str
    provider_id: str
    day_of_week: int
    start_time: TimeType
    end_time: TimeType
    is_available: bool
    effective_date: Optional[DateType] = None
    expiry_date: Optional[DateType] = None
    created_at: Optional[DateTimeType] = None


class TimeWindowResponse(StandardizedModel):
    start_time: str
    end_time: str


class ProviderAvailabilityResponse(StandardizedModel):
    provider_id: str
    date: DateType
    windows: List[TimeWindowResponse]


class AvailableSlotsResponse(StandardizedModel):
    provider_id: str
    date: DateType
    duration_minutes: int
    start_times: List[TimeType]
