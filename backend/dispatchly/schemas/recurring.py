# backend/dispatchly/schemas/recurring.py
"""
Recurring series schemas.

A cadence is given either by name (daily, weekly, biweekly, monthly,
yearly) or explicitly with frequency_kind plus interval_days or
interval_months.
"""

import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import EmailStr, Field, model_validator

from .base import StandardizedModel, StrictRequestModel

DateType = datetime.date


class RecurringSeriesCreate(StrictRequestModel):
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = None
    service_id: Optional[str] = None
    service_name: Optional[str] = Field(None, max_length=200)
    service_category: Optional[str] = Field(None, max_length=100)
    scheduled_time: datetime.time
    duration_minutes: int = Field(..., gt=0)
    price: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None
    preferred_provider_id: Optional[str] = None

    frequency: Optional[Literal["daily", "weekly", "biweekly", "monthly", "yearly"]] = None
    frequency_kind: Optional[Literal["interval_days", "monthly_day"]] = None
    interval_days: Optional[int] = Field(None, ge=1)
    interval_months: Optional[int] = Field(None, ge=1)
    start_date: DateType
    end_date: Optional[DateType] = None
    holiday_override: bool = False
    horizon_date: Optional[DateType] = None

    @model_validator(mode="after")
    def require_cadence(self) -> "RecurringSeriesCreate":
        if self.frequency is None and self.frequency_kind is None:
            raise ValueError("frequency or frequency_kind is required")
        if self.frequency_kind == "interval_days" and self.interval_days is None:
            raise ValueError("interval_days is required for interval_days frequency")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ExtendSeriesRequest(StrictRequestModel):
    horizon_date: Optional[DateType] = None


class ExtensionResponse(StandardizedModel):
    series_id: str
    created: int
    deferred: int
    skipped_holidays: int
    skipped_duplicates: int
    skipped_past: int
    recovered: int = 0
    watermark: Optional[DateType] = None
    created_booking_ids: List[str] = Field(default_factory=list)


class ExtendAllResponse(StandardizedModel):
    series_count: int
    created: int
    deferred: int
    failed: int
    failed_series_ids: List[str] = Field(default_factory=list)


class DeferredOccurrenceResponse(StandardizedModel):
    id: str
    series_id: str
    occurrence_date: DateType
    reason: str
    created_at: Optional[datetime.datetime] = None
