# backend/dispatchly/schemas/booking.py
"""Booking intake and booking response schemas."""

import datetime
from decimal import Decimal
from typing import Optional

from pydantic import EmailStr, Field, model_validator

from .assignment import AssignmentOutcomeResponse
from .base import Money, StandardizedModel, StrictRequestModel

DateType = datetime.date
TimeType = datetime.time
DateTimeType = datetime.datetime


class BookingCreate(StrictRequestModel):
    """
    New one-off booking.

    Either service_id (a catalog offering) or service_name must be given.
    provider_id places the booking directly with that provider; without it
    the booking is auto-assigned or left in the unassigned pool.
    """

    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = None
    service_id: Optional[str] = None
    service_name: Optional[str] = Field(None, max_length=200)
    service_category: Optional[str] = Field(None, max_length=100)
    scheduled_date: DateType
    scheduled_time: TimeType
    duration_minutes: int = Field(..., gt=0)
    price: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None
    provider_id: Optional[str] = None

    @model_validator(mode="after")
    def require_service(self) -> "BookingCreate":
        if not self.service_id and not self.service_name:
            raise ValueError("service_id or service_name is required")
        return self


class BookingResponse(StandardizedModel):
    id: str
    business_id: str
    provider_id: Optional[str] = None
    recurring_series_id: Optional[str] = None
    service_id: Optional[str] = None
    service_name: str
    service_category: Optional[str] = None
    customer_name: str
    scheduled_date: DateType
    scheduled_time: TimeType
    duration_minutes: int
    price: Money
    status: str
    assignment_source: str
    created_at: Optional[DateTimeType] = None


class BookingCreateResponse(StandardizedModel):
    booking: BookingResponse
    assignment: Optional[AssignmentOutcomeResponse] = None
