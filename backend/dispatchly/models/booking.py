# backend/dispatchly/models/booking.py
"""
Booking model for the Dispatchly scheduling engine.

A booking is a scheduled job for one customer at one address. It may be
unassigned (``provider_id`` is NULL) while it waits in the unassigned pool;
assignment happens exclusively through conditional updates in
BookingRepository so that two writers cannot both claim the same booking.

Bookings store their own service/customer snapshot so that series template
edits or service renames never rewrite history.
"""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.calendar_utils import minutes_of
from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Waiting for a provider or confirmation
    CONFIRMED = "confirmed"  # Provider assigned
    IN_PROGRESS = "in_progress"  # Provider on site
    COMPLETED = "completed"
    CANCELED = "canceled"


ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.IN_PROGRESS.value,
)

# Only bookings in these states can still be handed to a provider
ASSIGNABLE_BOOKING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
)


class AssignmentSource(str, Enum):
    """How the current provider came to own the booking."""

    MANUAL = "manual"
    AUTO = "auto"
    GRAB = "grab"
    NONE = "none"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    business_id = Column(
        String(26), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    provider_id = Column(String(26), ForeignKey("providers.id"), nullable=True)
    recurring_series_id = Column(
        String(26), ForeignKey("recurring_series.id", ondelete="SET NULL"), nullable=True
    )
    service_id = Column(String(26), ForeignKey("service_offerings.id"), nullable=True)

    # Service snapshot
    service_name = Column(String(200), nullable=False)
    service_category = Column(String(100), nullable=True)

    # Customer snapshot
    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(32), nullable=True)
    address = Column(Text, nullable=True)

    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    assignment_source = Column(String(10), nullable=False, default=AssignmentSource.NONE.value)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_now_utc, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc)

    provider = relationship("Provider", lazy="joined")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'canceled')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "assignment_source IN ('manual', 'auto', 'grab', 'none')",
            name="ck_bookings_assignment_source",
        ),
        CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        UniqueConstraint(
            "recurring_series_id", "scheduled_date", name="uq_bookings_series_occurrence"
        ),
        Index("idx_bookings_business_date", "business_id", "scheduled_date"),
        Index("idx_bookings_provider_date", "provider_id", "scheduled_date"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING.value
        if not self.assignment_source:
            self.assignment_source = AssignmentSource.NONE.value
        logger.debug(
            f"Creating booking for {self.customer_name} on {self.scheduled_date} "
            f"at {self.scheduled_time} (provider={self.provider_id})"
        )

    @property
    def start_minute(self) -> int:
        return minutes_of(self.scheduled_time)

    @property
    def end_minute(self) -> int:
        return self.start_minute + int(self.duration_minutes)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    @property
    def is_unassigned(self) -> bool:
        return self.provider_id is None

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: provider={self.provider_id}, date={self.scheduled_date}, "
            f"time={self.scheduled_time} +{self.duration_minutes}m, status={self.status}>"
        )
