# backend/dispatchly/models/business.py
"""
Business (tenant) models.

Every scheduling row belongs to exactly one business. Business-wide knobs
live in companion tables that may be absent; services apply defaults when
no row exists.

Classes:
    Business: The tenant itself
    BusinessSchedulingOptions: Auto-assign, grab and holiday behavior
    BusinessSpotLimits: Daily/weekly/monthly/advance-window capacity
    BusinessHoliday: Closed dates, optionally repeating every year
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Business(Base):
    __tablename__ = "businesses"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")
    created_at = Column(DateTime(timezone=True), default=_now_utc, server_default=func.now())

    scheduling_options = relationship(
        "BusinessSchedulingOptions", uselist=False, back_populates="business"
    )
    spot_limits = relationship("BusinessSpotLimits", uselist=False, back_populates="business")

    def __repr__(self) -> str:
        return f"<Business {self.id} {self.name!r}>"


class BusinessSchedulingOptions(Base):
    """Per-business switches consulted by intake, the selector and the generator."""

    __tablename__ = "business_scheduling_options"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    business_id = Column(
        String(26), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    auto_assign_enabled = Column(Boolean, nullable=False, default=True)
    providers_can_grab = Column(Boolean, nullable=False, default=True)
    max_minutes_per_booking = Column(Integer, nullable=True)
    holiday_skip_to_next = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc)

    business = relationship("Business", back_populates="scheduling_options")

    __table_args__ = (
        CheckConstraint(
            "max_minutes_per_booking IS NULL OR max_minutes_per_booking > 0",
            name="ck_scheduling_options_max_minutes_positive",
        ),
    )


class BusinessSpotLimits(Base):
    """Capacity caps; when ``enabled`` is false the configured fallbacks apply."""

    __tablename__ = "business_spot_limits"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    business_id = Column(
        String(26), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    max_bookings_per_day = Column(Integer, nullable=False, default=10)
    max_bookings_per_week = Column(Integer, nullable=False, default=50)
    max_bookings_per_month = Column(Integer, nullable=False, default=200)
    max_advance_booking_days = Column(Integer, nullable=False, default=90)
    enabled = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc)

    business = relationship("Business", back_populates="spot_limits")

    __table_args__ = (
        CheckConstraint("max_bookings_per_day >= 1", name="ck_spot_limits_day_positive"),
        CheckConstraint("max_bookings_per_week >= 1", name="ck_spot_limits_week_positive"),
        CheckConstraint("max_bookings_per_month >= 1", name="ck_spot_limits_month_positive"),
        CheckConstraint("max_advance_booking_days >= 1", name="ck_spot_limits_advance_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<BusinessSpotLimits {self.business_id}: day={self.max_bookings_per_day} "
            f"week={self.max_bookings_per_week} month={self.max_bookings_per_month} "
            f"advance={self.max_advance_booking_days} enabled={self.enabled}>"
        )


class BusinessHoliday(Base):
    """Business closure date. Recurring holidays repeat on the same month/day."""

    __tablename__ = "business_holidays"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    business_id = Column(
        String(26), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    holiday_date = Column(Date, nullable=False)
    name = Column(String(120), nullable=False)
    recurring = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_now_utc, server_default=func.now())

    __table_args__ = (Index("idx_business_holidays_business_date", "business_id", "holiday_date"),)

    def __repr__(self) -> str:
        suffix = " (yearly)" if self.recurring else ""
        return f"<BusinessHoliday {self.holiday_date} {self.name}{suffix}>"
