# backend/dispatchly/models/recurring.py
"""
Recurring series models.

A series is a booking template plus a frequency. The generator materializes
future occurrences up to a horizon and records how far it has processed in
``generated_through`` (the watermark): every date before it has been
processed, the watermark date itself has not. It only moves forward.

Frequencies are a tagged variant derived from ``frequency_kind``:

    interval_days -> IntervalFrequency(days)   every N days from start_date
    monthly_day   -> MonthlyDayFrequency(months) same day-of-month every N months
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Union

from sqlalchemy import (
    Boolean,
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
from sqlalchemy.sql import func
import ulid

from ..database import Base


class SeriesStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


class FrequencyKind(str, Enum):
    INTERVAL_DAYS = "interval_days"
    MONTHLY_DAY = "monthly_day"


# Named cadences accepted at the API edge
NAMED_FREQUENCIES = {
    "daily": (FrequencyKind.INTERVAL_DAYS, 1),
    "weekly": (FrequencyKind.INTERVAL_DAYS, 7),
    "biweekly": (FrequencyKind.INTERVAL_DAYS, 14),
    "monthly": (FrequencyKind.MONTHLY_DAY, 1),
    "yearly": (FrequencyKind.MONTHLY_DAY, 12),
}


@dataclass(frozen=True)
class IntervalFrequency:
    days: int


@dataclass(frozen=True)
class MonthlyDayFrequency:
    """Same day-of-month as the series start, clamped to short months."""

    months: int = 1


Frequency = Union[IntervalFrequency, MonthlyDayFrequency]


class DeferralReason(str, Enum):
    DAILY_LIMIT_EXCEEDED = "DAILY_LIMIT_EXCEEDED"
    WEEKLY_LIMIT_EXCEEDED = "WEEKLY_LIMIT_EXCEEDED"
    MONTHLY_LIMIT_EXCEEDED = "MONTHLY_LIMIT_EXCEEDED"
    ADVANCE_WINDOW_EXCEEDED = "ADVANCE_WINDOW_EXCEEDED"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class RecurringSeries(Base):
    __tablename__ = "recurring_series"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    business_id = Column(
        String(26), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    status = Column(String(10), nullable=False, default=SeriesStatus.ACTIVE.value)

    # Booking template
    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(32), nullable=True)
    address = Column(Text, nullable=True)
    service_id = Column(String(26), ForeignKey("service_offerings.id"), nullable=True)
    service_name = Column(String(200), nullable=False)
    service_category = Column(String(100), nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    duration_minutes = Column(Integer, nullable=False)
    scheduled_time = Column(Time, nullable=False)
    notes = Column(Text, nullable=True)
    preferred_provider_id = Column(String(26), ForeignKey("providers.id"), nullable=True)

    # Cadence
    frequency_kind = Column(String(20), nullable=False)
    interval_days = Column(Integer, nullable=True)
    interval_months = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    holiday_override = Column(Boolean, nullable=False, default=False)

    # Exclusive: dates before this have been processed
    generated_through = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_now_utc, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'paused', 'ended')", name="ck_recurring_series_status"
        ),
        CheckConstraint(
            "frequency_kind IN ('interval_days', 'monthly_day')",
            name="ck_recurring_series_frequency_kind",
        ),
        CheckConstraint(
            "frequency_kind <> 'interval_days' OR interval_days >= 1",
            name="ck_recurring_series_interval_positive",
        ),
        CheckConstraint("duration_minutes > 0", name="ck_recurring_series_duration_positive"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date", name="ck_recurring_series_end_after_start"
        ),
        Index("idx_recurring_series_business_status", "business_id", "status"),
    )

    @property
    def frequency(self) -> Frequency:
        if self.frequency_kind == FrequencyKind.INTERVAL_DAYS.value:
            return IntervalFrequency(days=int(self.interval_days))
        if self.frequency_kind == FrequencyKind.MONTHLY_DAY.value:
            return MonthlyDayFrequency(months=int(self.interval_months or 1))
        raise ValueError(f"Unknown frequency kind: {self.frequency_kind}")

    @property
    def is_active(self) -> bool:
        return self.status == SeriesStatus.ACTIVE.value

    def __repr__(self) -> str:
        return (
            f"<RecurringSeries {self.id} {self.frequency} from={self.start_date} "
            f"through={self.generated_through} status={self.status}>"
        )


class DeferredOccurrence(Base):
    """A series date the capacity guard refused; kept for admins to resolve."""

    __tablename__ = "deferred_occurrences"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    series_id = Column(
        String(26), ForeignKey("recurring_series.id", ondelete="CASCADE"), nullable=False
    )
    business_id = Column(
        String(26), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    occurrence_date = Column(Date, nullable=False)
    reason = Column(String(40), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now_utc, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("series_id", "occurrence_date", name="uq_deferred_series_date"),
        Index("idx_deferred_business_date", "business_id", "occurrence_date"),
    )

    def __repr__(self) -> str:
        return f"<DeferredOccurrence series={self.series_id} {self.occurrence_date} {self.reason}>"
