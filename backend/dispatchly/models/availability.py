# backend/dispatchly/models/availability.py
"""
Availability rule model.

A rule opens (or, with ``is_available=False``, blocks) a half-open time
window on one weekday. Which calendar dates a rule covers is decided by its
shape, derived from the two optional date columns:

    no effective_date                -> RecurringShape        (every matching weekday)
    effective_date + expiry_date     -> BoundedRecurringShape (matching weekdays in range)
    effective_date only              -> SingleDateShape       (that exact date)

The shape is never stored; rows cannot hold an impossible combination
because the expiry-without-effective case is rejected by a check constraint.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
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
    String,
    Time,
)
from sqlalchemy.sql import func
import ulid

from ..core.calendar_utils import day_of_week, end_minutes_of, minutes_of
from ..database import Base


@dataclass(frozen=True)
class RecurringShape:
    """Applies every week, forever."""


@dataclass(frozen=True)
class BoundedRecurringShape:
    effective: date
    expiry: date


@dataclass(frozen=True)
class SingleDateShape:
    on: date


RuleShape = Union[RecurringShape, BoundedRecurringShape, SingleDateShape]


def shape_applies(shape: RuleShape, d: date) -> bool:
    """Whether a rule of this shape covers ``d`` (weekday already matched)."""
    if isinstance(shape, RecurringShape):
        return True
    if isinstance(shape, BoundedRecurringShape):
        return shape.effective <= d <= shape.expiry
    if isinstance(shape, SingleDateShape):
        return shape.on == d
    raise TypeError(f"Unknown availability rule shape: {shape!r}")


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class AvailabilityRule(Base):
    """Provider availability or block for one weekday time range."""

    __tablename__ = "availability_rules"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(
        String(26), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    business_id = Column(
        String(26), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    effective_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now_utc, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc)

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_rules_day_of_week"),
        CheckConstraint(
            "expiry_date IS NULL OR effective_date IS NOT NULL",
            name="ck_rules_expiry_requires_effective",
        ),
        CheckConstraint(
            "expiry_date IS NULL OR expiry_date >= effective_date",
            name="ck_rules_expiry_after_effective",
        ),
        Index("idx_rules_provider_weekday", "provider_id", "day_of_week"),
        Index("idx_rules_business", "business_id"),
    )

    @property
    def shape(self) -> RuleShape:
        if self.effective_date is None:
            return RecurringShape()
        if self.expiry_date is not None:
            return BoundedRecurringShape(effective=self.effective_date, expiry=self.expiry_date)
        return SingleDateShape(on=self.effective_date)

    @property
    def is_single_date(self) -> bool:
        return isinstance(self.shape, SingleDateShape)

    def applies_on(self, d: date) -> bool:
        return self.day_of_week == day_of_week(d) and shape_applies(self.shape, d)

    @property
    def start_minute(self) -> int:
        return minutes_of(self.start_time)

    @property
    def end_minute(self) -> int:
        return end_minutes_of(self.end_time)

    def __repr__(self) -> str:
        kind = "open" if self.is_available else "block"
        return (
            f"<AvailabilityRule {self.id} provider={self.provider_id} dow={self.day_of_week} "
            f"{self.start_time}-{self.end_time} {kind} shape={self.shape}>"
        )
