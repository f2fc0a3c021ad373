# backend/dispatchly/services/conflict_checker.py
"""
Conflict Checker Service for the Dispatchly scheduling engine.

Answers one question: can this provider take a job of this length at this
time on this date? Containment in a resolved availability window is checked
before overlap, so a job that is too long for any window is reported as
OUTSIDE_AVAILABILITY even if it would also collide with a booking.

Intervals are half-open: [a, b) and [c, d) overlap iff a < d and c < b, so a
booking ending at 11:00 does not conflict with one starting at 11:00.
"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
import logging
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.calendar_utils import minutes_of
from ..core.constants import MINUTES_PER_DAY
from ..core.exceptions import ValidationException
from ..models.booking import Booking
from ..repositories.factory import RepositoryFactory
from .availability_resolver import AvailabilityResolver, TimeWindow
from .base import BaseService

logger = logging.getLogger(__name__)


class FitReason(str, Enum):
    OUTSIDE_AVAILABILITY = "OUTSIDE_AVAILABILITY"
    OVERLAP = "OVERLAP"


@dataclass(frozen=True)
class FitResult:
    ok: bool
    reason: Optional[FitReason] = None
    conflicting_booking_ids: List[str] = field(default_factory=list)


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and b_start < a_end


def evaluate_fit(
    windows: Sequence[TimeWindow],
    bookings: Iterable[Booking],
    start_minute: int,
    end_minute: int,
) -> FitResult:
    """Pure fit evaluation against resolved windows and existing bookings."""
    if end_minute > MINUTES_PER_DAY or not any(
        w.contains(start_minute, end_minute) for w in windows
    ):
        return FitResult(ok=False, reason=FitReason.OUTSIDE_AVAILABILITY)

    conflicts = [
        b.id
        for b in bookings
        if intervals_overlap(start_minute, end_minute, b.start_minute, b.end_minute)
    ]
    if conflicts:
        return FitResult(ok=False, reason=FitReason.OVERLAP, conflicting_booking_ids=conflicts)
    return FitResult(ok=True)


class ConflictChecker(BaseService):
    """Checks provider availability and double-booking for a proposed job."""

    def __init__(self, db: Session, resolver: Optional[AvailabilityResolver] = None):
        super().__init__(db)
        self.resolver = resolver or AvailabilityResolver(db)
        self.repository = RepositoryFactory.create_conflict_checker_repository(db)

    @staticmethod
    def _validate_duration(duration_minutes: int) -> None:
        if duration_minutes is None or int(duration_minutes) <= 0:
            raise ValidationException(
                "Duration must be a positive number of minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": duration_minutes},
            )

    @BaseService.measure_operation("fits")
    def fits(
        self,
        provider_id: str,
        business_id: str,
        on_date: date,
        start_time: time,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> FitResult:
        self._validate_duration(duration_minutes)
        start = minutes_of(start_time)
        end = start + int(duration_minutes)

        windows = self.resolver.resolve(provider_id, business_id, on_date)
        result = evaluate_fit(windows, [], start, end)
        if not result.ok:
            return result

        bookings = self.repository.get_bookings_for_conflict_check(
            provider_id, business_id, on_date, exclude_booking_id=exclude_booking_id
        )
        return evaluate_fit(windows, bookings, start, end)

    def find_overlaps(
        self,
        provider_id: str,
        business_id: str,
        on_date: date,
        start_time: time,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """Active bookings of the provider that collide with the interval."""
        self._validate_duration(duration_minutes)
        start = minutes_of(start_time)
        end = start + int(duration_minutes)
        return [
            b
            for b in self.repository.get_bookings_for_conflict_check(
                provider_id, business_id, on_date, exclude_booking_id=exclude_booking_id
            )
            if intervals_overlap(start, end, b.start_minute, b.end_minute)
        ]

    def booked_intervals(
        self, provider_id: str, business_id: str, on_date: date
    ) -> List[TimeWindow]:
        """The provider's occupied intervals on a date, sorted."""
        return sorted(
            TimeWindow(b.start_minute, min(b.end_minute, MINUTES_PER_DAY))
            for b in self.repository.get_bookings_for_conflict_check(
                provider_id, business_id, on_date
            )
        )
