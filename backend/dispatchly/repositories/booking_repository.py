# backend/dispatchly/repositories/booking_repository.py
"""
Booking Repository for the Dispatchly scheduling engine

Implements booking data access, including the two writes that must be safe
under concurrency:

- ``assign_provider_if_unassigned``: a single conditional UPDATE guarded by
  ``provider_id IS NULL``. Zero affected rows means another writer claimed
  the booking first; callers treat that as a normal outcome.
- ``create_series_occurrence``: inserts inside a savepoint so a unique
  (series, date) collision from a concurrent generator run is reported as
  "already exists" without poisoning the surrounding transaction.
"""

from datetime import date, datetime
import logging
from typing import List, Optional, Set

from sqlalchemy import case
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import (
    ACTIVE_BOOKING_STATUSES,
    ASSIGNABLE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    # Capacity counts

    def count_active_between(self, business_id: str, start_date: date, end_date: date) -> int:
        """Active bookings for the business with start_date <= date <= end_date."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.business_id == business_id,
                    Booking.scheduled_date >= start_date,
                    Booking.scheduled_date <= end_date,
                    Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                )
                .count()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting active bookings: {str(e)}")
            raise RepositoryException(f"Failed to count bookings: {str(e)}")

    # Unassigned pool

    def list_unassigned(self, business_id: str, from_date: date, limit: int = 100) -> List[Booking]:
        """Assignable bookings without a provider, soonest first."""
        query = (
            self.db.query(Booking)
            .filter(
                Booking.business_id == business_id,
                Booking.provider_id.is_(None),
                Booking.status.in_(ASSIGNABLE_BOOKING_STATUSES),
                Booking.scheduled_date >= from_date,
            )
            .order_by(Booking.scheduled_date, Booking.scheduled_time, Booking.created_at)
            .limit(limit)
        )
        return self._execute_query(query)

    def list_for_business_between(
        self, business_id: str, start_date: date, end_date: date
    ) -> List[Booking]:
        query = (
            self.db.query(Booking)
            .filter(
                Booking.business_id == business_id,
                Booking.scheduled_date >= start_date,
                Booking.scheduled_date <= end_date,
            )
            .order_by(Booking.scheduled_date, Booking.scheduled_time)
        )
        return self._execute_query(query)

    # Series occurrences

    def series_dates_between(self, series_id: str, start_date: date, end_date: date) -> Set[date]:
        """Dates that already hold a booking for the series, in any status."""
        try:
            rows = (
                self.db.query(Booking.scheduled_date)
                .filter(
                    Booking.recurring_series_id == series_id,
                    Booking.scheduled_date >= start_date,
                    Booking.scheduled_date <= end_date,
                )
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading series dates for {series_id}: {str(e)}")
            raise RepositoryException(f"Failed to load series bookings: {str(e)}")
        return {row[0] for row in rows}

    def list_for_series(self, series_id: str) -> List[Booking]:
        query = (
            self.db.query(Booking)
            .filter(Booking.recurring_series_id == series_id)
            .order_by(Booking.scheduled_date)
        )
        return self._execute_query(query)

    def create_series_occurrence(self, **kwargs) -> Optional[Booking]:
        """
        Insert a generated booking, or return None if the series already has
        a booking on that date.
        """
        booking = Booking(**kwargs)
        try:
            with self.db.begin_nested():
                self.db.add(booking)
                self.db.flush()
        except IntegrityError:
            self.logger.info(
                "Occurrence %s for series %s already exists",
                kwargs.get("scheduled_date"),
                kwargs.get("recurring_series_id"),
            )
            return None
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating series occurrence: {str(e)}")
            raise RepositoryException(f"Failed to create booking: {str(e)}")
        return booking

    # Assignment

    def assign_provider_if_unassigned(
        self,
        booking_id: str,
        business_id: str,
        provider_id: str,
        source: str,
        now: datetime,
    ) -> int:
        """
        Claim an unassigned booking for ``provider_id``.

        Pending bookings become confirmed; other assignable statuses are kept.

        Returns:
            Number of rows updated: 1 on success, 0 if someone else won
        """
        try:
            updated = (
                self.db.query(Booking)
                .filter(
                    Booking.id == booking_id,
                    Booking.business_id == business_id,
                    Booking.provider_id.is_(None),
                    Booking.status.in_(ASSIGNABLE_BOOKING_STATUSES),
                )
                .update(
                    {
                        Booking.provider_id: provider_id,
                        Booking.status: case(
                            (
                                Booking.status == BookingStatus.PENDING.value,
                                BookingStatus.CONFIRMED.value,
                            ),
                            else_=Booking.status,
                        ),
                        Booking.assignment_source: source,
                        Booking.updated_at: now,
                    },
                    synchronize_session="fetch",
                )
            )
            return int(updated or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error assigning booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to assign booking: {str(e)}")
