# backend/dispatchly/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for the Dispatchly scheduling engine

Loads the active bookings that can collide with a candidate interval.
Only pending, confirmed and in-progress bookings occupy a provider's time;
completed and canceled bookings never conflict.
"""

from collections import defaultdict
from datetime import date
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[Booking]):
    """Booking reads for conflict checking and workload scoring."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_bookings_for_conflict_check(
        self,
        provider_id: str,
        business_id: str,
        check_date: date,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Active bookings for a provider on a date.

        Args:
            provider_id: The provider to check
            business_id: Tenant scope
            check_date: The date to check for conflicts
            exclude_booking_id: Booking being (re)assigned, ignored

        Returns:
            Bookings ordered by start time
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.provider_id == provider_id,
                Booking.business_id == business_id,
                Booking.scheduled_date == check_date,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.scheduled_time).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get bookings: {str(e)}")

    def get_bookings_for_providers(
        self,
        provider_ids: Iterable[str],
        business_id: str,
        start_date: date,
        end_date: date,
    ) -> Dict[str, List[Booking]]:
        """Active bookings per provider over an inclusive date range."""
        ids = list(provider_ids)
        grouped: Dict[str, List[Booking]] = defaultdict(list)
        if not ids:
            return grouped
        try:
            rows = (
                self.db.query(Booking)
                .filter(
                    Booking.provider_id.in_(ids),
                    Booking.business_id == business_id,
                    Booking.scheduled_date >= start_date,
                    Booking.scheduled_date <= end_date,
                    Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                )
                .order_by(Booking.scheduled_date, Booking.scheduled_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error batch loading provider bookings: {str(e)}")
            raise RepositoryException(f"Failed to get bookings: {str(e)}")
        for booking in rows:
            grouped[booking.provider_id].append(booking)
        return grouped
