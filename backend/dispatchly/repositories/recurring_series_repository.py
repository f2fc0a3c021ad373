# backend/dispatchly/repositories/recurring_series_repository.py
"""
Recurring series repository.

The watermark is only ever moved through ``advance_watermark``, a
conditional UPDATE that refuses to move it backwards, so two generator runs
racing on the same series can never regress each other's progress.
"""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.recurring import DeferredOccurrence, RecurringSeries, SeriesStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class RecurringSeriesRepository(BaseRepository[RecurringSeries]):
    def __init__(self, db: Session):
        super().__init__(db, RecurringSeries)

    def list_active(self, business_id: str) -> List[RecurringSeries]:
        query = (
            self.db.query(RecurringSeries)
            .filter(
                RecurringSeries.business_id == business_id,
                RecurringSeries.status == SeriesStatus.ACTIVE.value,
            )
            .order_by(RecurringSeries.created_at, RecurringSeries.id)
        )
        return self._execute_query(query)

    def advance_watermark(self, series_id: str, new_watermark: date) -> int:
        """Move ``generated_through`` forward; returns 0 if it was already there."""
        try:
            updated = (
                self.db.query(RecurringSeries)
                .filter(
                    RecurringSeries.id == series_id,
                    or_(
                        RecurringSeries.generated_through.is_(None),
                        RecurringSeries.generated_through < new_watermark,
                    ),
                )
                .update(
                    {RecurringSeries.generated_through: new_watermark},
                    synchronize_session="fetch",
                )
            )
            return int(updated or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error advancing watermark for {series_id}: {str(e)}")
            raise RepositoryException(f"Failed to advance watermark: {str(e)}")

    # Deferred occurrences

    def record_deferral(
        self, series_id: str, business_id: str, occurrence_date: date, reason: str
    ) -> Optional[DeferredOccurrence]:
        """Record a deferred date; returns None when it was already recorded."""
        existing = (
            self.db.query(DeferredOccurrence)
            .filter(
                DeferredOccurrence.series_id == series_id,
                DeferredOccurrence.occurrence_date == occurrence_date,
            )
            .first()
        )
        if existing is not None:
            if existing.reason != reason:
                existing.reason = reason
                self.db.flush()
            return None

        deferral = DeferredOccurrence(
            series_id=series_id,
            business_id=business_id,
            occurrence_date=occurrence_date,
            reason=reason,
        )
        try:
            with self.db.begin_nested():
                self.db.add(deferral)
                self.db.flush()
        except IntegrityError:
            return None
        except SQLAlchemyError as e:
            self.logger.error(f"Error recording deferral for {series_id}: {str(e)}")
            raise RepositoryException(f"Failed to record deferral: {str(e)}")
        return deferral

    def list_deferred(
        self, business_id: str, from_date: Optional[date] = None
    ) -> List[DeferredOccurrence]:
        query = self.db.query(DeferredOccurrence).filter(
            DeferredOccurrence.business_id == business_id
        )
        if from_date is not None:
            query = query.filter(DeferredOccurrence.occurrence_date >= from_date)
        return self._execute_query(
            query.order_by(DeferredOccurrence.occurrence_date, DeferredOccurrence.series_id)
        )

    def list_open_deferrals(
        self, series_id: str, from_date: date, before: date
    ) -> List[DeferredOccurrence]:
        """Deferrals of one series dated in ``[from_date, before)``."""
        query = (
            self.db.query(DeferredOccurrence)
            .filter(
                DeferredOccurrence.series_id == series_id,
                DeferredOccurrence.occurrence_date >= from_date,
                DeferredOccurrence.occurrence_date < before,
            )
            .order_by(DeferredOccurrence.occurrence_date)
        )
        return self._execute_query(query)

    def clear_deferral(self, series_id: str, occurrence_date: date) -> None:
        """Drop a deferral once its date has been placed after all."""
        try:
            self.db.query(DeferredOccurrence).filter(
                DeferredOccurrence.series_id == series_id,
                DeferredOccurrence.occurrence_date == occurrence_date,
            ).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            self.logger.error(f"Error clearing deferral for {series_id}: {str(e)}")
            raise RepositoryException(f"Failed to clear deferral: {str(e)}")
