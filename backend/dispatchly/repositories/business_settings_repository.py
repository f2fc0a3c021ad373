# backend/dispatchly/repositories/business_settings_repository.py
"""
Business settings repository.

Reads and upserts the per-business companion rows (scheduling options, spot
limits) and manages holidays. Absent companion rows are returned as None;
the service layer decides the defaults.
"""

from datetime import date
import logging
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.calendar_utils import holiday_matches
from ..core.exceptions import RepositoryException
from ..database.session_utils import supports_row_locks
from ..models.business import (
    Business,
    BusinessHoliday,
    BusinessSchedulingOptions,
    BusinessSpotLimits,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BusinessSettingsRepository(BaseRepository[Business]):
    def __init__(self, db: Session):
        super().__init__(db, Business)

    def lock_business(self, business_id: str) -> Optional[Business]:
        """
        Take a row lock on the business so capacity checks for it serialize.

        SQLite has a single writer, so the plain read is enough there.
        """
        try:
            query = self.db.query(Business).filter(Business.id == business_id)
            if supports_row_locks(self.db):
                query = query.with_for_update()
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking business {business_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock business: {str(e)}")

    # Spot limits

    def get_spot_limits(self, business_id: str) -> Optional[BusinessSpotLimits]:
        try:
            return (
                self.db.query(BusinessSpotLimits)
                .filter(BusinessSpotLimits.business_id == business_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading spot limits for {business_id}: {str(e)}")
            raise RepositoryException(f"Failed to load spot limits: {str(e)}")

    def upsert_spot_limits(self, business_id: str, **values: Any) -> BusinessSpotLimits:
        row = self.get_spot_limits(business_id)
        try:
            if row is None:
                row = BusinessSpotLimits(business_id=business_id, **values)
                self.db.add(row)
            else:
                for key, value in values.items():
                    setattr(row, key, value)
            self.db.flush()
            return row
        except SQLAlchemyError as e:
            self.logger.error(f"Error saving spot limits for {business_id}: {str(e)}")
            raise RepositoryException(f"Failed to save spot limits: {str(e)}")

    # Scheduling options

    def get_scheduling_options(self, business_id: str) -> Optional[BusinessSchedulingOptions]:
        try:
            return (
                self.db.query(BusinessSchedulingOptions)
                .filter(BusinessSchedulingOptions.business_id == business_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading scheduling options for {business_id}: {str(e)}")
            raise RepositoryException(f"Failed to load scheduling options: {str(e)}")

    def upsert_scheduling_options(
        self, business_id: str, **values: Any
    ) -> BusinessSchedulingOptions:
        row = self.get_scheduling_options(business_id)
        try:
            if row is None:
                row = BusinessSchedulingOptions(business_id=business_id, **values)
                self.db.add(row)
            else:
                for key, value in values.items():
                    setattr(row, key, value)
            self.db.flush()
            return row
        except SQLAlchemyError as e:
            self.logger.error(f"Error saving scheduling options for {business_id}: {str(e)}")
            raise RepositoryException(f"Failed to save scheduling options: {str(e)}")

    # Holidays

    def list_holidays(self, business_id: str) -> List[BusinessHoliday]:
        query = (
            self.db.query(BusinessHoliday)
            .filter(BusinessHoliday.business_id == business_id)
            .order_by(BusinessHoliday.holiday_date)
        )
        return self._execute_query(query)

    def is_holiday(self, business_id: str, on_date: date) -> bool:
        return any(
            holiday_matches(h.holiday_date, h.recurring, on_date)
            for h in self.list_holidays(business_id)
        )

    def create_holiday(
        self, business_id: str, holiday_date: date, name: str, recurring: bool
    ) -> BusinessHoliday:
        try:
            holiday = BusinessHoliday(
                business_id=business_id,
                holiday_date=holiday_date,
                name=name,
                recurring=recurring,
            )
            self.db.add(holiday)
            self.db.flush()
            return holiday
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating holiday for {business_id}: {str(e)}")
            raise RepositoryException(f"Failed to create holiday: {str(e)}")

    def delete_holiday(self, holiday_id: str, business_id: str) -> bool:
        try:
            deleted = (
                self.db.query(BusinessHoliday)
                .filter(BusinessHoliday.id == holiday_id, BusinessHoliday.business_id == business_id)
                .delete(synchronize_session=False)
            )
            return bool(deleted)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting holiday {holiday_id}: {str(e)}")
            raise RepositoryException(f"Failed to delete holiday: {str(e)}")
