# backend/dispatchly/repositories/factory.py
"""
Repository Factory for the Dispatchly scheduling engine

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .assignment_repository import AssignmentRepository, AuditLogRepository
    from .availability_repository import AvailabilityRepository
    from .booking_repository import BookingRepository
    from .business_settings_repository import BusinessSettingsRepository
    from .conflict_checker_repository import ConflictCheckerRepository
    from .provider_repository import ProviderRepository
    from .recurring_series_repository import RecurringSeriesRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        return BaseRepository(db, model)

    @staticmethod
    def create_availability_repository(db: Session) -> "AvailabilityRepository":
        """Create repository for availability rule reads and writes."""
        from .availability_repository import AvailabilityRepository

        return AvailabilityRepository(db)

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> "ConflictCheckerRepository":
        """Create repository for conflict checking operations."""
        from .conflict_checker_repository import ConflictCheckerRepository

        return ConflictCheckerRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_provider_repository(db: Session) -> "ProviderRepository":
        from .provider_repository import ProviderRepository

        return ProviderRepository(db)

    @staticmethod
    def create_business_settings_repository(db: Session) -> "BusinessSettingsRepository":
        from .business_settings_repository import BusinessSettingsRepository

        return BusinessSettingsRepository(db)

    @staticmethod
    def create_recurring_series_repository(db: Session) -> "RecurringSeriesRepository":
        from .recurring_series_repository import RecurringSeriesRepository

        return RecurringSeriesRepository(db)

    @staticmethod
    def create_assignment_repository(db: Session) -> "AssignmentRepository":
        from .assignment_repository import AssignmentRepository

        return AssignmentRepository(db)

    @staticmethod
    def create_audit_log_repository(db: Session) -> "AuditLogRepository":
        from .assignment_repository import AuditLogRepository

        return AuditLogRepository(db)
