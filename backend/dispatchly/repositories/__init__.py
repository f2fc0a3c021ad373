# backend/dispatchly/repositories/__init__.py
"""
Repository Pattern Implementation for the Dispatchly scheduling engine

This package provides the repository layer for data access,
separating scheduling logic from database queries.

Key Components:
- BaseRepository: Generic CRUD plus business-scoped lookups
- RepositoryFactory: Factory for creating repository instances
- AvailabilityRepository: Availability rules by provider/weekday
- ConflictCheckerRepository: Active bookings that occupy provider time
- BookingRepository: Capacity counts, unassigned pool, conditional assignment
- ProviderRepository: Candidate providers, skills, service exclusions
- BusinessSettingsRepository: Spot limits, scheduling options, holidays
- RecurringSeriesRepository: Series, watermark, deferred occurrences
- AssignmentRepository / AuditLogRepository: Assignment history and event feed

Usage:
    from dispatchly.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_booking_repository(db)
    pool = repository.list_unassigned(business_id, today)
"""

from .assignment_repository import AssignmentRepository, AuditLogRepository
from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository, IRepository
from .booking_repository import BookingRepository
from .business_settings_repository import BusinessSettingsRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .factory import RepositoryFactory
from .provider_repository import ProviderRepository
from .recurring_series_repository import RecurringSeriesRepository

__all__ = [
    "AssignmentRepository",
    "AuditLogRepository",
    "AvailabilityRepository",
    "BaseRepository",
    "BookingRepository",
    "BusinessSettingsRepository",
    "ConflictCheckerRepository",
    "IRepository",
    "ProviderRepository",
    "RecurringSeriesRepository",
    "RepositoryFactory",
]
