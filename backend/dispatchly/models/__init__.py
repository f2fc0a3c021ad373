"""
Database models for the Dispatchly scheduling engine.

This module exports all SQLAlchemy models used in the application.
The models are organized by functionality:
- Businesses and their scheduling settings (options, spot limits, holidays)
- Providers, skills and services
- Availability rules
- Bookings and assignment history
- Recurring series and deferred occurrences
- Audit feed
"""

from .assignment import AssignmentRecord
from .audit_log import AuditLog
from .availability import AvailabilityRule
from .booking import AssignmentSource, Booking, BookingStatus
from .business import Business, BusinessHoliday, BusinessSchedulingOptions, BusinessSpotLimits
from .provider import Provider, ProviderSkill, ProviderStatus
from .recurring import DeferredOccurrence, RecurringSeries, SeriesStatus
from .service import ServiceOffering, ServiceProviderExclusion

__all__ = [
    "AssignmentRecord",
    "AssignmentSource",
    "AuditLog",
    "AvailabilityRule",
    "Booking",
    "BookingStatus",
    "Business",
    "BusinessHoliday",
    "BusinessSchedulingOptions",
    "BusinessSpotLimits",
    "DeferredOccurrence",
    "Provider",
    "ProviderSkill",
    "ProviderStatus",
    "RecurringSeries",
    "SeriesStatus",
    "ServiceOffering",
    "ServiceProviderExclusion",
]
