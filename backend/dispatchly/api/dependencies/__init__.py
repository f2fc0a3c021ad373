# backend/dispatchly/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .database import get_db
from .scope import BusinessScope, get_business_scope
from .services import (
    get_assignment_selector,
    get_availability_resolver,
    get_booking_intake_service,
    get_business_settings_service,
    get_capacity_guard,
    get_notification_hook,
    get_recurring_series_service,
)

__all__ = [
    # Database
    "get_db",
    # Scope
    "BusinessScope",
    "get_business_scope",
    # Services
    "get_assignment_selector",
    "get_availability_resolver",
    "get_booking_intake_service",
    "get_business_settings_service",
    "get_capacity_guard",
    "get_notification_hook",
    "get_recurring_series_service",
]
