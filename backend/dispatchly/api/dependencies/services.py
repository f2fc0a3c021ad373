# backend/dispatchly/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets fresh service instances bound to its session; the
notification hook is shared between the services a route composes.
"""

from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...services.assignment_selector import AssignmentSelector
from ...services.availability_resolver import AvailabilityResolver
from ...services.booking_intake_service import BookingIntakeService
from ...services.business_settings_service import BusinessSettingsService
from ...services.capacity_guard import CapacityGuard
from ...services.notification_hook import NotificationHook
from ...services.recurring_series_service import RecurringSeriesService
from .database import get_db


def get_notification_hook(
    background_tasks: BackgroundTasks, db: Session = Depends(get_db)
) -> NotificationHook:
    # Channel delivery runs after the response is sent
    return NotificationHook(db, background_tasks=background_tasks)


def get_availability_resolver(db: Session = Depends(get_db)) -> AvailabilityResolver:
    return AvailabilityResolver(db)


def get_business_settings_service(db: Session = Depends(get_db)) -> BusinessSettingsService:
    return BusinessSettingsService(db)


def get_capacity_guard(db: Session = Depends(get_db)) -> CapacityGuard:
    return CapacityGuard(db)


def get_assignment_selector(
    db: Session = Depends(get_db),
    notification_hook: NotificationHook = Depends(get_notification_hook),
) -> AssignmentSelector:
    return AssignmentSelector(db, notification_hook=notification_hook)


def get_booking_intake_service(
    db: Session = Depends(get_db),
    notification_hook: NotificationHook = Depends(get_notification_hook),
    selector: AssignmentSelector = Depends(get_assignment_selector),
) -> BookingIntakeService:
    return BookingIntakeService(db, notification_hook=notification_hook, selector=selector)


def get_recurring_series_service(
    db: Session = Depends(get_db),
    notification_hook: NotificationHook = Depends(get_notification_hook),
    selector: AssignmentSelector = Depends(get_assignment_selector),
) -> RecurringSeriesService:
    return RecurringSeriesService(db, notification_hook=notification_hook, selector=selector)
