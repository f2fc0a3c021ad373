# backend/dispatchly/services/booking_intake_service.py
"""
Booking intake.

A new one-off booking goes through: validation, capacity, insert, and then
optional auto-assignment. When the caller names a provider the booking is
placed with that provider directly, provided they pass the same hard filters
the selector uses; otherwise it lands in the unassigned pool.

The capacity check runs twice around the insert. The business row is locked
first where the database supports it, and after the flush the counts are
checked again with the new booking included, so two racing requests
against a limit of 1 cannot both commit. A named provider is handled the
same way: their row is locked and their calendar re-read after the flush.
"""

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.constants import DEFAULT_QUERY_LIMIT, MAX_BOOKING_DURATION, MIN_BOOKING_DURATION
from ..core.exceptions import (
    BookingConflictException,
    CapacityExceededException,
    NotFoundException,
    ValidationException,
)
from ..events.scheduling_events import EventKind, SchedulingEvent
from ..models.booking import AssignmentSource, Booking, BookingStatus
from ..repositories.factory import RepositoryFactory
from .assignment_selector import (
    AssignmentOutcome,
    AssignmentSelector,
    EligibilityReason,
    JobRequest,
)
from .base import BaseService
from .business_settings_service import BusinessSettingsService
from .capacity_guard import CapacityGuard
from .notification_hook import NotificationHook

logger = logging.getLogger(__name__)


@dataclass
class IntakeResult:
    booking: Booking
    assignment: Optional[AssignmentOutcome] = None


class BookingIntakeService(BaseService):
    def __init__(
        self,
        db: Session,
        notification_hook: Optional[NotificationHook] = None,
        selector: Optional[AssignmentSelector] = None,
    ):
        super().__init__(db)
        self.notification_hook = notification_hook or NotificationHook(db)
        self.selector = selector or AssignmentSelector(db, notification_hook=self.notification_hook)
        self.settings_service = BusinessSettingsService(db)
        self.capacity_guard = CapacityGuard(db, settings_service=self.settings_service)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.business_repository = RepositoryFactory.create_business_settings_repository(db)
        self.provider_repository = RepositoryFactory.create_provider_repository(db)
        self.assignment_repository = RepositoryFactory.create_assignment_repository(db)

    def _validate(self, data: Dict[str, Any], today: date) -> None:
        scheduled_date: date = data["scheduled_date"]
        if scheduled_date < today:
            raise ValidationException(
                "Cannot book a date in the past",
                code="PAST_DATE",
                details={"scheduled_date": str(scheduled_date), "today": str(today)},
            )
        duration = int(data["duration_minutes"])
        if not MIN_BOOKING_DURATION <= duration <= MAX_BOOKING_DURATION:
            raise ValidationException(
                f"Duration must be between {MIN_BOOKING_DURATION} and {MAX_BOOKING_DURATION} minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": duration},
            )

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self, business_id: str, data: Dict[str, Any], today: date, now: datetime
    ) -> IntakeResult:
        """
        Validate, capacity-check and insert a booking, then auto-assign it.

        Raises:
            ValidationException: past date or duration out of range
            NotFoundException: unknown business, service or provider
            BookingConflictException: the named provider cannot take the job
            CapacityExceededException: a spot limit would be exceeded
        """
        self.settings_service.ensure_business(business_id)
        self._validate(data, today)

        service_id = data.get("service_id")
        service_name = data.get("service_name")
        service_category = data.get("service_category")
        if service_id:
            service = self.provider_repository.get_service(service_id, business_id)
            if service is None:
                raise NotFoundException("Service not found", code="SERVICE_NOT_FOUND")
            service_name = service_name or service.name
            service_category = service_category or service.category
        if not service_name:
            raise ValidationException("service_name or service_id is required", code="MISSING_SERVICE")

        provider = None
        evaluation = None
        provider_id = data.get("provider_id")
        if provider_id:
            provider = self.provider_repository.get_scoped(provider_id, business_id)
            if provider is None:
                raise NotFoundException("Provider not found", code="PROVIDER_NOT_FOUND")
            request = JobRequest(
                business_id=business_id,
                scheduled_date=data["scheduled_date"],
                scheduled_time=data["scheduled_time"],
                duration_minutes=int(data["duration_minutes"]),
                service_id=service_id,
                service_category=service_category,
            )
            evaluation = self.selector.evaluate_candidates(
                request, [provider], source=AssignmentSource.MANUAL
            )[0]
            if not evaluation.eligible:
                raise BookingConflictException(
                    f"{provider.full_name} cannot take this booking",
                    code=evaluation.reasons[0].value,
                    details={"reasons": [r.value for r in evaluation.reasons]},
                )

        try:
            with self.transaction():
                self.business_repository.lock_business(business_id)
                if provider is not None:
                    self.provider_repository.lock_provider(provider.id)
                self.capacity_guard.ensure_capacity(business_id, data["scheduled_date"], today)
                booking = self.booking_repository.create(
                    business_id=business_id,
                    provider_id=provider.id if provider else None,
                    service_id=service_id,
                    service_name=service_name,
                    service_category=service_category,
                    customer_name=data["customer_name"],
                    customer_email=data.get("customer_email"),
                    customer_phone=data.get("customer_phone"),
                    address=data.get("address"),
                    scheduled_date=data["scheduled_date"],
                    scheduled_time=data["scheduled_time"],
                    duration_minutes=int(data["duration_minutes"]),
                    price=data.get("price") or 0,
                    notes=data.get("notes"),
                    status=(BookingStatus.CONFIRMED if provider else BookingStatus.PENDING).value,
                    assignment_source=(
                        AssignmentSource.MANUAL if provider else AssignmentSource.NONE
                    ).value,
                )
                self.capacity_guard.ensure_capacity(
                    business_id, data["scheduled_date"], today, already_counted=1
                )
                if provider is not None:
                    # Another request may have placed the provider since the eligibility check
                    clashes = self.selector.conflict_checker.find_overlaps(
                        provider.id,
                        business_id,
                        booking.scheduled_date,
                        booking.scheduled_time,
                        booking.duration_minutes,
                        exclude_booking_id=booking.id,
                    )
                    if clashes:
                        raise BookingConflictException(
                            f"{provider.full_name} cannot take this booking",
                            code=EligibilityReason.OVERLAP.value,
                            details={
                                "reasons": [EligibilityReason.OVERLAP.value],
                                "conflicting_booking_ids": [b.id for b in clashes],
                            },
                        )
                    self.assignment_repository.create(
                        booking_id=booking.id,
                        business_id=business_id,
                        provider_id=provider.id,
                        source=AssignmentSource.MANUAL.value,
                        score=evaluation.score,
                        assigned_at=now,
                    )
        except CapacityExceededException as exc:
            self.notification_hook.notify(
                SchedulingEvent(
                    kind=EventKind.CAPACITY_EXCEEDED,
                    business_id=business_id,
                    entity_type="booking",
                    entity_id="",
                    occurred_at=now,
                    summary=f"Booking for {data['customer_name']} refused: {exc.message}",
                    payload={
                        "scheduled_date": data["scheduled_date"],
                        "scheduled_time": data["scheduled_time"],
                        "service_name": service_name,
                        "customer_name": data["customer_name"],
                        "reason": exc.code,
                    },
                )
            )
            raise

        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            business_id=business_id,
            provider_id=booking.provider_id,
        )

        if provider is not None:
            self.notification_hook.notify(
                SchedulingEvent(
                    kind=EventKind.ASSIGNED,
                    business_id=business_id,
                    entity_type="booking",
                    entity_id=booking.id,
                    occurred_at=now,
                    summary=(
                        f"{booking.service_name} on {booking.scheduled_date} assigned to "
                        f"{provider.full_name}"
                    ),
                    provider_id=provider.id,
                    provider_name=provider.full_name,
                    provider_email=provider.email,
                    provider_phone=provider.phone,
                    payload={
                        "scheduled_date": booking.scheduled_date,
                        "scheduled_time": booking.scheduled_time,
                        "service_name": booking.service_name,
                        "customer_name": booking.customer_name,
                        "source": AssignmentSource.MANUAL.value,
                    },
                )
            )
            return IntakeResult(booking=booking)

        assignment = None
        if self.settings_service.get_scheduling_options(business_id).auto_assign_enabled:
            assignment = self.selector.auto_assign(booking.id, business_id, now)
            self.db.refresh(booking)
        return IntakeResult(booking=booking, assignment=assignment)

    def get_booking(self, booking_id: str, business_id: str) -> Booking:
        booking = self.booking_repository.get_scoped(booking_id, business_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    def list_unassigned(
        self, business_id: str, today: date, limit: int = DEFAULT_QUERY_LIMIT
    ) -> List[Booking]:
        """Active bookings from today on with no provider: the grab pool."""
        return self.booking_repository.list_unassigned(business_id, today, limit)
