# backend/dispatchly/routes/v1/bookings.py
"""
Booking routes - API v1

Mounted under /api/v1/bookings. Intake is delegated to BookingIntakeService,
assignment to AssignmentSelector.

Endpoints:
    POST / - Create a booking (validation, capacity, insert, auto-assign)
    GET /unassigned - Unassigned pool from today on
    POST /{booking_id}/auto-assign - Pick the best provider now
    POST /{booking_id}/grab - A provider claims the booking
    GET /{booking_id}/eligibility - Who could take it, and why not the rest

Eligibility outcomes come back as 200 with assigned=false and a reason; a
booking someone else already took is a 409.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Path, Query, status

from ...api.dependencies import (
    BusinessScope,
    get_assignment_selector,
    get_booking_intake_service,
    get_business_scope,
)
from ...core.constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT, ULID_PATH_PATTERN
from ...core.exceptions import (
    AlreadyAssignedException,
    DomainException,
    NotFoundException,
    handle_domain_exception,
)
from ...schemas.assignment import (
    AssignmentOutcomeResponse,
    CandidateEvaluationResponse,
    EligibilityPreviewResponse,
    GrabRequest,
)
from ...schemas.booking import BookingCreate, BookingCreateResponse, BookingResponse
from ...services.assignment_selector import (
    AssignmentOutcome,
    AssignmentSelector,
    OutcomeReason,
)
from ...services.booking_intake_service import BookingIntakeService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def _outcome_response(outcome: AssignmentOutcome) -> AssignmentOutcomeResponse:
    if outcome.reason == OutcomeReason.NOT_FOUND:
        handle_domain_exception(NotFoundException("Booking not found", code="BOOKING_NOT_FOUND"))
    if outcome.reason == OutcomeReason.ALREADY_ASSIGNED:
        handle_domain_exception(AlreadyAssignedException(outcome.booking_id))
    return AssignmentOutcomeResponse.from_outcome(outcome)


@router.post("", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreate,
    scope: BusinessScope = Depends(get_business_scope),
    intake: BookingIntakeService = Depends(get_booking_intake_service),
) -> BookingCreateResponse:
    try:
        result = intake.create_booking(scope.business_id, payload.model_dump(), scope.today, scope.now)
    except DomainException as exc:
        handle_domain_exception(exc)
    return BookingCreateResponse(
        booking=BookingResponse.model_validate(result.booking),
        assignment=(
            AssignmentOutcomeResponse.from_outcome(result.assignment) if result.assignment else None
        ),
    )


@router.get("/unassigned", response_model=List[BookingResponse])
def list_unassigned_bookings(
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, le=MAX_QUERY_LIMIT),
    scope: BusinessScope = Depends(get_business_scope),
    intake: BookingIntakeService = Depends(get_booking_intake_service),
) -> List[BookingResponse]:
    bookings = intake.list_unassigned(scope.business_id, scope.today, limit)
    return [BookingResponse.model_validate(b) for b in bookings]


@router.post("/{booking_id}/auto-assign", response_model=AssignmentOutcomeResponse)
def auto_assign_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: BusinessScope = Depends(get_business_scope),
    selector: AssignmentSelector = Depends(get_assignment_selector),
) -> AssignmentOutcomeResponse:
    try:
        outcome = selector.auto_assign(booking_id, scope.business_id, scope.now)
    except DomainException as exc:
        handle_domain_exception(exc)
    return _outcome_response(outcome)


@router.post("/{booking_id}/grab", response_model=AssignmentOutcomeResponse)
def grab_booking(
    payload: GrabRequest,
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: BusinessScope = Depends(get_business_scope),
    selector: AssignmentSelector = Depends(get_assignment_selector),
) -> AssignmentOutcomeResponse:
    try:
        outcome = selector.grab(booking_id, payload.provider_id, scope.business_id, scope.now)
    except DomainException as exc:
        handle_domain_exception(exc)
    return _outcome_response(outcome)


@router.get("/{booking_id}/eligibility", response_model=EligibilityPreviewResponse)
def get_booking_eligibility(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: BusinessScope = Depends(get_business_scope),
    selector: AssignmentSelector = Depends(get_assignment_selector),
) -> EligibilityPreviewResponse:
    candidates = selector.preview_for_booking(booking_id, scope.business_id)
    if candidates is None:
        handle_domain_exception(NotFoundException("Booking not found", code="BOOKING_NOT_FOUND"))
    return EligibilityPreviewResponse(
        candidates=[CandidateEvaluationResponse.from_evaluation(c) for c in candidates],
        eligible_count=sum(1 for c in candidates if c.eligible),
    )
