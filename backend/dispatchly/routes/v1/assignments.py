# backend/dispatchly/routes/v1/assignments.py
"""
Assignment preview route - API v1

Endpoints:
    POST /assignments/preview - Rank providers for a hypothetical job (read-only)
"""

from fastapi import APIRouter, Depends

from ...api.dependencies import BusinessScope, get_assignment_selector, get_business_scope
from ...core.exceptions import DomainException, handle_domain_exception
from ...schemas.assignment import (
    CandidateEvaluationResponse,
    EligibilityPreviewRequest,
    EligibilityPreviewResponse,
)
from ...services.assignment_selector import AssignmentSelector

router = APIRouter(tags=["assignments-v1"])


@router.post("/assignments/preview", response_model=EligibilityPreviewResponse)
def preview_assignment(
    payload: EligibilityPreviewRequest,
    scope: BusinessScope = Depends(get_business_scope),
    selector: AssignmentSelector = Depends(get_assignment_selector),
) -> EligibilityPreviewResponse:
    try:
        candidates = selector.preview_eligibility(
            scope.business_id,
            payload.date,
            payload.start_time,
            payload.duration_minutes,
            service_id=payload.service_id,
            service_category=payload.service_category,
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return EligibilityPreviewResponse(
        candidates=[CandidateEvaluationResponse.from_evaluation(c) for c in candidates],
        eligible_count=sum(1 for c in candidates if c.eligible),
    )
