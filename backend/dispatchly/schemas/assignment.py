# backend/dispatchly/schemas/assignment.py
"""Assignment, grab and eligibility-preview schemas."""

import datetime
from typing import List, Optional

from pydantic import Field

from ..services.assignment_selector import AssignmentOutcome, CandidateEvaluation
from .base import StandardizedModel, StrictRequestModel


class GrabRequest(StrictRequestModel):
    provider_id: str


class EligibilityPreviewRequest(StrictRequestModel):
    date: datetime.date
    start_time: datetime.time
    duration_minutes: int = Field(..., gt=0)
    service_id: Optional[str] = None
    service_category: Optional[str] = None


class AssignmentOutcomeResponse(StandardizedModel):
    booking_id: str
    assigned: bool
    provider_id: Optional[str] = None
    source: Optional[str] = None
    score: Optional[float] = None
    reason: Optional[str] = None
    ineligible_reasons: List[str] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: AssignmentOutcome) -> "AssignmentOutcomeResponse":
        return cls(
            booking_id=outcome.booking_id,
            assigned=outcome.assigned,
            provider_id=outcome.provider_id,
            source=outcome.source.value if outcome.source else None,
            score=outcome.score,
            reason=outcome.reason.value if outcome.reason else None,
            ineligible_reasons=[r.value for r in outcome.ineligible_reasons],
        )


class CandidateEvaluationResponse(StandardizedModel):
    provider_id: str
    provider_name: str
    eligible: bool
    reasons: List[str]
    score: float
    priority: int

    @classmethod
    def from_evaluation(cls, evaluation: CandidateEvaluation) -> "CandidateEvaluationResponse":
        return cls(**evaluation.to_dict())


class EligibilityPreviewResponse(StandardizedModel):
    candidates: List[CandidateEvaluationResponse]
    eligible_count: int
