# backend/dispatchly/schemas/__init__.py
"""Pydantic schemas for the Dispatchly API."""

from .assignment import (
    AssignmentOutcomeResponse,
    CandidateEvaluationResponse,
    EligibilityPreviewRequest,
    EligibilityPreviewResponse,
    GrabRequest,
)
from .availability import (
    AvailabilityRuleCreate,
    AvailabilityRuleResponse,
    AvailabilityRuleUpdate,
    AvailableSlotsResponse,
    ProviderAvailabilityResponse,
    TimeWindowResponse,
)
from .base import Money, StandardizedModel, StrictModel, StrictRequestModel
from .booking import BookingCreate, BookingCreateResponse, BookingResponse
from .recurring import (
    DeferredOccurrenceResponse,
    ExtendAllResponse,
    ExtendSeriesRequest,
    ExtensionResponse,
    RecurringSeriesCreate,
)
from .settings import (
    CapacityStatusResponse,
    HolidayCreate,
    HolidayResponse,
    SchedulingOptionsResponse,
    SchedulingOptionsUpdate,
    SpotLimitsResponse,
    SpotLimitsUpdate,
)

__all__ = [
    "AssignmentOutcomeResponse",
    "AvailabilityRuleCreate",
    "AvailabilityRuleResponse",
    "AvailabilityRuleUpdate",
    "AvailableSlotsResponse",
    "BookingCreate",
    "BookingCreateResponse",
    "BookingResponse",
    "CandidateEvaluationResponse",
    "CapacityStatusResponse",
    "DeferredOccurrenceResponse",
    "EligibilityPreviewRequest",
    "EligibilityPreviewResponse",
    "ExtendAllResponse",
    "ExtendSeriesRequest",
    "ExtensionResponse",
    "GrabRequest",
    "HolidayCreate",
    "HolidayResponse",
    "Money",
    "ProviderAvailabilityResponse",
    "RecurringSeriesCreate",
    "SchedulingOptionsResponse",
    "SchedulingOptionsUpdate",
    "SpotLimitsResponse",
    "SpotLimitsUpdate",
    "StandardizedModel",
    "StrictModel",
    "StrictRequestModel",
    "TimeWindowResponse",
]
