# backend/dispatchly/routes/v1/providers.py
"""
Provider availability routes - API v1

Mounted under /api/v1. All business logic delegated to AvailabilityResolver
and BusinessSettingsService.

Endpoints:
    GET /providers/{provider_id}/availability - Resolved windows for a date
    GET /providers/{provider_id}/available-slots - Bookable start times
    GET /providers/{provider_id}/availability-rules - List a provider's rules
    POST /providers/{provider_id}/availability-rules - Add a rule
    PATCH /availability-rules/{rule_id} - Edit a rule
    POST /availability-rules/{rule_id}/disable - Flip a rule to unavailable
"""

from datetime import date
import logging
from typing import List

from fastapi import APIRouter, Depends, Path, Query, status

from ...api.dependencies import (
    BusinessScope,
    get_availability_resolver,
    get_business_scope,
    get_business_settings_service,
)
from ...core.constants import MAX_BOOKING_DURATION, ULID_PATH_PATTERN
from ...core.exceptions import DomainException, handle_domain_exception
from ...schemas.availability import (
    AvailabilityRuleCreate,
    AvailabilityRuleResponse,
    AvailabilityRuleUpdate,
    AvailableSlotsResponse,
    ProviderAvailabilityResponse,
    TimeWindowResponse,
)
from ...services.availability_resolver import AvailabilityResolver
from ...services.business_settings_service import BusinessSettingsService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, added when mounting in main.py
router = APIRouter(tags=["providers-v1"])


@router.get("/providers/{provider_id}/availability", response_model=ProviderAvailabilityResponse)
def get_provider_availability(
    provider_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    on_date: date = Query(..., alias="date"),
    scope: BusinessScope = Depends(get_business_scope),
    resolver: AvailabilityResolver = Depends(get_availability_resolver),
) -> ProviderAvailabilityResponse:
    windows = resolver.resolve(provider_id, scope.business_id, on_date)
    return ProviderAvailabilityResponse(
        provider_id=provider_id,
        date=on_date,
        windows=[TimeWindowResponse(**w.to_dict()) for w in windows],
    )


@router.get("/providers/{provider_id}/available-slots", response_model=AvailableSlotsResponse)
def get_available_slots(
    provider_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    on_date: date = Query(..., alias="date"),
    duration: int = Query(..., gt=0, le=MAX_BOOKING_DURATION),
    scope: BusinessScope = Depends(get_business_scope),
    resolver: AvailabilityResolver = Depends(get_availability_resolver),
) -> AvailableSlotsResponse:
    starts = resolver.available_start_times(provider_id, scope.business_id, on_date, duration)
    return AvailableSlotsResponse(
        provider_id=provider_id, date=on_date, duration_minutes=duration, start_times=starts
    )


@router.get(
    "/providers/{provider_id}/availability-rules",
    response_model=List[AvailabilityRuleResponse],
)
def list_availability_rules(
    provider_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: BusinessScope = Depends(get_business_scope),
    settings_service: BusinessSettingsService = Depends(get_business_settings_service),
) -> List[AvailabilityRuleResponse]:
    rules = settings_service.list_rules(provider_id, scope.business_id)
    return [AvailabilityRuleResponse.model_validate(r) for r in rules]


@router.post(
    "/providers/{provider_id}/availability-rules",
    response_model=AvailabilityRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_availability_rule(
    payload: AvailabilityRuleCreate,
    provider_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: BusinessScope = Depends(get_business_scope),
    settings_service: BusinessSettingsService = Depends(get_business_settings_service),
) -> AvailabilityRuleResponse:
    try:
        rule = settings_service.create_rule(
            provider_id, scope.business_id, **payload.model_dump(exclude_none=True)
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return AvailabilityRuleResponse.model_validate(rule)


@router.patch("/availability-rules/{rule_id}", response_model=AvailabilityRuleResponse)
def update_availability_rule(
    payload: AvailabilityRuleUpdate,
    rule_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: BusinessScope = Depends(get_business_scope),
    settings_service: BusinessSettingsService = Depends(get_business_settings_service),
) -> AvailabilityRuleResponse:
    try:
        rule = settings_service.update_rule(
            rule_id, scope.business_id, **payload.model_dump(exclude_unset=True)
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return AvailabilityRuleResponse.model_validate(rule)


@router.post("/availability-rules/{rule_id}/disable", response_model=AvailabilityRuleResponse)
def disable_availability_rule(
    rule_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: BusinessScope = Depends(get_business_scope),
    settings_service: BusinessSettingsService = Depends(get_business_settings_service),
) -> AvailabilityRuleResponse:
    try:
        rule = settings_service.disable_rule(rule_id, scope.business_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return AvailabilityRuleResponse.model_validate(rule)
