# backend/dispatchly/routes/v1/settings.py
"""
Business settings routes - API v1

Mounted under /api/v1/settings.

Endpoints:
    GET /spot-limits - Current spot limits
    PUT /spot-limits - Upsert limits (values clamped into range)
    GET /scheduling-options - Auto-assign, grab and holiday options
    PUT /scheduling-options - Update options
    GET /holidays - List holidays
    POST /holidays - Add a holiday
    DELETE /holidays/{holiday_id} - Remove a holiday
    GET /capacity - Would one more booking fit on a date?
"""

from datetime import date
import logging
from typing import List

from fastapi import APIRouter, Depends, Path, Query, Response, status

from ...api.dependencies import (
    BusinessScope,
    get_business_scope,
    get_business_settings_service,
    get_capacity_guard,
)
from ...core.constants import ULID_PATH_PATTERN
from ...core.exceptions import DomainException, handle_domain_exception
from ...schemas.settings import (
    CapacityStatusResponse,
    HolidayCreate,
    HolidayResponse,
    SchedulingOptionsResponse,
    SchedulingOptionsUpdate,
    SpotLimitsResponse,
    SpotLimitsUpdate,
)
from ...services.business_settings_service import BusinessSettingsService
from ...services.capacity_guard import CapacityGuard

logger = logging.getLogger(__name__)

router = APIRouter(tags=["settings-v1"])


@router.get("/spot-limits", response_model=SpotLimitsResponse)
def get_spot_limits(
    scope: BusinessScope = Depends(get_business_scope),
    service: BusinessSettingsService = Depends(get_business_settings_service),
) -> SpotLimitsResponse:
    return SpotLimitsResponse(**service.get_spot_limits(scope.business_id).to_dict())


@router.put("/spot-limits", response_model=SpotLimitsResponse)
def update_spot_limits(
    payload: SpotLimitsUpdate,
    scope: BusinessScope = Depends(get_business_scope),
    service: BusinessSettingsService = Depends(get_business_settings_service),
) -> SpotLimitsResponse:
    try:
        limits = service.update_spot_limits(scope.business_id, **payload.model_dump(exclude_none=True))
    except DomainException as exc:
        handle_domain_exception(exc)
    return SpotLimitsResponse(**limits.to_dict())


@router.get("/scheduling-options", response_model=SchedulingOptionsResponse)
def get_scheduling_options(
    scope: BusinessScope = Depends(get_business_scope),
    service: BusinessSettingsService = Depends(get_business_settings_service),
) -> SchedulingOptionsResponse:
    return SchedulingOptionsResponse(**service.get_scheduling_options(scope.business_id).to_dict())


@router.put("/scheduling-options", response_model=SchedulingOptionsResponse)
def update_scheduling_options(
    payload: SchedulingOptionsUpdate,
    scope: BusinessScope = Depends(get_business_scope),
    service: BusinessSettingsService = Depends(get_business_settings_service),
) -> SchedulingOptionsResponse:
    try:
        options = service.update_scheduling_options(
            scope.business_id, **payload.model_dump(exclude_unset=True)
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return SchedulingOptionsResponse(**options.to_dict())


@router.get("/holidays", response_model=List[HolidayResponse])
def list_holidays(
    scope: BusinessScope = Depends(get_business_scope),
    service: BusinessSettingsService = Depends(get_business_settings_service),
) -> List[HolidayResponse]:
    return [HolidayResponse.model_validate(h) for h in service.list_holidays(scope.business_id)]


@router.post("/holidays", response_model=HolidayResponse, status_code=status.HTTP_201_CREATED)
def add_holiday(
    payload: HolidayCreate,
    scope: BusinessScope = Depends(get_business_scope),
    service: BusinessSettingsService = Depends(get_business_settings_service),
) -> HolidayResponse:
    try:
        holiday = service.add_holiday(
            scope.business_id, payload.holiday_date, payload.name, payload.recurring
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return HolidayResponse.model_validate(holiday)


@router.delete("/holidays/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_holiday(
    holiday_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: BusinessScope = Depends(get_business_scope),
    service: BusinessSettingsService = Depends(get_business_settings_service),
) -> Response:
    try:
        service.delete_holiday(scope.business_id, holiday_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/capacity", response_model=CapacityStatusResponse)
def get_capacity(
    on_date: date = Query(..., alias="date"),
    scope: BusinessScope = Depends(get_business_scope),
    guard: CapacityGuard = Depends(get_capacity_guard),
) -> CapacityStatusResponse:
    result = guard.check_capacity(scope.business_id, on_date, scope.today)
    return CapacityStatusResponse(
        date=on_date,
        ok=result.ok,
        reason=result.reason.value if result.reason else None,
        message=result.message,
        details={k: v for k, v in result.details.items() if k != "date"},
    )
