# backend/dispatchly/routes/v1/recurring_series.py
"""
Recurring series routes - API v1

Mounted under /api/v1/recurring-series. Generation is delegated to
RecurringSeriesService; every call is idempotent.

Endpoints:
    POST / - Create a series and generate its first horizon
    POST /extend-all - Extend every active series (calendar load)
    GET /deferred - Occurrences refused by capacity limits
    POST /{series_id}/extend - Extend one series up to a horizon
    POST /{series_id}/pause - Stop generating without deleting
    POST /{series_id}/resume - Start generating again
    POST /{series_id}/end - End the series
"""

from datetime import date
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ...api.dependencies import BusinessScope, get_business_scope, get_recurring_series_service
from ...core.constants import ULID_PATH_PATTERN
from ...core.exceptions import DomainException, handle_domain_exception
from ...models.recurring import SeriesStatus
from ...schemas.recurring import (
    DeferredOccurrenceResponse,
    ExtendAllResponse,
    ExtendSeriesRequest,
    ExtensionResponse,
    RecurringSeriesCreate,
)
from ...services.recurring_series_service import RecurringSeriesService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recurring-series-v1"])


@router.post("", response_model=ExtensionResponse, status_code=status.HTTP_201_CREATED)
def create_recurring_series(
    payload: RecurringSeriesCreate,
    scope: BusinessScope = Depends(get_business_scope),
    service: RecurringSeriesService = Depends(get_recurring_series_service),
) -> ExtensionResponse:
    data = payload.model_dump()
    horizon = data.pop("horizon_date")
    try:
        result = service.create_series(
            scope.business_id, data, scope.today, scope.now, horizon_date=horizon
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return ExtensionResponse(**result.to_dict())


@router.post("/extend-all", response_model=ExtendAllResponse)
def extend_all_series(
    payload: Optional[ExtendSeriesRequest] = Body(None),
    scope: BusinessScope = Depends(get_business_scope),
    service: RecurringSeriesService = Depends(get_recurring_series_service),
) -> ExtendAllResponse:
    horizon = payload.horizon_date if payload else None
    result = service.extend_all(scope.business_id, horizon, scope.today, scope.now)
    return ExtendAllResponse(**result.to_dict())


@router.get("/deferred", response_model=List[DeferredOccurrenceResponse])
def list_deferred_occurrences(
    from_date: Optional[date] = Query(None),
    scope: BusinessScope = Depends(get_business_scope),
    service: RecurringSeriesService = Depends(get_recurring_series_service),
) -> List[DeferredOccurrenceResponse]:
    deferred = service.list_deferred(scope.business_id, from_date)
    return [DeferredOccurrenceResponse.model_validate(d) for d in deferred]


@router.post("/{series_id}/extend", response_model=ExtensionResponse)
def extend_series(
    payload: Optional[ExtendSeriesRequest] = Body(None),
    series_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: BusinessScope = Depends(get_business_scope),
    service: RecurringSeriesService = Depends(get_recurring_series_service),
) -> ExtensionResponse:
    horizon = payload.horizon_date if payload and payload.horizon_date else None
    try:
        result = service.extend(
            series_id,
            scope.business_id,
            horizon or service.default_horizon(scope.today),
            scope.today,
            scope.now,
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return ExtensionResponse(**result.to_dict())


def _set_status(
    service: RecurringSeriesService, series_id: str, business_id: str, new_status: SeriesStatus
) -> dict:
    try:
        series = service.set_status(series_id, business_id, new_status)
    except DomainException as exc:
        handle_domain_exception(exc)
    return {"series_id": series.id, "status": series.status}


@router.post("/{series_id}/pause")
def pause_series(
    series_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: BusinessScope = Depends(get_business_scope),
    service: RecurringSeriesService = Depends(get_recurring_series_service),
) -> dict:
    return _set_status(service, series_id, scope.business_id, SeriesStatus.PAUSED)


@router.post("/{series_id}/resume")
def resume_series(
    series_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: BusinessScope = Depends(get_business_scope),
    service: RecurringSeriesService = Depends(get_recurring_series_service),
) -> dict:
    return _set_status(service, series_id, scope.business_id, SeriesStatus.ACTIVE)


@router.post("/{series_id}/end")
def end_series(
    series_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: BusinessScope = Depends(get_business_scope),
    service: RecurringSeriesService = Depends(get_recurring_series_service),
) -> dict:
    return _set_status(service, series_id, scope.business_id, SeriesStatus.ENDED)
