# backend/dispatchly/api/dependencies/scope.py
"""
Business scope for every request.

The tenant comes from the X-Business-Id header. The business's timezone
turns the wall clock into the ``today``/``now`` pair the engine takes as
parameters; nothing below the routes reads a clock.
"""

from dataclasses import dataclass
from datetime import date, datetime

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ...core.constants import BUSINESS_ID_HEADER
from ...core.exceptions import NotFoundException
from ...core.timezone_utils import get_business_now
from ...models.business import Business
from .database import get_db


@dataclass(frozen=True)
class BusinessScope:
    business_id: str
    today: date
    now: datetime


def get_business_scope(
    business_id: str = Header(..., alias=BUSINESS_ID_HEADER, min_length=1),
    db: Session = Depends(get_db),
) -> BusinessScope:
    business = db.get(Business, business_id)
    if business is None:
        raise NotFoundException("Business not found", code="BUSINESS_NOT_FOUND").to_http_exception()
    now = get_business_now(business)
    return BusinessScope(business_id=business.id, today=now.date(), now=now)
