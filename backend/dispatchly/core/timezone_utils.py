"""
Timezone utilities for the HTTP edge.

The scheduling engine never reads a clock. Routes use these helpers to turn
the business's configured IANA timezone into the ``today``/``now`` values
that every engine entry point receives explicitly.
"""

from datetime import date, datetime
from typing import TYPE_CHECKING

import pytz

if TYPE_CHECKING:
    from ..models.business import Business


def get_business_timezone(business: "Business") -> pytz.BaseTzInfo:
    """
    Get the business's timezone, falling back to UTC for unknown names.

    Args:
        business: Business row (timezone column may be empty)

    Returns:
        pytz timezone object
    """
    try:
        return pytz.timezone(business.timezone or "UTC")
    except pytz.UnknownTimeZoneError:
        return pytz.UTC


def get_business_now(business: "Business") -> datetime:
    """Current datetime in the business's timezone."""
    return datetime.now(get_business_timezone(business))


def get_business_today(business: "Business") -> date:
    """'Today' as the business's dispatchers see it."""
    return get_business_now(business).date()
