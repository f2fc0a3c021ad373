"""Application-wide constants for the Dispatchly scheduling engine."""

from __future__ import annotations

BRAND_NAME = "Dispatchly"
API_TITLE = f"{BRAND_NAME} Scheduling API"
API_DESCRIPTION = "Availability, capacity, assignment and recurring-series engine"
API_VERSION = "1.0.0"

# Minutes in a day; a window may end exactly at MINUTES_PER_DAY (24:00)
MINUTES_PER_DAY = 24 * 60

# Booking duration constraints
MIN_BOOKING_DURATION = 15  # minutes
MAX_BOOKING_DURATION = 12 * 60  # minutes

# Query limits
DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 1000

# Day of week mapping, Sunday-first to match stored availability rules
DAYS_OF_WEEK = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# Spot-limit clamping bounds applied on every upsert
SPOT_LIMIT_BOUNDS = {
    "max_bookings_per_day": (1, 999),
    "max_bookings_per_week": (1, 9999),
    "max_bookings_per_month": (1, 99999),
    "max_advance_booking_days": (1, 365),
}

# Rating scale providers are scored on
MAX_PROVIDER_RATING = 5

# Header carrying the tenant scope for every request
BUSINESS_ID_HEADER = "X-Business-Id"

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"
