# backend/dispatchly/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import assignments, bookings, providers, recurring_series, settings

__all__ = [
    "assignments",
    "bookings",
    "providers",
    "recurring_series",
    "settings",
]
