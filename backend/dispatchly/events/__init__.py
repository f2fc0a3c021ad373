"""Event primitives for scheduling notifications."""

from .scheduling_events import EventKind, SchedulingEvent

__all__ = ["EventKind", "SchedulingEvent"]
