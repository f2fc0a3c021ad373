"""Scheduling domain events handed to the notification hook."""
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, Optional


class EventKind(str, Enum):
    ASSIGNED = "assigned"
    GRABBED = "grabbed"
    GENERATION_DEFERRED = "generation-deferred"
    CAPACITY_EXCEEDED = "capacity-exceeded"
    UNASSIGNED = "unassigned"


@dataclass
class SchedulingEvent:
    """A scheduling fact worth telling admins (and sometimes the provider) about."""

    kind: EventKind
    business_id: str
    entity_type: str  # 'booking' or 'recurring_series'
    entity_id: str
    occurred_at: datetime
    summary: str
    provider_id: Optional[str] = None
    provider_name: Optional[str] = None
    provider_email: Optional[str] = None
    provider_phone: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["occurred_at"] = self.occurred_at.isoformat()
        data["payload"] = _jsonable(self.payload)
        return data


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value
