# backend/dispatchly/models/audit_log.py
"""
Admin-visible scheduling event feed.

Rows are written by the notification hook for every scheduling event
(assignments, grabs, deferrals, capacity rejections, unassigned jobs).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import Column, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from ..database import Base


def _now_utc() -> datetime:
    """Return timezone-aware UTC timestamp for defaults."""
    return datetime.now(timezone.utc)


class AuditLog(Base):
    """Persistence model for scheduling audit entries."""

    __tablename__ = "audit_log"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    business_id = Column(String(26), nullable=False)
    kind = Column(String(40), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=False)
    summary = Column(Text, nullable=False)
    occurred_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        server_default=func.now(),
    )
    payload = Column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=True,
    )

    __table_args__ = (Index("idx_audit_log_business_occurred", "business_id", "occurred_at"),)

    @classmethod
    def from_event(
        cls,
        business_id: str,
        kind: str,
        entity_type: str,
        entity_id: str,
        summary: str,
        occurred_at: datetime,
        payload: Mapping[str, Any] | None,
    ) -> "AuditLog":
        """Factory helper to build an AuditLog row from a scheduling event."""
        return cls(
            business_id=business_id,
            kind=kind,
            entity_type=entity_type,
            entity_id=entity_id,
            summary=summary,
            occurred_at=occurred_at,
            payload=dict(payload) if payload is not None else None,
        )
