# backend/dispatchly/models/assignment.py
"""History of provider assignments, one row per successful claim."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String
import ulid

from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class AssignmentRecord(Base):
    __tablename__ = "booking_assignments"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    business_id = Column(
        String(26), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    provider_id = Column(String(26), ForeignKey("providers.id"), nullable=False)
    source = Column(String(10), nullable=False)
    score = Column(Numeric(8, 3), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=_now_utc)

    __table_args__ = (Index("idx_booking_assignments_booking", "booking_id"),)

    def __repr__(self) -> str:
        return (
            f"<AssignmentRecord booking={self.booking_id} provider={self.provider_id} "
            f"source={self.source} score={self.score}>"
        )
