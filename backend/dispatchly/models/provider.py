# backend/dispatchly/models/provider.py
"""
Provider models.

A provider is a field worker who can be assigned bookings. Providers carry
the signals the assignment scorer uses (rating, priority, skills) and an
opt-out switch for automatic assignment.
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ProviderStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Provider(Base):
    __tablename__ = "providers"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    business_id = Column(
        String(26), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    status = Column(String(20), nullable=False, default=ProviderStatus.ACTIVE.value)
    rating = Column(Numeric(3, 2), nullable=True)
    priority = Column(Integer, nullable=False, default=0)
    accepts_auto_assign = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_now_utc, server_default=func.now())

    skills = relationship(
        "ProviderSkill", back_populates="provider", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'suspended')", name="ck_providers_status"
        ),
        CheckConstraint(
            "rating IS NULL OR (rating >= 0 AND rating <= 5)", name="ck_providers_rating_range"
        ),
        Index("idx_providers_business_status", "business_id", "status"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == ProviderStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<Provider {self.id} {self.full_name} status={self.status}>"


class ProviderSkill(Base):
    """Service categories a provider specializes in."""

    __tablename__ = "provider_skills"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(
        String(26), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    category = Column(String(100), nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False)

    provider = relationship("Provider", back_populates="skills")

    __table_args__ = (
        UniqueConstraint("provider_id", "category", name="uq_provider_skill_category"),
    )
