# backend/dispatchly/models/service.py
"""Service offerings a business sells, and per-service provider exclusions."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, UniqueConstraint
import ulid

from ..database import Base


class ServiceOffering(Base):
    __tablename__ = "service_offerings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    business_id = Column(
        String(26), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=True)
    default_duration_minutes = Column(Integer, nullable=False, default=120)

    __table_args__ = (
        CheckConstraint("default_duration_minutes > 0", name="ck_service_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<ServiceOffering {self.id} {self.name!r}>"


class ServiceProviderExclusion(Base):
    """A provider explicitly barred from performing a service."""

    __tablename__ = "service_provider_exclusions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    service_id = Column(
        String(26), ForeignKey("service_offerings.id", ondelete="CASCADE"), nullable=False
    )
    provider_id = Column(
        String(26), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("service_id", "provider_id", name="uq_service_provider_exclusion"),
    )
