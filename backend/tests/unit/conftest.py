from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Iterator, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dispatchly.database import Base
from dispatchly.database.session_utils import enable_sqlite_savepoints

# Import models so Base.metadata is populated for create_all.
import dispatchly.models  # noqa: F401
from dispatchly.models import (
    AvailabilityRule,
    Booking,
    Business,
    BusinessHoliday,
    BusinessSchedulingOptions,
    BusinessSpotLimits,
    Provider,
    ProviderSkill,
    ServiceOffering,
    ServiceProviderExclusion,
)
from dispatchly.services.notification_hook import NotificationHook

# Monday, Sunday-first weekday 1
TODAY = date(2030, 1, 7)
NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def unit_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def unit_db(unit_engine) -> Iterator[Session]:
    """Fresh schema per test; services commit for real."""
    SessionLocal = sessionmaker(bind=unit_engine, expire_on_commit=False, future=True)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


class RecordingChannel:
    """Notification channel that remembers what it was asked to send."""

    name = "recording"

    def __init__(self) -> None:
        self.events: List[Any] = []

    def send(self, event: Any) -> bool:
        self.events.append(event)
        return True

    def kinds(self) -> List[str]:
        return [e.kind.value for e in self.events]


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def hook(unit_db, channel) -> NotificationHook:
    return NotificationHook(unit_db, channels=[channel])


class SchedulingFactory:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _save(self, obj: Any) -> Any:
        self.db.add(obj)
        self.db.commit()
        return obj

    def business(self, name: str = "Sparkle Cleaning", tz: str = "UTC") -> Business:
        return self._save(Business(name=name, timezone=tz))

    def options(self, business: Business, **values: Any) -> BusinessSchedulingOptions:
        return self._save(BusinessSchedulingOptions(business_id=business.id, **values))

    def limits(self, business: Business, **values: Any) -> BusinessSpotLimits:
        return self._save(BusinessSpotLimits(business_id=business.id, **values))

    def holiday(self, business: Business, on: date, recurring: bool = False) -> BusinessHoliday:
        return self._save(
            BusinessHoliday(business_id=business.id, holiday_date=on, name="Closed", recurring=recurring)
        )

    def provider(
        self,
        business: Business,
        first_name: str = "Pat",
        rating: Optional[str] = "4.50",
        priority: int = 0,
        created_at: Optional[datetime] = None,
        skills: Optional[List[tuple]] = None,
        **values: Any,
    ) -> Provider:
        provider = Provider(
            business_id=business.id,
            first_name=first_name,
            last_name="Lee",
            email=f"{first_name.lower()}@example.com",
            rating=Decimal(rating) if rating is not None else None,
            priority=priority,
            created_at=created_at or datetime(2029, 1, 1, tzinfo=timezone.utc),
            **values,
        )
        self._save(provider)
        for category, is_primary in skills or []:
            self._save(ProviderSkill(provider_id=provider.id, category=category, is_primary=is_primary))
        self.db.refresh(provider)
        return provider

    def rule(
        self,
        provider: Provider,
        day_of_week: Optional[int] = 1,
        start: time = time(9, 0),
        end: time = time(17, 0),
        is_available: bool = True,
        effective_date: Optional[date] = None,
        expiry_date: Optional[date] = None,
    ) -> AvailabilityRule:
        return self._save(
            AvailabilityRule(
                provider_id=provider.id,
                business_id=provider.business_id,
                day_of_week=day_of_week,
                start_time=start,
                end_time=end,
                is_available=is_available,
                effective_date=effective_date,
                expiry_date=expiry_date,
            )
        )

    def weekly(self, provider: Provider, start: time = time(8, 0), end: time = time(18, 0)) -> None:
        for weekday in range(7):
            self.rule(provider, day_of_week=weekday, start=start, end=end)

    def service(self, business: Business, name: str = "Deep clean", category: str = "cleaning") -> ServiceOffering:
        return self._save(ServiceOffering(business_id=business.id, name=name, category=category))

    def exclude(self, service: ServiceOffering, provider: Provider) -> ServiceProviderExclusion:
        return self._save(ServiceProviderExclusion(service_id=service.id, provider_id=provider.id))

    def booking(
        self,
        business: Business,
        on: date = TODAY,
        at: time = time(10, 0),
        duration: int = 60,
        provider: Optional[Provider] = None,
        **values: Any,
    ) -> Booking:
        values.setdefault("service_name", "Standard clean")
        values.setdefault("customer_name", "Jordan Smith")
        if provider is not None:
            values.setdefault("status", "confirmed")
            values.setdefault("assignment_source", "manual")
        return self._save(
            Booking(
                business_id=business.id,
                provider_id=provider.id if provider else None,
                scheduled_date=on,
                scheduled_time=at,
                duration_minutes=duration,
                **values,
            )
        )


@pytest.fixture
def factory(unit_db) -> SchedulingFactory:
    return SchedulingFactory(unit_db)
