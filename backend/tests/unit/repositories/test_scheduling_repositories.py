from datetime import date, datetime, time, timezone

import pytest

from dispatchly.models import Booking, RecurringSeries
from dispatchly.repositories.factory import RepositoryFactory

MONDAY = date(2030, 1, 14)
NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def bookings(unit_db):
    return RepositoryFactory.create_booking_repository(unit_db)


@pytest.fixture
def series_repo(unit_db):
    return RepositoryFactory.create_recurring_series_repository(unit_db)


def _series(db, business, **values):
    series = RecurringSeries(
        business_id=business.id,
        customer_name="Jordan Smith",
        service_name="Weekly clean",
        scheduled_time=time(10, 0),
        duration_minutes=60,
        frequency_kind="interval_days",
        interval_days=7,
        start_date=MONDAY,
        **values,
    )
    db.add(series)
    db.commit()
    return series


def _occurrence(series, on):
    return {
        "business_id": series.business_id,
        "recurring_series_id": series.id,
        "service_name": series.service_name,
        "customer_name": series.customer_name,
        "scheduled_date": on,
        "scheduled_time": series.scheduled_time,
        "duration_minutes": series.duration_minutes,
    }


class TestConditionalAssignment:
    def test_only_first_claim_updates(self, unit_db, factory, bookings):
        business = factory.business()
        ana = factory.provider(business, first_name="Ana")
        ben = factory.provider(business, first_name="Ben")
        booking = factory.booking(business, on=MONDAY)

        assert bookings.assign_provider_if_unassigned(booking.id, business.id, ana.id, "auto", NOW) == 1
        assert bookings.assign_provider_if_unassigned(booking.id, business.id, ben.id, "grab", NOW) == 0
        unit_db.commit()

        unit_db.expire_all()
        stored = unit_db.get(Booking, booking.id)
        assert stored.provider_id == ana.id
        assert stored.status == "confirmed"
        assert stored.assignment_source == "auto"

    def test_claim_is_scoped_to_business(self, unit_db, factory, bookings):
        business = factory.business()
        other = factory.business(name="Other")
        provider = factory.provider(other)
        booking = factory.booking(business, on=MONDAY)

        assert bookings.assign_provider_if_unassigned(booking.id, other.id, provider.id, "grab", NOW) == 0

    def test_canceled_booking_cannot_be_claimed(self, factory, bookings):
        business = factory.business()
        provider = factory.provider(business)
        booking = factory.booking(business, on=MONDAY, status="canceled")

        assert bookings.assign_provider_if_unassigned(booking.id, business.id, provider.id, "grab", NOW) == 0


class TestCapacityCounts:
    def test_canceled_and_completed_bookings_do_not_count(self, factory, bookings):
        business = factory.business()
        factory.booking(business, on=MONDAY)
        factory.booking(business, on=MONDAY, status="canceled")
        factory.booking(business, on=MONDAY, status="completed")
        factory.booking(business, on=date(2030, 1, 15))

        assert bookings.count_active_between(business.id, MONDAY, MONDAY) == 1
        assert bookings.count_active_between(business.id, MONDAY, date(2030, 1, 20)) == 2


class TestSeriesOccurrences:
    def test_duplicate_occurrence_returns_none(self, unit_db, factory, bookings):
        business = factory.business()
        series = _series(unit_db, business)

        first = bookings.create_series_occurrence(**_occurrence(series, MONDAY))
        unit_db.commit()
        assert first is not None

        assert bookings.create_series_occurrence(**_occurrence(series, MONDAY)) is None
        # The outer transaction survives the failed savepoint
        second = bookings.create_series_occurrence(**_occurrence(series, date(2030, 1, 21)))
        unit_db.commit()
        assert second is not None
        assert bookings.series_dates_between(series.id, MONDAY, date(2030, 1, 31)) == {
            MONDAY,
            date(2030, 1, 21),
        }

    def test_watermark_never_moves_back(self, unit_db, factory, series_repo):
        business = factory.business()
        series = _series(unit_db, business)

        assert series_repo.advance_watermark(series.id, date(2030, 2, 1)) == 1
        assert series_repo.advance_watermark(series.id, date(2030, 1, 20)) == 0
        assert series_repo.advance_watermark(series.id, date(2030, 2, 1)) == 0
        unit_db.commit()

        unit_db.expire_all()
        assert unit_db.get(RecurringSeries, series.id).generated_through == date(2030, 2, 1)

    def test_deferral_is_recorded_once_and_cleared(self, unit_db, factory, series_repo):
        business = factory.business()
        series = _series(unit_db, business)

        assert series_repo.record_deferral(series.id, business.id, MONDAY, "DAILY_LIMIT_EXCEEDED")
        assert series_repo.record_deferral(series.id, business.id, MONDAY, "WEEKLY_LIMIT_EXCEEDED") is None
        unit_db.commit()

        deferred = series_repo.list_deferred(business.id)
        assert len(deferred) == 1
        assert deferred[0].reason == "WEEKLY_LIMIT_EXCEEDED"

        series_repo.clear_deferral(series.id, MONDAY)
        unit_db.commit()
        assert series_repo.list_deferred(business.id) == []

    def test_list_active_skips_paused_series(self, unit_db, factory, series_repo):
        business = factory.business()
        active = _series(unit_db, business)
        _series(unit_db, business, status="paused")

        assert [s.id for s in series_repo.list_active(business.id)] == [active.id]
