from datetime import date, datetime, time, timedelta, timezone

import pytest

from dispatchly.core.exceptions import NotFoundException, ValidationException
from dispatchly.models import Booking, DeferredOccurrence, RecurringSeries, SeriesStatus
from dispatchly.models.recurring import IntervalFrequency, MonthlyDayFrequency
from dispatchly.services.recurring_series_service import RecurringSeriesService, occurrence_dates

TODAY = date(2030, 1, 7)
NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)
# Three weeks after the first occurrence; the horizon date itself is exclusive
HORIZON = date(2030, 2, 4)


def _template(**overrides):
    data = {
        "customer_name": "Jordan Smith",
        "service_name": "Weekly clean",
        "scheduled_time": time(10, 0),
        "duration_minutes": 120,
        "start_date": date(2030, 1, 14),
        "frequency": "weekly",
    }
    data.update(overrides)
    return data


@pytest.fixture
def service(unit_db, hook):
    return RecurringSeriesService(unit_db, notification_hook=hook)


def _series_dates(db, series_id):
    return [
        b.scheduled_date
        for b in db.query(Booking).filter_by(recurring_series_id=series_id).order_by(Booking.scheduled_date)
    ]


class TestOccurrenceDates:
    def test_interval_resumes_on_grid(self):
        dates = list(
            occurrence_dates(date(2030, 1, 1), IntervalFrequency(14), date(2030, 1, 10), date(2030, 2, 28))
        )
        assert dates == [date(2030, 1, 15), date(2030, 1, 29), date(2030, 2, 12), date(2030, 2, 26)]

    def test_monthly_clamps_and_recovers(self):
        dates = list(
            occurrence_dates(date(2030, 1, 31), MonthlyDayFrequency(1), date(2030, 1, 31), date(2030, 6, 1))
        )
        assert dates == [
            date(2030, 1, 31),
            date(2030, 2, 28),
            date(2030, 3, 31),
            date(2030, 4, 30),
            date(2030, 5, 31),
        ]

    def test_monthly_cursor_mid_series(self):
        dates = list(
            occurrence_dates(date(2030, 1, 31), MonthlyDayFrequency(1), date(2030, 3, 1), date(2030, 5, 1))
        )
        assert dates == [date(2030, 3, 31), date(2030, 4, 30)]

    def test_yearly(self):
        dates = list(
            occurrence_dates(date(2028, 2, 29), MonthlyDayFrequency(12), date(2028, 2, 29), date(2031, 1, 1))
        )
        assert dates == [date(2028, 2, 29), date(2029, 2, 28), date(2030, 2, 28)]

    def test_stop_date_is_excluded(self):
        dates = list(occurrence_dates(date(2030, 1, 14), IntervalFrequency(7), date(2030, 1, 14), date(2030, 2, 4)))
        assert dates == [date(2030, 1, 14), date(2030, 1, 21), date(2030, 1, 28)]

    def test_empty_when_cursor_past_last(self):
        assert list(occurrence_dates(date(2030, 1, 1), IntervalFrequency(7), date(2030, 2, 1), date(2030, 1, 31))) == []


class TestCreateAndExtend:
    def test_weekly_series_creates_three_bookings(self, unit_db, factory, service):
        business = factory.business()

        result = service.create_series(business.id, _template(), TODAY, NOW, horizon_date=HORIZON)

        assert result.created == 3
        assert result.watermark == HORIZON
        assert _series_dates(unit_db, result.series_id) == [
            date(2030, 1, 14),
            date(2030, 1, 21),
            date(2030, 1, 28),
        ]
        booking = unit_db.query(Booking).filter_by(recurring_series_id=result.series_id).first()
        assert booking.status == "pending"
        assert booking.provider_id is None
        assert booking.duration_minutes == 120

    def test_horizon_day_is_not_generated(self, unit_db, factory, service):
        business = factory.business()
        start = date(2030, 1, 14)

        result = service.create_series(
            business.id, _template(start_date=start), TODAY, NOW, horizon_date=start + timedelta(days=21)
        )

        assert result.created == 3
        assert result.watermark >= start + timedelta(days=21)
        assert start + timedelta(days=21) not in _series_dates(unit_db, result.series_id)

        # The next run picks the horizon day up exactly once
        later = service.extend(result.series_id, business.id, start + timedelta(days=22), TODAY, NOW)
        assert later.created == 1
        assert _series_dates(unit_db, result.series_id)[-1] == start + timedelta(days=21)

    def test_extend_is_idempotent(self, unit_db, factory, service):
        business = factory.business()
        created = service.create_series(business.id, _template(), TODAY, NOW, horizon_date=HORIZON)

        again = service.extend(created.series_id, business.id, HORIZON, TODAY, NOW)
        assert again.created == 0

        # Even with the watermark lost, existing dates are never duplicated
        series = unit_db.get(RecurringSeries, created.series_id)
        series.generated_through = None
        unit_db.commit()
        replay = service.extend(created.series_id, business.id, HORIZON, TODAY, NOW)
        assert replay.created == 0
        assert replay.skipped_duplicates == 3
        assert len(_series_dates(unit_db, created.series_id)) == 3

    def test_watermark_only_moves_forward(self, unit_db, factory, service):
        business = factory.business()
        created = service.create_series(business.id, _template(), TODAY, NOW, horizon_date=HORIZON)

        earlier = service.extend(created.series_id, business.id, date(2030, 1, 20), TODAY, NOW)
        assert earlier.created == 0
        assert earlier.watermark == HORIZON

        later = service.extend(created.series_id, business.id, date(2030, 2, 18), TODAY, NOW)
        assert later.created == 2
        assert later.watermark == date(2030, 2, 18)

    def test_end_date_caps_generation(self, unit_db, factory, service):
        business = factory.business()
        result = service.create_series(
            business.id, _template(end_date=date(2030, 1, 21)), TODAY, NOW, horizon_date=HORIZON
        )
        assert result.created == 2
        assert result.watermark == date(2030, 1, 22)

    def test_monthly_series_clamps_to_short_months(self, unit_db, factory, service):
        business = factory.business()
        factory.limits(business, max_advance_booking_days=365)

        result = service.create_series(
            business.id,
            _template(start_date=date(2030, 1, 31), frequency="monthly"),
            TODAY,
            NOW,
            horizon_date=date(2030, 5, 1),
        )
        assert _series_dates(unit_db, result.series_id) == [
            date(2030, 1, 31),
            date(2030, 2, 28),
            date(2030, 3, 31),
            date(2030, 4, 30),
        ]

    def test_paused_series_generates_nothing(self, unit_db, factory, service):
        business = factory.business()
        created = service.create_series(business.id, _template(), TODAY, NOW, horizon_date=HORIZON)
        service.set_status(created.series_id, business.id, SeriesStatus.PAUSED)

        result = service.extend(created.series_id, business.id, date(2030, 3, 1), TODAY, NOW)
        assert result.created == 0
        assert result.watermark == HORIZON

    def test_dates_before_today_are_skipped(self, unit_db, factory, service):
        business = factory.business()
        series = RecurringSeries(
            business_id=business.id,
            customer_name="Jordan Smith",
            service_name="Weekly clean",
            scheduled_time=time(10, 0),
            duration_minutes=60,
            frequency_kind="interval_days",
            interval_days=7,
            start_date=date(2029, 12, 24),
        )
        unit_db.add(series)
        unit_db.commit()

        result = service.extend(series.id, business.id, date(2030, 1, 15), TODAY, NOW)
        assert result.skipped_past == 2
        assert _series_dates(unit_db, series.id) == [date(2030, 1, 7), date(2030, 1, 14)]

    def test_rejects_past_start_and_bad_cadence(self, factory, service):
        business = factory.business()
        with pytest.raises(ValidationException) as past:
            service.create_series(business.id, _template(start_date=date(2030, 1, 1)), TODAY, NOW)
        assert past.value.code == "PAST_DATE"

        with pytest.raises(ValidationException) as cadence:
            service.create_series(business.id, _template(frequency="hourly"), TODAY, NOW)
        assert cadence.value.code == "INVALID_FREQUENCY"

    def test_unknown_series_is_not_found(self, factory, service):
        business = factory.business()
        with pytest.raises(NotFoundException):
            service.extend("01ARZ3NDEKTSV4RRFFQ69G5FAV", business.id, HORIZON, TODAY, NOW)


class TestHolidays:
    def test_holiday_is_skipped(self, unit_db, factory, service):
        business = factory.business()
        factory.holiday(business, date(2030, 1, 21))

        result = service.create_series(business.id, _template(), TODAY, NOW, horizon_date=HORIZON)
        assert result.skipped_holidays == 1
        assert _series_dates(unit_db, result.series_id) == [date(2030, 1, 14), date(2030, 1, 28)]

    def test_holiday_moves_to_next_open_day(self, unit_db, factory, service):
        business = factory.business()
        factory.options(business, holiday_skip_to_next=True)
        factory.holiday(business, date(2030, 1, 21))
        factory.holiday(business, date(2030, 1, 22))

        result = service.create_series(business.id, _template(), TODAY, NOW, horizon_date=HORIZON)
        assert _series_dates(unit_db, result.series_id) == [
            date(2030, 1, 14),
            date(2030, 1, 23),
            date(2030, 1, 28),
        ]

    def test_series_override_ignores_holidays(self, unit_db, factory, service):
        business = factory.business()
        factory.holiday(business, date(2030, 1, 21))

        result = service.create_series(
            business.id, _template(holiday_override=True), TODAY, NOW, horizon_date=HORIZON
        )
        assert result.created == 3


class TestCapacityDeferral:
    def test_full_day_becomes_deferred_occurrence(self, unit_db, factory, service, channel):
        business = factory.business()
        factory.limits(business, max_bookings_per_day=1)
        factory.booking(business, on=date(2030, 1, 21))

        result = service.create_series(business.id, _template(), TODAY, NOW, horizon_date=HORIZON)

        assert result.created == 2
        assert result.deferred == 1
        deferred = unit_db.query(DeferredOccurrence).one()
        assert deferred.occurrence_date == date(2030, 1, 21)
        assert deferred.reason == "DAILY_LIMIT_EXCEEDED"
        assert "generation-deferred" in channel.kinds()
        assert [d.id for d in service.list_deferred(business.id)] == [deferred.id]

    def test_deferral_is_recorded_once(self, unit_db, factory, service, channel):
        business = factory.business()
        factory.limits(business, max_bookings_per_day=1)
        factory.booking(business, on=date(2030, 1, 21))
        created = service.create_series(business.id, _template(), TODAY, NOW, horizon_date=HORIZON)

        series = unit_db.get(RecurringSeries, created.series_id)
        series.generated_through = None
        unit_db.commit()
        service.extend(created.series_id, business.id, HORIZON, TODAY, NOW)

        assert unit_db.query(DeferredOccurrence).count() == 1
        assert channel.kinds().count("generation-deferred") == 1

    def test_deferred_date_is_placed_once_capacity_frees(self, unit_db, factory, service):
        business = factory.business()
        factory.limits(business, max_bookings_per_day=1)
        blocker = factory.booking(business, on=date(2030, 1, 21))
        created = service.create_series(business.id, _template(), TODAY, NOW, horizon_date=HORIZON)
        assert created.deferred == 1

        blocker.status = "canceled"
        unit_db.commit()
        retry = service.extend(created.series_id, business.id, HORIZON, TODAY, NOW)

        assert retry.recovered == 1
        assert retry.created == 1
        assert unit_db.query(DeferredOccurrence).count() == 0
        assert date(2030, 1, 21) in _series_dates(unit_db, created.series_id)

    def test_deferral_stays_open_while_the_day_is_full(self, unit_db, factory, service):
        business = factory.business()
        factory.limits(business, max_bookings_per_day=1)
        factory.booking(business, on=date(2030, 1, 21))
        created = service.create_series(business.id, _template(), TODAY, NOW, horizon_date=HORIZON)

        retry = service.extend(created.series_id, business.id, HORIZON, TODAY, NOW)

        assert retry.created == 0
        assert retry.recovered == 0
        assert unit_db.query(DeferredOccurrence).count() == 1


class TestAssignmentOfGeneratedBookings:
    def test_preferred_provider_gets_the_bookings(self, unit_db, factory, service):
        business = factory.business()
        preferred = factory.provider(business, first_name="Ana", rating="3.00")
        other = factory.provider(business, first_name="Ben", rating="5.00")
        factory.rule(preferred, day_of_week=1)
        factory.rule(other, day_of_week=1)

        result = service.create_series(
            business.id,
            _template(preferred_provider_id=preferred.id),
            TODAY,
            NOW,
            horizon_date=HORIZON,
        )

        bookings = unit_db.query(Booking).filter_by(recurring_series_id=result.series_id).all()
        assert {b.provider_id for b in bookings} == {preferred.id}
        assert {b.assignment_source for b in bookings} == {"manual"}

    def test_auto_assign_disabled_leaves_pool(self, unit_db, factory, service):
        business = factory.business()
        factory.options(business, auto_assign_enabled=False)
        provider = factory.provider(business)
        factory.rule(provider, day_of_week=1)

        result = service.create_series(business.id, _template(), TODAY, NOW, horizon_date=HORIZON)
        bookings = unit_db.query(Booking).filter_by(recurring_series_id=result.series_id).all()
        assert all(b.provider_id is None for b in bookings)


class TestExtendAll:
    def test_one_failing_series_does_not_stop_the_rest(self, unit_db, factory, service, monkeypatch):
        business = factory.business()
        first = service.create_series(business.id, _template(), TODAY, NOW, horizon_date=HORIZON)
        second = service.create_series(
            business.id, _template(customer_name="Robin Doe"), TODAY, NOW, horizon_date=HORIZON
        )

        original_extend = service.extend

        def flaky_extend(series_id, *args, **kwargs):
            if series_id == first.series_id:
                raise RuntimeError("boom")
            return original_extend(series_id, *args, **kwargs)

        monkeypatch.setattr(service, "extend", flaky_extend)

        totals = service.extend_all(business.id, date(2030, 2, 18), TODAY, NOW)

        assert totals.series_count == 2
        assert totals.failed == 1
        assert totals.failed_series_ids == [first.series_id]
        assert totals.created == 2
        assert len(_series_dates(unit_db, second.series_id)) == 5
