from datetime import date, datetime, time, timezone

import pytest

from dispatchly.core.exceptions import (
    BookingConflictException,
    CapacityExceededException,
    NotFoundException,
    ValidationException,
)
from dispatchly.models import AssignmentRecord, AuditLog, Booking
from dispatchly.services.booking_intake_service import BookingIntakeService

TODAY = date(2030, 1, 7)
MONDAY = date(2030, 1, 14)
NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


def _request(**overrides):
    data = {
        "customer_name": "Jordan Smith",
        "service_name": "Standard clean",
        "scheduled_date": MONDAY,
        "scheduled_time": time(10, 0),
        "duration_minutes": 90,
    }
    data.update(overrides)
    return data


@pytest.fixture
def intake(unit_db, hook):
    return BookingIntakeService(unit_db, notification_hook=hook)


class TestValidation:
    def test_past_date_is_rejected(self, factory, intake):
        business = factory.business()
        with pytest.raises(ValidationException) as exc:
            intake.create_booking(business.id, _request(scheduled_date=date(2030, 1, 6)), TODAY, NOW)
        assert exc.value.code == "PAST_DATE"

    @pytest.mark.parametrize("duration", [10, 721])
    def test_duration_out_of_range(self, factory, intake, duration):
        business = factory.business()
        with pytest.raises(ValidationException) as exc:
            intake.create_booking(business.id, _request(duration_minutes=duration), TODAY, NOW)
        assert exc.value.code == "INVALID_DURATION"

    def test_today_is_bookable(self, unit_db, factory, intake):
        business = factory.business()
        result = intake.create_booking(business.id, _request(scheduled_date=TODAY), TODAY, NOW)
        assert result.booking.scheduled_date == TODAY

    def test_unknown_business(self, intake):
        with pytest.raises(NotFoundException) as exc:
            intake.create_booking("01ARZ3NDEKTSV4RRFFQ69G5FAV", _request(), TODAY, NOW)
        assert exc.value.code == "BUSINESS_NOT_FOUND"

    def test_service_snapshot_comes_from_offering(self, factory, intake):
        business = factory.business()
        offering = factory.service(business, name="Deep clean", category="deep")
        result = intake.create_booking(
            business.id, _request(service_name=None, service_id=offering.id), TODAY, NOW
        )
        assert result.booking.service_name == "Deep clean"
        assert result.booking.service_category == "deep"


class TestCapacity:
    def test_full_day_refuses_and_persists_nothing(self, unit_db, factory, intake, channel):
        business = factory.business()
        factory.limits(business, max_bookings_per_day=1)
        factory.booking(business, on=MONDAY, at=time(8, 0))

        with pytest.raises(CapacityExceededException) as exc:
            intake.create_booking(business.id, _request(), TODAY, NOW)

        assert exc.value.code == "DAILY_LIMIT_EXCEEDED"
        assert unit_db.query(Booking).count() == 1
        assert channel.kinds() == ["capacity-exceeded"]
        entry = unit_db.query(AuditLog).one()
        assert entry.kind == "capacity-exceeded"

    def test_booking_beyond_advance_window(self, factory, intake):
        business = factory.business()
        factory.limits(business, max_advance_booking_days=30)
        with pytest.raises(CapacityExceededException) as exc:
            intake.create_booking(business.id, _request(scheduled_date=date(2030, 3, 1)), TODAY, NOW)
        assert exc.value.code == "ADVANCE_WINDOW_EXCEEDED"

    def test_last_spot_is_taken(self, unit_db, factory, intake):
        business = factory.business()
        factory.limits(business, max_bookings_per_day=2)
        factory.booking(business, on=MONDAY, at=time(8, 0))

        intake.create_booking(business.id, _request(), TODAY, NOW)

        assert unit_db.query(Booking).filter_by(scheduled_date=MONDAY).count() == 2


class TestAssignmentOnIntake:
    def test_named_provider_gets_the_booking(self, unit_db, factory, intake, channel):
        business = factory.business()
        provider = factory.provider(business)
        factory.rule(provider, day_of_week=1)

        result = intake.create_booking(business.id, _request(provider_id=provider.id), TODAY, NOW)

        assert result.booking.provider_id == provider.id
        assert result.booking.status == "confirmed"
        assert result.booking.assignment_source == "manual"
        assert result.assignment is None
        record = unit_db.query(AssignmentRecord).one()
        assert record.source == "manual"
        assert channel.kinds() == ["assigned"]

    def test_named_provider_with_a_clash_is_a_conflict(self, unit_db, factory, intake):
        business = factory.business()
        provider = factory.provider(business)
        factory.rule(provider, day_of_week=1)
        factory.booking(business, on=MONDAY, at=time(10, 30), provider=provider)

        with pytest.raises(BookingConflictException) as exc:
            intake.create_booking(business.id, _request(provider_id=provider.id), TODAY, NOW)

        assert exc.value.code == "OVERLAP"
        assert unit_db.query(Booking).count() == 1

    def test_named_provider_booked_meanwhile_is_rolled_back(
        self, unit_db, factory, intake, monkeypatch
    ):
        business = factory.business()
        provider = factory.provider(business)
        factory.rule(provider, day_of_week=1)
        evaluate = intake.selector.evaluate_candidates

        def evaluate_then_lose_slot(*args, **kwargs):
            evaluations = evaluate(*args, **kwargs)
            # A parallel request commits a 10:30 job for the same provider
            factory.booking(business, on=MONDAY, at=time(10, 30), provider=provider)
            return evaluations

        monkeypatch.setattr(intake.selector, "evaluate_candidates", evaluate_then_lose_slot)

        with pytest.raises(BookingConflictException) as exc:
            intake.create_booking(business.id, _request(provider_id=provider.id), TODAY, NOW)

        assert exc.value.code == "OVERLAP"
        assert unit_db.query(Booking).count() == 1
        assert unit_db.query(AssignmentRecord).count() == 0

    def test_unknown_named_provider(self, factory, intake):
        business = factory.business()
        with pytest.raises(NotFoundException) as exc:
            intake.create_booking(
                business.id, _request(provider_id="01ARZ3NDEKTSV4RRFFQ69G5FAV"), TODAY, NOW
            )
        assert exc.value.code == "PROVIDER_NOT_FOUND"

    def test_unnamed_booking_is_auto_assigned(self, factory, intake):
        business = factory.business()
        provider = factory.provider(business)
        factory.rule(provider, day_of_week=1)

        result = intake.create_booking(business.id, _request(), TODAY, NOW)

        assert result.assignment is not None and result.assignment.assigned
        assert result.booking.provider_id == provider.id
        assert result.booking.assignment_source == "auto"

    def test_auto_assign_disabled_leaves_booking_in_pool(self, unit_db, factory, intake):
        business = factory.business()
        factory.options(business, auto_assign_enabled=False)
        provider = factory.provider(business)
        factory.rule(provider, day_of_week=1)

        result = intake.create_booking(business.id, _request(), TODAY, NOW)

        assert result.assignment is None
        assert result.booking.provider_id is None
        assert result.booking.status == "pending"
        assert [b.id for b in intake.list_unassigned(business.id, TODAY)] == [result.booking.id]

    def test_get_booking_is_scoped_to_business(self, factory, intake):
        business = factory.business()
        other = factory.business(name="Other")
        booking = factory.booking(business, on=MONDAY)

        assert intake.get_booking(booking.id, business.id).id == booking.id
        with pytest.raises(NotFoundException):
            intake.get_booking(booking.id, other.id)
