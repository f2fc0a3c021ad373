from datetime import date, datetime, time, timezone

import pytest

from dispatchly.models import AssignmentRecord, Booking
from dispatchly.repositories.factory import RepositoryFactory
from dispatchly.services.assignment_selector import (
    AssignmentSelector,
    EligibilityReason,
    OutcomeReason,
)
from dispatchly.services.conflict_checker import FitResult

MONDAY = date(2030, 1, 14)
NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def selector(unit_db, hook):
    return AssignmentSelector(unit_db, notification_hook=hook)


class TestAutoAssign:
    def test_picks_highest_rated_free_provider(self, unit_db, factory, selector, channel):
        business = factory.business()
        good = factory.provider(business, first_name="Ana", rating="4.90")
        okay = factory.provider(business, first_name="Ben", rating="3.00")
        for p in (good, okay):
            factory.rule(p, day_of_week=1)
        booking = factory.booking(business, on=MONDAY)

        outcome = selector.auto_assign(booking.id, business.id, NOW)

        assert outcome.assigned
        assert outcome.provider_id == good.id
        unit_db.refresh(booking)
        assert booking.provider_id == good.id
        assert booking.status == "confirmed"
        assert booking.assignment_source == "auto"
        record = unit_db.query(AssignmentRecord).filter_by(booking_id=booking.id).one()
        assert record.source == "auto"
        assert channel.kinds() == ["assigned"]

    def test_busier_provider_loses_to_idle_one_with_same_rating(self, unit_db, factory, selector):
        business = factory.business()
        busy = factory.provider(business, first_name="Ana")
        idle = factory.provider(business, first_name="Ben")
        for p in (busy, idle):
            factory.rule(p, day_of_week=1)
        factory.booking(business, on=MONDAY, at=time(14, 0), provider=busy)
        booking = factory.booking(business, on=MONDAY, at=time(9, 0))

        assert selector.auto_assign(booking.id, business.id, NOW).provider_id == idle.id

    def test_tie_break_prefers_priority_then_oldest(self, unit_db, factory, selector):
        business = factory.business()
        newest = factory.provider(
            business, first_name="Ana", created_at=datetime(2029, 6, 1, tzinfo=timezone.utc)
        )
        oldest = factory.provider(
            business, first_name="Ben", created_at=datetime(2028, 6, 1, tzinfo=timezone.utc)
        )
        for p in (newest, oldest):
            factory.rule(p, day_of_week=1)
        first = factory.booking(business, on=MONDAY, at=time(9, 0))
        assert selector.auto_assign(first.id, business.id, NOW).provider_id == oldest.id

        business2 = factory.business(name="Other")
        low = factory.provider(business2, first_name="Cat", priority=0)
        high = factory.provider(
            business2,
            first_name="Dee",
            priority=5,
            created_at=datetime(2029, 12, 1, tzinfo=timezone.utc),
        )
        for p in (low, high):
            factory.rule(p, day_of_week=1)
        second = factory.booking(business2, on=MONDAY, at=time(9, 0))
        assert selector.auto_assign(second.id, business2.id, NOW).provider_id == high.id

    def test_specialist_wins_over_generalist(self, unit_db, factory, selector):
        business = factory.business()
        generalist = factory.provider(business, first_name="Ana", rating="5.00")
        specialist = factory.provider(
            business, first_name="Ben", rating="4.50", skills=[("carpets", True)]
        )
        for p in (generalist, specialist):
            factory.rule(p, day_of_week=1)
        booking = factory.booking(business, on=MONDAY, service_category="carpets")

        assert selector.auto_assign(booking.id, business.id, NOW).provider_id == specialist.id

    def test_opted_out_and_inactive_providers_are_skipped(self, unit_db, factory, selector, channel):
        business = factory.business()
        opted_out = factory.provider(business, first_name="Ana", accepts_auto_assign=False)
        inactive = factory.provider(business, first_name="Ben", status="inactive")
        for p in (opted_out, inactive):
            factory.rule(p, day_of_week=1)
        booking = factory.booking(business, on=MONDAY)

        outcome = selector.auto_assign(booking.id, business.id, NOW)

        assert not outcome.assigned
        assert outcome.reason == OutcomeReason.NO_ELIGIBLE_PROVIDER
        unit_db.refresh(booking)
        assert booking.provider_id is None
        assert channel.kinds() == ["unassigned"]

    def test_provider_excluded_from_service_is_skipped(self, unit_db, factory, selector):
        business = factory.business()
        service = factory.service(business)
        excluded = factory.provider(business, first_name="Ana", rating="5.00")
        allowed = factory.provider(business, first_name="Ben", rating="3.00")
        for p in (excluded, allowed):
            factory.rule(p, day_of_week=1)
        factory.exclude(service, excluded)
        booking = factory.booking(business, on=MONDAY, service_id=service.id)

        assert selector.auto_assign(booking.id, business.id, NOW).provider_id == allowed.id

    def test_max_minutes_per_booking_filters_everyone(self, unit_db, factory, selector):
        business = factory.business()
        factory.options(business, max_minutes_per_booking=120)
        provider = factory.provider(business)
        factory.rule(provider, day_of_week=1)
        booking = factory.booking(business, on=MONDAY, at=time(9, 0), duration=180)

        outcome = selector.auto_assign(booking.id, business.id, NOW)
        assert outcome.reason == OutcomeReason.NO_ELIGIBLE_PROVIDER

    def test_already_assigned_booking_is_left_alone(self, unit_db, factory, selector):
        business = factory.business()
        owner = factory.provider(business, first_name="Ana")
        factory.rule(owner, day_of_week=1)
        booking = factory.booking(business, on=MONDAY, provider=owner)

        outcome = selector.auto_assign(booking.id, business.id, NOW)
        assert outcome.reason == OutcomeReason.ALREADY_ASSIGNED
        assert outcome.provider_id == owner.id

    def test_unknown_booking_is_not_found(self, unit_db, factory, selector):
        business = factory.business()
        outcome = selector.auto_assign("01ARZ3NDEKTSV4RRFFQ69G5FAV", business.id, NOW)
        assert outcome.reason == OutcomeReason.NOT_FOUND

    def test_lost_race_returns_already_assigned(self, unit_db, factory, selector, monkeypatch):
        business = factory.business()
        winner = factory.provider(business, first_name="Ana", rating="3.00")
        candidate = factory.provider(business, first_name="Ben", rating="5.00")
        for p in (winner, candidate):
            factory.rule(p, day_of_week=1)
        booking = factory.booking(business, on=MONDAY)
        bookings = RepositoryFactory.create_booking_repository(unit_db)

        def grab_in_between(*args, **kwargs):
            # Another request claims the booking after ranking, before the write
            assert bookings.assign_provider_if_unassigned(
                booking.id, business.id, winner.id, "grab", NOW
            ) == 1
            unit_db.commit()
            return FitResult(ok=True)

        monkeypatch.setattr(selector.conflict_checker, "fits", grab_in_between)

        outcome = selector.auto_assign(booking.id, business.id, NOW)

        assert not outcome.assigned
        assert outcome.reason == OutcomeReason.ALREADY_ASSIGNED
        unit_db.expire_all()
        stored = unit_db.get(Booking, booking.id)
        assert stored.provider_id == winner.id
        assert stored.assignment_source == "grab"
        assert unit_db.query(AssignmentRecord).count() == 0

    def test_provider_booked_elsewhere_mid_claim_is_rolled_back(
        self, unit_db, factory, selector, monkeypatch
    ):
        business = factory.business()
        pat = factory.provider(business)
        factory.rule(pat, day_of_week=1)
        first = factory.booking(business, on=MONDAY)
        second = factory.booking(business, on=MONDAY, customer_name="Robin Doe")
        bookings = RepositoryFactory.create_booking_repository(unit_db)
        competing = []

        def place_other_booking(*args, **kwargs):
            # Another request gives Pat the other 10:00 job while this one is mid-claim
            if not competing:
                competing.append(
                    bookings.assign_provider_if_unassigned(second.id, business.id, pat.id, "auto", NOW)
                )
                unit_db.commit()
            return FitResult(ok=True)

        monkeypatch.setattr(selector.conflict_checker, "fits", place_other_booking)

        outcome = selector.auto_assign(first.id, business.id, NOW)

        assert competing == [1]
        assert not outcome.assigned
        assert outcome.reason == OutcomeReason.NO_ELIGIBLE_PROVIDER
        unit_db.expire_all()
        assert unit_db.get(Booking, first.id).provider_id is None
        assert unit_db.query(Booking).filter_by(provider_id=pat.id).count() == 1
        assert unit_db.query(AssignmentRecord).count() == 0

    def test_clash_falls_through_to_next_candidate(self, unit_db, factory, selector, monkeypatch):
        business = factory.business()
        busy = factory.provider(business, first_name="Ana", rating="5.00")
        spare = factory.provider(business, first_name="Ben", rating="3.00")
        for p in (busy, spare):
            factory.rule(p, day_of_week=1)
        first = factory.booking(business, on=MONDAY)
        second = factory.booking(business, on=MONDAY, customer_name="Robin Doe")
        bookings = RepositoryFactory.create_booking_repository(unit_db)
        competing = []

        def place_other_booking(*args, **kwargs):
            if not competing:
                competing.append(
                    bookings.assign_provider_if_unassigned(second.id, business.id, busy.id, "auto", NOW)
                )
                unit_db.commit()
            return FitResult(ok=True)

        monkeypatch.setattr(selector.conflict_checker, "fits", place_other_booking)

        outcome = selector.auto_assign(first.id, business.id, NOW)

        assert outcome.assigned
        assert outcome.provider_id == spare.id


class TestGrab:
    def test_provider_grabs_open_job(self, unit_db, factory, selector, channel):
        business = factory.business()
        provider = factory.provider(business, accepts_auto_assign=False)
        factory.rule(provider, day_of_week=1)
        booking = factory.booking(business, on=MONDAY)

        outcome = selector.grab(booking.id, provider.id, business.id, NOW)

        assert outcome.assigned
        unit_db.refresh(booking)
        assert booking.assignment_source == "grab"
        assert channel.kinds() == ["grabbed"]

    def test_second_grab_loses(self, unit_db, factory, selector):
        business = factory.business()
        first = factory.provider(business, first_name="Ana")
        second = factory.provider(business, first_name="Ben")
        for p in (first, second):
            factory.rule(p, day_of_week=1)
        booking = factory.booking(business, on=MONDAY)

        assert selector.grab(booking.id, first.id, business.id, NOW).assigned
        outcome = selector.grab(booking.id, second.id, business.id, NOW)
        assert outcome.reason == OutcomeReason.ALREADY_ASSIGNED
        unit_db.refresh(booking)
        assert booking.provider_id == first.id

    def test_grab_disabled_by_business(self, unit_db, factory, selector):
        business = factory.business()
        factory.options(business, providers_can_grab=False)
        provider = factory.provider(business)
        factory.rule(provider, day_of_week=1)
        booking = factory.booking(business, on=MONDAY)

        assert selector.grab(booking.id, provider.id, business.id, NOW).reason == (
            OutcomeReason.GRAB_DISABLED
        )

    def test_grab_outside_availability_is_ineligible(self, unit_db, factory, selector):
        business = factory.business()
        provider = factory.provider(business)
        factory.rule(provider, day_of_week=2)
        booking = factory.booking(business, on=MONDAY)

        outcome = selector.grab(booking.id, provider.id, business.id, NOW)
        assert outcome.reason == OutcomeReason.PROVIDER_INELIGIBLE
        assert outcome.ineligible_reasons == [EligibilityReason.OUTSIDE_AVAILABILITY]

    def test_grab_rolls_back_when_provider_was_just_booked(
        self, unit_db, factory, selector, monkeypatch
    ):
        business = factory.business()
        pat = factory.provider(business)
        factory.rule(pat, day_of_week=1)
        first = factory.booking(business, on=MONDAY)
        second = factory.booking(business, on=MONDAY, customer_name="Robin Doe")
        bookings = RepositoryFactory.create_booking_repository(unit_db)
        evaluate = selector.evaluate_candidates

        def evaluate_then_lose_slot(*args, **kwargs):
            evaluations = evaluate(*args, **kwargs)
            bookings.assign_provider_if_unassigned(second.id, business.id, pat.id, "grab", NOW)
            unit_db.commit()
            return evaluations

        monkeypatch.setattr(selector, "evaluate_candidates", evaluate_then_lose_slot)

        outcome = selector.grab(first.id, pat.id, business.id, NOW)

        assert not outcome.assigned
        assert outcome.reason == OutcomeReason.PROVIDER_INELIGIBLE
        assert outcome.ineligible_reasons == [EligibilityReason.OVERLAP]
        unit_db.expire_all()
        assert unit_db.get(Booking, first.id).provider_id is None


class TestPreview:
    def test_preview_explains_every_provider_without_writing(self, unit_db, factory, selector):
        business = factory.business()
        free = factory.provider(business, first_name="Ana")
        busy = factory.provider(business, first_name="Ben", rating="5.00")
        away = factory.provider(business, first_name="Cat", rating="5.00")
        factory.rule(free, day_of_week=1)
        factory.rule(busy, day_of_week=1)
        factory.booking(business, on=MONDAY, at=time(10, 0), provider=busy)

        candidates = selector.preview_eligibility(business.id, MONDAY, time(10, 30), 60)

        assert [c.provider_id for c in candidates][0] == free.id
        by_id = {c.provider_id: c for c in candidates}
        assert by_id[free.id].eligible
        assert by_id[busy.id].reasons == [EligibilityReason.OVERLAP]
        assert by_id[away.id].reasons == [EligibilityReason.OUTSIDE_AVAILABILITY]
        assert unit_db.query(AssignmentRecord).count() == 0

    def test_preview_for_booking_ignores_the_booking_itself(self, unit_db, factory, selector):
        business = factory.business()
        provider = factory.provider(business)
        factory.rule(provider, day_of_week=1)
        booking = factory.booking(business, on=MONDAY)

        candidates = selector.preview_for_booking(booking.id, business.id)
        assert candidates[0].eligible
        assert selector.preview_for_booking("01ARZ3NDEKTSV4RRFFQ69G5FAV", business.id) is None
