from datetime import date, time

import pytest

from dispatchly.core.config import settings
from dispatchly.core.exceptions import NotFoundException, ValidationException
from dispatchly.models import AvailabilityRule
from dispatchly.services.business_settings_service import BusinessSettingsService


@pytest.fixture
def service(unit_db):
    return BusinessSettingsService(unit_db)


class TestSpotLimits:
    def test_defaults_when_never_saved(self, factory, service):
        business = factory.business()
        limits = service.get_spot_limits(business.id)
        assert limits.max_bookings_per_day == settings.default_max_bookings_per_day
        assert limits.enabled

    def test_values_are_clamped_on_save(self, factory, service):
        business = factory.business()
        limits = service.update_spot_limits(
            business.id, max_bookings_per_day=0, max_advance_booking_days=5000
        )
        assert limits.max_bookings_per_day == 1
        assert limits.max_advance_booking_days == 365
        # Untouched fields keep their defaults
        assert limits.max_bookings_per_week == settings.default_max_bookings_per_week

    def test_non_numeric_limit_is_rejected(self, factory, service):
        business = factory.business()
        with pytest.raises(ValidationException) as exc:
            service.update_spot_limits(business.id, max_bookings_per_day="lots")
        assert exc.value.code == "INVALID_SPOT_LIMIT"

    def test_disabled_limits_use_fallbacks(self, factory, service):
        business = factory.business()
        limits = service.update_spot_limits(business.id, max_bookings_per_day=2, enabled=False)
        assert limits.max_bookings_per_day == 2
        assert limits.effective().max_bookings_per_day == settings.fallback_max_bookings_per_day

    def test_second_save_updates_the_same_row(self, unit_db, factory, service):
        business = factory.business()
        service.update_spot_limits(business.id, max_bookings_per_day=3)
        service.update_spot_limits(business.id, max_bookings_per_week=7)
        limits = service.get_spot_limits(business.id)
        assert (limits.max_bookings_per_day, limits.max_bookings_per_week) == (3, 7)

    def test_unknown_business(self, service):
        with pytest.raises(NotFoundException):
            service.update_spot_limits("01ARZ3NDEKTSV4RRFFQ69G5FAV", max_bookings_per_day=3)


class TestSchedulingOptions:
    def test_partial_update_keeps_other_switches(self, factory, service):
        business = factory.business()
        service.update_scheduling_options(business.id, providers_can_grab=False)
        options = service.update_scheduling_options(business.id, max_minutes_per_booking=240)
        assert options.providers_can_grab is False
        assert options.max_minutes_per_booking == 240
        assert options.auto_assign_enabled is True

    def test_max_minutes_must_be_positive(self, factory, service):
        business = factory.business()
        with pytest.raises(ValidationException) as exc:
            service.update_scheduling_options(business.id, max_minutes_per_booking=0)
        assert exc.value.code == "INVALID_MAX_MINUTES"


class TestHolidays:
    def test_add_list_delete(self, factory, service):
        business = factory.business()
        holiday = service.add_holiday(business.id, date(2030, 12, 25), " Christmas ", recurring=True)
        assert holiday.name == "Christmas"
        assert [h.id for h in service.list_holidays(business.id)] == [holiday.id]

        service.delete_holiday(business.id, holiday.id)
        assert service.list_holidays(business.id) == []
        with pytest.raises(NotFoundException):
            service.delete_holiday(business.id, holiday.id)


class TestAvailabilityRules:
    def test_weekly_rule_can_run_to_midnight(self, factory, service):
        business = factory.business()
        provider = factory.provider(business)
        rule = service.create_rule(
            provider.id, business.id, day_of_week=5, start_time=time(22, 0), end_time=time(0, 0)
        )
        assert rule.is_available
        assert [r.id for r in service.list_rules(provider.id, business.id)] == [rule.id]

    def test_start_must_precede_end(self, factory, service):
        business = factory.business()
        provider = factory.provider(business)
        with pytest.raises(ValidationException) as exc:
            service.create_rule(
                provider.id, business.id, day_of_week=1, start_time=time(12, 0), end_time=time(9, 0)
            )
        assert exc.value.code == "INVALID_TIME_RANGE"

    def test_single_date_rule_derives_weekday(self, factory, service):
        business = factory.business()
        provider = factory.provider(business)
        rule = service.create_rule(
            provider.id,
            business.id,
            effective_date=date(2030, 1, 14),
            start_time=time(9, 0),
            end_time=time(12, 0),
        )
        assert rule.day_of_week == 1

    def test_single_date_rule_with_wrong_weekday(self, factory, service):
        business = factory.business()
        provider = factory.provider(business)
        with pytest.raises(ValidationException) as exc:
            service.create_rule(
                provider.id,
                business.id,
                day_of_week=3,
                effective_date=date(2030, 1, 14),
                start_time=time(9, 0),
                end_time=time(12, 0),
            )
        assert exc.value.code == "WEEKDAY_MISMATCH"

    def test_expiry_without_effective_date(self, factory, service):
        business = factory.business()
        provider = factory.provider(business)
        with pytest.raises(ValidationException) as exc:
            service.create_rule(
                provider.id,
                business.id,
                day_of_week=1,
                expiry_date=date(2030, 2, 1),
                start_time=time(9, 0),
                end_time=time(12, 0),
            )
        assert exc.value.code == "INVALID_RULE_DATES"

    def test_rule_for_provider_in_other_business(self, factory, service):
        business = factory.business()
        other = factory.business(name="Other")
        provider = factory.provider(other)
        with pytest.raises(NotFoundException):
            service.create_rule(
                provider.id, business.id, day_of_week=1, start_time=time(9, 0), end_time=time(12, 0)
            )

    def test_update_and_disable_rule(self, unit_db, factory, service):
        business = factory.business()
        provider = factory.provider(business)
        rule = factory.rule(provider, day_of_week=1)

        updated = service.update_rule(rule.id, business.id, end_time=time(15, 0))
        assert updated.end_time == time(15, 0)

        service.disable_rule(rule.id, business.id)
        stored = unit_db.get(AvailabilityRule, rule.id)
        assert stored is not None
        assert stored.is_available is False

    def test_update_rejects_invalid_merge(self, factory, service):
        business = factory.business()
        provider = factory.provider(business)
        rule = factory.rule(provider, day_of_week=1)
        with pytest.raises(ValidationException):
            service.update_rule(rule.id, business.id, start_time=time(18, 0))
