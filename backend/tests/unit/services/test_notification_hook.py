from datetime import date, datetime, time, timezone
from unittest.mock import Mock

from fastapi import BackgroundTasks

from dispatchly.events.scheduling_events import EventKind, SchedulingEvent
from dispatchly.models import AuditLog, Booking
from dispatchly.services.assignment_selector import AssignmentSelector
from dispatchly.services.notification_hook import NotificationHook

NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


def _event(business_id: str) -> SchedulingEvent:
    return SchedulingEvent(
        kind=EventKind.ASSIGNED,
        business_id=business_id,
        entity_type="booking",
        entity_id="01ARZ3NDEKTSV4RRFFQ69G5FAV",
        occurred_at=NOW,
        summary="Standard clean assigned to Pat Lee",
        provider_id="01ARZ3NDEKTSV4RRFFQ69G5FAW",
        payload={"scheduled_date": date(2030, 1, 14), "scheduled_time": time(10, 0)},
    )


def test_event_is_audited_and_delivered(unit_db, factory, channel):
    business = factory.business()
    hook = NotificationHook(unit_db, channels=[channel])

    assert hook.notify(_event(business.id)) is True

    entry = unit_db.query(AuditLog).one()
    assert entry.kind == "assigned"
    assert entry.entity_type == "booking"
    assert entry.payload == {"scheduled_date": "2030-01-14", "scheduled_time": "10:00:00"}
    assert channel.kinds() == ["assigned"]


def test_failing_channel_is_swallowed(unit_db, factory, channel):
    business = factory.business()
    broken = Mock()
    broken.name = "broken"
    broken.send.side_effect = RuntimeError("smtp down")
    hook = NotificationHook(unit_db, channels=[broken, channel])

    assert hook.notify(_event(business.id)) is False

    # Later channels still run and the audit row is kept
    assert channel.kinds() == ["assigned"]
    assert unit_db.query(AuditLog).count() == 1


def test_event_to_dict_is_json_ready():
    data = _event("biz").to_dict()
    assert data["kind"] == "assigned"
    assert data["occurred_at"] == NOW.isoformat()
    assert data["payload"]["scheduled_date"] == "2030-01-14"


def _run(tasks: BackgroundTasks) -> None:
    for task in tasks.tasks:
        task.func(*task.args, **task.kwargs)


def test_delivery_is_queued_behind_the_audit_write(unit_db, factory, channel):
    business = factory.business()
    tasks = BackgroundTasks()
    hook = NotificationHook(unit_db, channels=[channel], background_tasks=tasks)

    assert hook.notify(_event(business.id)) is True

    assert unit_db.query(AuditLog).count() == 1
    assert channel.kinds() == []
    assert len(tasks.tasks) == 1

    _run(tasks)
    assert channel.kinds() == ["assigned"]


def test_broken_channel_never_reaches_the_assignment(unit_db, factory):
    business = factory.business()
    provider = factory.provider(business)
    factory.rule(provider, day_of_week=1)
    booking = factory.booking(business, on=date(2030, 1, 14))
    broken = Mock()
    broken.name = "broken"
    broken.send.side_effect = TimeoutError("provider API timed out")
    tasks = BackgroundTasks()
    selector = AssignmentSelector(
        unit_db, notification_hook=NotificationHook(unit_db, channels=[broken], background_tasks=tasks)
    )

    outcome = selector.auto_assign(booking.id, business.id, NOW)

    assert outcome.assigned
    broken.send.assert_not_called()

    _run(tasks)
    broken.send.assert_called_once()
    unit_db.expire_all()
    assert unit_db.get(Booking, booking.id).provider_id == provider.id
