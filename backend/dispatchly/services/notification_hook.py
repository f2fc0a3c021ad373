# backend/dispatchly/services/notification_hook.py
"""
Notification/Audit hook.

Every scheduling event is written to the admin-visible audit feed and then
handed to each delivery channel. Notification is strictly fire-and-forget:
``notify`` never raises. A failing audit write or channel is logged and
counted, and the caller's scheduling work is never undone by it.

The audit row is written inside the request. Channel delivery (Resend,
Twilio) is queued on the request's BackgroundTasks when one is attached,
so it runs after the response is sent; without one it runs inline.
"""

import logging
from typing import List, Optional, Protocol, Sequence

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from ..events.scheduling_events import SchedulingEvent
from ..models.audit_log import AuditLog
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class NotificationChannel(Protocol):
    name: str

    def send(self, event: SchedulingEvent) -> bool:
        ...


def default_channels() -> List[NotificationChannel]:
    from .email import EmailChannel
    from .sms_service import SmsChannel

    return [EmailChannel(), SmsChannel()]


class NotificationHook(BaseService):
    def __init__(
        self,
        db: Session,
        channels: Optional[Sequence[NotificationChannel]] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ):
        super().__init__(db)
        self.channels = list(channels) if channels is not None else default_channels()
        self.background_tasks = background_tasks
        self.audit_repository = RepositoryFactory.create_audit_log_repository(db)

    def notify(self, event: SchedulingEvent) -> bool:
        """
        Record an event and deliver it, or queue delivery.

        Returns:
            True when the audit entry was stored and no inline channel failed
        """
        ok = self._record(event)
        if not self.channels:
            return ok
        if self.background_tasks is not None:
            self.background_tasks.add_task(self.deliver, event)
            return ok
        return self.deliver(event) and ok

    def deliver(self, event: SchedulingEvent) -> bool:
        """Send an event through every channel; never raises."""
        ok = True
        for channel in self.channels:
            try:
                delivered = channel.send(event)
            except Exception as exc:
                ok = False
                self.logger.error(
                    f"{channel.name} notification failed for {event.kind.value} "
                    f"{event.entity_id}: {exc}"
                )
                prometheus_metrics.record_notification(event.kind.value, "failed")
                continue
            if delivered:
                prometheus_metrics.record_notification(event.kind.value, "delivered")
        return ok

    def _record(self, event: SchedulingEvent) -> bool:
        try:
            entry = AuditLog.from_event(
                business_id=event.business_id,
                kind=event.kind.value,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                summary=event.summary,
                occurred_at=event.occurred_at,
                payload=event.to_dict()["payload"],
            )
            self.audit_repository.write(entry)
            self.db.commit()
            return True
        except Exception as exc:
            self.logger.error(
                f"Audit write failed for {event.kind.value} {event.entity_id}: {exc}"
            )
            self.db.rollback()
            prometheus_metrics.record_notification(event.kind.value, "failed")
            return False
