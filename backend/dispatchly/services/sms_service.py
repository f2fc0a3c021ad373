# backend/dispatchly/services/sms_service.py
"""SMS notification channel backed by Twilio; tells providers about new jobs."""

import logging
from typing import Any, Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from ..core.config import settings
from ..core.exceptions import ServiceException
from ..events.scheduling_events import EventKind, SchedulingEvent

logger = logging.getLogger(__name__)


class SmsChannel:
    """Texts the provider when a job is assigned to them (auto or manual)."""

    name = "sms"

    def __init__(self, client: Optional[Any] = None) -> None:
        self.from_number = settings.twilio_phone_number
        if client is not None:
            self.client = client
            self.enabled = True
        elif settings.twilio_configured and settings.notifications_enabled:
            self.client = Client(
                settings.twilio_account_sid,
                settings.twilio_auth_token.get_secret_value(),
            )
            self.enabled = True
        else:
            self.client = None
            self.enabled = False
            logger.info("SMS channel disabled - Twilio credentials not configured")

    @staticmethod
    def format_message(event: SchedulingEvent) -> str:
        when = event.payload.get("scheduled_date", "")
        at = event.payload.get("scheduled_time")
        if at:
            when = f"{when} {at}"
        service = event.payload.get("service_name") or "job"
        return f"Dispatchly: new {service} assigned to you for {when}".strip()

    def send(self, event: SchedulingEvent) -> bool:
        if not self.enabled or event.kind != EventKind.ASSIGNED or not event.provider_phone:
            return False
        try:
            message = self.client.messages.create(
                body=self.format_message(event),
                from_=self.from_number,
                to=event.provider_phone,
            )
        except TwilioRestException as exc:
            logger.error("Twilio error sending SMS to %s: %s", event.provider_phone, exc)
            raise ServiceException(f"SMS sending failed: {exc}")
        logger.info("SMS sent to %s, SID: %s", event.provider_phone, message.sid)
        return True
