# backend/dispatchly/services/email.py
"""
Email notification channel backed by Resend.

Renders a short jinja2 template per scheduling event kind and sends it to
the business admin address and, for assignment events, the provider. The
channel disables itself when no Resend API key is configured.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from jinja2 import DictLoader, Environment, select_autoescape
import resend

from ..core.config import settings
from ..core.exceptions import ServiceException
from ..events.scheduling_events import EventKind, SchedulingEvent

logger = logging.getLogger(__name__)

_TEMPLATES = {
    "subject": "[{{ brand }}] {{ title }}",
    "body.html": (
        "<p>{{ summary }}</p>"
        "{% if event.payload.scheduled_date %}"
        "<p>When: {{ event.payload.scheduled_date }}"
        "{% if event.payload.scheduled_time %} at {{ event.payload.scheduled_time }}{% endif %}"
        "</p>{% endif %}"
        "{% if event.provider_name %}<p>Provider: {{ event.provider_name }}</p>{% endif %}"
        "{% if event.payload.reason %}<p>Reason: {{ event.payload.reason }}</p>{% endif %}"
    ),
}

_TITLES = {
    EventKind.ASSIGNED: "Job assigned",
    EventKind.GRABBED: "Job claimed by provider",
    EventKind.GENERATION_DEFERRED: "Recurring job could not be scheduled",
    EventKind.CAPACITY_EXCEEDED: "Booking refused: capacity reached",
    EventKind.UNASSIGNED: "Job needs a provider",
}

_PROVIDER_KINDS = {EventKind.ASSIGNED, EventKind.GRABBED}

_env = Environment(loader=DictLoader(_TEMPLATES), autoescape=select_autoescape(["html"]))


class EmailChannel:
    """Sends scheduling events by email through Resend."""

    name = "email"

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        key = api_key
        if key is None and settings.resend_api_key is not None:
            key = settings.resend_api_key.get_secret_value()
        self.enabled = bool(key) and settings.notifications_enabled
        self.from_email = from_email or settings.from_email
        if self.enabled:
            resend.api_key = key
        else:
            logger.info("Email channel disabled - Resend API key not configured")

    def recipients_for(self, event: SchedulingEvent) -> List[str]:
        recipients: List[str] = []
        if settings.admin_notification_email:
            recipients.append(settings.admin_notification_email)
        if event.kind in _PROVIDER_KINDS and event.provider_email:
            recipients.append(event.provider_email)
        return recipients

    def render(self, event: SchedulingEvent) -> Dict[str, str]:
        context: Dict[str, Any] = {
            "brand": "Dispatchly",
            "title": _TITLES.get(event.kind, event.kind.value),
            "summary": event.summary,
            "event": event,
        }
        html = _env.get_template("body.html").render(**context)
        return {
            "subject": _env.get_template("subject").render(**context),
            "html": html,
            "text": re.sub(r"\s+", " ", re.sub(r"<[^>]+>", " ", html)).strip(),
        }

    def send(self, event: SchedulingEvent) -> bool:
        """
        Deliver the event; returns False when there is nothing to send.

        Raises:
            ServiceException: If Resend rejects the message
        """
        if not self.enabled:
            return False
        recipients = self.recipients_for(event)
        if not recipients:
            return False

        message = self.render(event)
        try:
            response = resend.Emails.send(
                {
                    "from": self.from_email,
                    "to": recipients,
                    "subject": message["subject"],
                    "html": message["html"],
                    "text": message["text"],
                }
            )
        except Exception as e:
            logger.error(f"Failed to send {event.kind.value} email: {str(e)}")
            raise ServiceException(f"Email sending failed: {str(e)}")
        logger.info(f"Email sent for {event.kind.value} {event.entity_id}: {response}")
        return True
