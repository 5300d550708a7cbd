"""
Booking event emission.

Events leave only after the surrounding transaction commits. Delivery is
best effort: receivers and the webhook may fail, and such failures are logged
and dropped without touching the state change that produced the event.
"""
import logging

import requests
from django.conf import settings
from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

PROPOSAL_CREATED = 'proposal_created'
PROPOSAL_ACCEPTED = 'proposal_accepted'
PROPOSAL_DECLINED = 'proposal_declined'
NEGOTIATION_MESSAGE = 'negotiation_message'
PROJECT_STATUS_CHANGED = 'project_status_changed'

EVENT_TYPES = (
    PROPOSAL_CREATED,
    PROPOSAL_ACCEPTED,
    PROPOSAL_DECLINED,
    NEGOTIATION_MESSAGE,
    PROJECT_STATUS_CHANGED,
)

# Receivers get ``event_type`` and ``payload`` keyword arguments.
booking_event = Signal()


def emit(event_type, **payload):
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown booking event type: {event_type}")
    transaction.on_commit(lambda: deliver(event_type, payload))


def deliver(event_type, payload):
    responses = booking_event.send_robust(sender=None, event_type=event_type, payload=payload)
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.error(
                "Booking event receiver failed",
                exc_info=response,
                extra={'event_type': event_type, 'receiver': getattr(receiver, '__name__', repr(receiver))},
            )

    url = getattr(settings, 'NOTIFICATION_WEBHOOK_URL', '')
    if not url:
        return

    try:
        response = requests.post(
            url,
            json={'event_type': event_type, 'payload': payload},
            timeout=settings.NOTIFICATION_TIMEOUT,
        )
        response.raise_for_status()
    except requests.RequestException:
        logger.exception("Booking event delivery failed", extra={'event_type': event_type, 'payload': payload})
