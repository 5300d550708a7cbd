"""
Negotiation thread: the append-only log attached to one proposal.

Stored rows are converted into one entry type per kind so that only an offer
ever carries a fee. The thread itself does not know about proposal status;
terminality is checked by the proposal state machine before it appends.
"""
from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from ..constants import EventKind
from ..exceptions import Unauthorized
from ..models import NegotiationEvent


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    actor_id: int
    text: str = ''

    kind = None


@dataclass(frozen=True)
class MessageEntry(LogEntry):
    kind = EventKind.MESSAGE


@dataclass(frozen=True)
class OfferEntry(LogEntry):
    suggested_fee: int = 0

    kind = EventKind.OFFER

    def __post_init__(self):
        if self.suggested_fee is None or self.suggested_fee < 0:
            raise ValueError("An offer must carry a non-negative fee.")


@dataclass(frozen=True)
class AcceptEntry(LogEntry):
    kind = EventKind.ACCEPT


@dataclass(frozen=True)
class DeclineEntry(LogEntry):
    kind = EventKind.DECLINE


ENTRY_TYPES = {
    EventKind.MESSAGE.value: MessageEntry,
    EventKind.OFFER.value: OfferEntry,
    EventKind.ACCEPT.value: AcceptEntry,
    EventKind.DECLINE.value: DeclineEntry,
}


def entry_from_event(event):
    entry_type = ENTRY_TYPES[str(event.kind)]
    if entry_type is OfferEntry:
        return OfferEntry(event.created_at, event.actor_id, event.text, suggested_fee=event.suggested_fee)
    return entry_type(event.created_at, event.actor_id, event.text)


def entries(proposal):
    """Return the proposal's log in insertion order."""
    return [entry_from_event(event) for event in proposal.negotiation_events.order_by('id')]


def append(proposal, entry):
    """
    Validate the entry's actor against the proposal parties and persist it.

    Raises Unauthorized when the actor is neither the sender nor the performer.
    """
    if proposal.side_of(entry.actor_id) is None:
        raise Unauthorized(
            "Only the sender or the performer can write to this negotiation.",
            code='not_a_party',
            proposal_id=proposal.pk,
        )

    return NegotiationEvent.objects.create(
        proposal=proposal,
        actor_id=entry.actor_id,
        kind=entry.kind,
        text=entry.text,
        suggested_fee=getattr(entry, 'suggested_fee', None),
        created_at=entry.timestamp,
    )


def make_entry(kind, actor_id, text='', suggested_fee=None, timestamp=None):
    entry_type = ENTRY_TYPES[str(kind)]
    timestamp = timestamp or timezone.now()
    if entry_type is OfferEntry:
        return OfferEntry(timestamp, actor_id, text, suggested_fee=suggested_fee)
    return entry_type(timestamp, actor_id, text)


def latest_offer(log):
    for entry in reversed(log):
        if isinstance(entry, OfferEntry):
            return entry
    return None
