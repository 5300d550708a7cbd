"""
Unread activity derived from the negotiation log and the two last-read
timestamps on a proposal. There are no per-event read flags.

The proposal itself counts as one implicit message from the sender to the
receiver; log entries written by the other party after the viewer's
last-read time are layered on top.
"""
from django.db.models import Q
from django.utils import timezone

from ..exceptions import Unauthorized
from ..models import Proposal
from . import negotiation


def count_unread(log, *, viewer_id, sender_id, created_at, last_read_at):
    is_sender = viewer_id == sender_id

    history_unread = sum(
        1 for entry in log
        if entry.actor_id != viewer_id and (last_read_at is None or entry.timestamp > last_read_at)
    )

    if last_read_at is None:
        if not log:
            return 0 if is_sender else 1
        return history_unread + (0 if is_sender else 1)

    if not log:
        return 1 if (not is_sender and created_at > last_read_at) else 0
    return history_unread


def last_read_at_for(proposal, viewer_id):
    if viewer_id == proposal.sender_id:
        return proposal.sender_last_read_at
    return proposal.receiver_last_read_at


def unread_count(proposal, viewer, log=None):
    viewer_id = getattr(viewer, 'pk', viewer)
    if log is None:
        log = negotiation.entries(proposal)
    return count_unread(
        log,
        viewer_id=viewer_id,
        sender_id=proposal.sender_id,
        created_at=proposal.created_at,
        last_read_at=last_read_at_for(proposal, viewer_id),
    )


def total_unread_count(proposals, viewer):
    return sum(unread_count(proposal, viewer) for proposal in proposals)


def mark_read(proposal, viewer, now=None):
    """
    Move the viewer's last-read timestamp to ``now``. The timestamp never
    moves backward, so repeated calls are harmless.
    """
    viewer_id = getattr(viewer, 'pk', viewer)
    side = proposal.side_of(viewer_id)
    if side is None:
        raise Unauthorized("Only the sender or the performer can read this proposal.", code='not_a_party')

    now = now or timezone.now()
    field = 'sender_last_read_at' if side == 'sender' else 'receiver_last_read_at'

    Proposal.objects.filter(pk=proposal.pk).filter(
        Q(**{f'{field}__isnull': True}) | Q(**{f'{field}__lt': now})
    ).update(**{field: now})

    proposal.refresh_from_db(fields=[field])
    return getattr(proposal, field)
