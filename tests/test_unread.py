"""
Unread counts derived from the negotiation log and the last-read timestamps.
"""
from datetime import timedelta

import pytest
from django.utils import timezone

from projects.constants import EventKind
from projects.exceptions import Unauthorized
from projects.services import negotiation, unread
from projects.services.negotiation import AcceptEntry, MessageEntry, OfferEntry

SENDER = 1
RECEIVER = 2


@pytest.fixture
def t0():
    return timezone.now() - timedelta(hours=1)


class TestCountUnread:
    """Pure counting rules, no database involved."""

    def test_fresh_proposal_is_one_unread_for_the_receiver_only(self, t0):
        assert unread.count_unread([], viewer_id=RECEIVER, sender_id=SENDER, created_at=t0, last_read_at=None) == 1
        assert unread.count_unread([], viewer_id=SENDER, sender_id=SENDER, created_at=t0, last_read_at=None) == 0

    def test_empty_log_after_reading(self, t0):
        """With no log, the receiver only counts the proposal if it was created after the last read."""
        read_before = t0 - timedelta(minutes=1)
        read_after = t0 + timedelta(minutes=1)

        assert unread.count_unread([], viewer_id=RECEIVER, sender_id=SENDER, created_at=t0, last_read_at=read_before) == 1
        assert unread.count_unread([], viewer_id=RECEIVER, sender_id=SENDER, created_at=t0, last_read_at=read_after) == 0
        assert unread.count_unread([], viewer_id=SENDER, sender_id=SENDER, created_at=t0, last_read_at=read_before) == 0

    def test_never_read_adds_the_implicit_proposal_for_the_receiver(self, t0):
        log = [
            MessageEntry(t0 + timedelta(minutes=1), SENDER, "Hi"),
            MessageEntry(t0 + timedelta(minutes=2), RECEIVER, "Hello"),
            MessageEntry(t0 + timedelta(minutes=3), SENDER, "Terms?"),
        ]

        assert unread.count_unread(log, viewer_id=RECEIVER, sender_id=SENDER, created_at=t0, last_read_at=None) == 3
        assert unread.count_unread(log, viewer_id=SENDER, sender_id=SENDER, created_at=t0, last_read_at=None) == 1

    def test_own_entries_never_count(self, t0):
        log = [MessageEntry(t0 + timedelta(minutes=minute), RECEIVER, "ping") for minute in range(1, 4)]

        assert unread.count_unread(log, viewer_id=RECEIVER, sender_id=SENDER, created_at=t0, last_read_at=t0) == 0

    def test_only_entries_after_last_read_count(self, t0):
        """Offer before the read, message after it, the viewer's own accept last: one unread."""
        t1, read_at, t2, t3 = (t0 + timedelta(minutes=minute) for minute in (1, 2, 3, 4))
        log = [
            OfferEntry(t1, SENDER, "Offer", suggested_fee=400_000),
            MessageEntry(t2, SENDER, "ok"),
            AcceptEntry(t3, RECEIVER, "Accepted"),
        ]

        assert unread.count_unread(log, viewer_id=RECEIVER, sender_id=SENDER, created_at=t0, last_read_at=read_at) == 1


@pytest.mark.django_db
class TestMarkRead:

    @pytest.fixture
    def proposal(self, brief, performer_a, derived_for):
        _, proposal = derived_for(brief, performer_a)
        return proposal

    def test_receiver_sees_the_new_proposal_until_read(self, proposal, performer_a, owner):
        assert unread.unread_count(proposal, performer_a) == 1
        assert unread.unread_count(proposal, owner) == 0

        unread.mark_read(proposal, performer_a)

        assert unread.unread_count(proposal, performer_a) == 0

    def test_mark_read_never_moves_backward(self, proposal, performer_a):
        first = unread.mark_read(proposal, performer_a)
        second = unread.mark_read(proposal, performer_a, now=first - timedelta(days=1))

        assert second == first
        proposal.refresh_from_db()
        assert proposal.receiver_last_read_at == first
        assert proposal.sender_last_read_at is None

    def test_mark_read_is_idempotent(self, proposal, owner):
        now = timezone.now()

        assert unread.mark_read(proposal, owner, now=now) == now
        assert unread.mark_read(proposal, owner, now=now) == now

    def test_second_mark_read_leaves_the_count_alone(self, proposal, owner, performer_a):
        negotiation.append(proposal, negotiation.make_entry(EventKind.MESSAGE, owner.pk, "Details attached"))
        unread.mark_read(proposal, performer_a)
        after_first = unread.unread_count(proposal, performer_a)

        unread.mark_read(proposal, performer_a)

        assert unread.unread_count(proposal, performer_a) == after_first == 0

    def test_non_party_cannot_mark_read(self, proposal, other_client):
        with pytest.raises(Unauthorized):
            unread.mark_read(proposal, other_client)

    def test_reply_after_read_is_unread_for_the_other_side(self, proposal, owner, performer_a):
        unread.mark_read(proposal, owner)
        negotiation.append(proposal, negotiation.make_entry(EventKind.MESSAGE, performer_a.pk, "Interested"))

        assert unread.unread_count(proposal, owner) == 1
        assert unread.total_unread_count([proposal], owner) == 1
