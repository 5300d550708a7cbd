"""
Booking events leave after commit and never break the write that caused them.
"""
import logging

import pytest
import requests

from projects import notifications
from projects.services import proposals


@pytest.fixture
def received():
    events = []

    def receiver(sender, event_type, payload, **kwargs):
        events.append((event_type, payload))

    notifications.booking_event.connect(receiver)
    yield events
    notifications.booking_event.disconnect(receiver)


@pytest.mark.django_db
class TestEmit:

    def test_events_wait_for_commit(self, brief, owner, performer_a, received, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            proposals.create_proposal(brief, owner, performer_a)

        assert len(callbacks) == 1
        assert received == []

    def test_proposal_created_is_delivered(self, brief, owner, performer_a, received, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            proposal = proposals.create_proposal(brief, owner, performer_a)

        assert received == [(notifications.PROPOSAL_CREATED, {'proposal_id': proposal.pk})]

    def test_accept_announces_proposal_and_project(self, brief, performer_a, derived_for, received, django_capture_on_commit_callbacks):
        project, proposal = derived_for(brief, performer_a)

        with django_capture_on_commit_callbacks(execute=True):
            proposals.accept(proposal, performer_a)

        assert (notifications.PROPOSAL_ACCEPTED, {'proposal_id': proposal.pk}) in received
        assert (notifications.PROJECT_STATUS_CHANGED, {'project_id': project.pk}) in received

    def test_message_names_the_side(self, brief, performer_a, derived_for, received, django_capture_on_commit_callbacks):
        _, proposal = derived_for(brief, performer_a)

        with django_capture_on_commit_callbacks(execute=True):
            proposals.send_message(proposal, performer_a, "Hello")

        assert received == [(notifications.NEGOTIATION_MESSAGE, {'proposal_id': proposal.pk, 'from_side': 'receiver'})]

    def test_unknown_event_type_is_refused(self):
        with pytest.raises(ValueError):
            notifications.emit('proposal_exploded', proposal_id=1)


class TestDeliver:

    def test_failing_receiver_is_logged(self, caplog):
        def broken(sender, **kwargs):
            raise RuntimeError("receiver down")

        notifications.booking_event.connect(broken)
        try:
            with caplog.at_level(logging.ERROR, logger='projects.notifications'):
                notifications.deliver(notifications.PROPOSAL_DECLINED, {'proposal_id': 7})
        finally:
            notifications.booking_event.disconnect(broken)

        assert "receiver failed" in caplog.text

    def test_webhook_failure_is_swallowed(self, settings, monkeypatch, caplog):
        settings.NOTIFICATION_WEBHOOK_URL = 'https://hooks.example.com/booking'
        calls = []

        def failing_post(url, **kwargs):
            calls.append((url, kwargs['json']))
            raise requests.ConnectionError("unreachable")

        monkeypatch.setattr(notifications.requests, 'post', failing_post)

        with caplog.at_level(logging.ERROR, logger='projects.notifications'):
            notifications.deliver(notifications.PROPOSAL_CREATED, {'proposal_id': 3})

        assert calls == [('https://hooks.example.com/booking', {'event_type': 'proposal_created', 'payload': {'proposal_id': 3}})]
        assert "delivery failed" in caplog.text

    def test_no_webhook_configured(self, settings, monkeypatch):
        settings.NOTIFICATION_WEBHOOK_URL = ''
        monkeypatch.setattr(notifications.requests, 'post', pytest.fail)

        notifications.deliver(notifications.PROPOSAL_CREATED, {'proposal_id': 3})
