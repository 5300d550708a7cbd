"""
Proposal state machine.

    pending     -> negotiating | accepted | declined | cancelled
    negotiating -> accepted | declined | cancelled
    accepted, declined, cancelled are terminal

Every transition locks the proposal row, checks the actor, appends to the
negotiation log and updates the status in one transaction. Project-level
consequences run afterwards through the coordinator, once the proposal row
has committed.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.db import transaction
from django.utils import timezone

from .. import notifications
from ..constants import (
    DEFAULT_ACCEPT_TEXT,
    DEFAULT_CANCEL_TEXT,
    DEFAULT_DECLINE_TEXT,
    EventKind,
    ProposalStatus,
    TERMINAL_CONFIRMATION_STATUSES,
)
from ..exceptions import BookingError, InvalidTransition, NotFound, Unauthorized
from ..models import Proposal
from . import coordinator, negotiation

logger = logging.getLogger(__name__)


@dataclass
class TransitionOutcome:
    proposal: Proposal
    project_changed: bool = False
    pm_assigned: bool = False
    coordinator_error: Optional[str] = None


def _actor_id(actor):
    return getattr(actor, 'pk', actor)


def _lock(proposal):
    try:
        return Proposal.objects.select_for_update(of=('self',)).select_related('project').get(pk=proposal.pk)
    except Proposal.DoesNotExist:
        raise NotFound("Proposal not found.", proposal_id=proposal.pk)


def _guard(proposal, actor_id):
    if proposal.side_of(actor_id) is None:
        raise Unauthorized(
            "Only the sender or the performer can act on this proposal.",
            code='not_a_party',
            proposal_id=proposal.pk,
        )
    if proposal.is_terminal:
        raise InvalidTransition(
            f"Proposal is already {proposal.status}.",
            code='proposal_terminal',
            proposal_id=proposal.pk,
            status=str(proposal.status),
        )


def validate_fee(fee):
    if isinstance(fee, bool) or not isinstance(fee, int) or fee < 0:
        raise BookingError("Fee must be a non-negative integer.", code='invalid_fee')


def create_proposal(project, sender, performer, fee=None, role='', details=''):
    """
    Insert a pending proposal. Callers check invite rights and run this inside
    their own transaction.
    """
    if fee is not None:
        validate_fee(fee)

    proposal = Proposal.objects.create(
        project=project,
        sender_id=getattr(sender, 'pk', sender),
        performer_id=getattr(performer, 'pk', performer),
        fee=fee,
        role=role or '',
        details=details or '',
        status=ProposalStatus.PENDING,
    )
    notifications.emit(notifications.PROPOSAL_CREATED, proposal_id=proposal.pk)
    return proposal


def send_message(proposal, actor, text):
    actor_id = _actor_id(actor)

    with transaction.atomic():
        locked = _lock(proposal)
        _guard(locked, actor_id)

        negotiation.append(locked, negotiation.make_entry(EventKind.MESSAGE, actor_id, text))
        if locked.status == ProposalStatus.PENDING:
            locked.status = ProposalStatus.NEGOTIATING
            locked.save(update_fields=['status', 'updated_at'])

        notifications.emit(
            notifications.NEGOTIATION_MESSAGE,
            proposal_id=locked.pk,
            from_side=locked.side_of(actor_id),
        )

    return TransitionOutcome(locked)


def send_offer(proposal, actor, fee, text=''):
    actor_id = _actor_id(actor)
    validate_fee(fee)

    with transaction.atomic():
        locked = _lock(proposal)
        _guard(locked, actor_id)

        negotiation.append(
            locked,
            negotiation.make_entry(EventKind.OFFER, actor_id, text, suggested_fee=fee),
        )
        locked.status = ProposalStatus.NEGOTIATING
        locked.save(update_fields=['status', 'updated_at'])

        notifications.emit(
            notifications.NEGOTIATION_MESSAGE,
            proposal_id=locked.pk,
            from_side=locked.side_of(actor_id),
        )

    logger.info(f"Offer of {fee} on proposal {locked.pk} by user {actor_id}")
    return TransitionOutcome(locked)


def accept(proposal, actor):
    """
    Accept on behalf of the performer. The latest offered fee, if any, becomes
    the agreed fee. The project cascade runs after the accept has committed
    and its failure is reported on the outcome, not raised.
    """
    actor_id = _actor_id(actor)

    with transaction.atomic():
        locked = _lock(proposal)
        _guard(locked, actor_id)
        if actor_id != locked.performer_id:
            raise Unauthorized(
                "Only the performer can accept this proposal.",
                code='not_your_turn',
                proposal_id=locked.pk,
            )
        if locked.project.confirmation_status in TERMINAL_CONFIRMATION_STATUSES:
            raise InvalidTransition(
                f"Project is already {locked.project.confirmation_status}.",
                code='project_terminal',
                proposal_id=locked.pk,
                project_id=locked.project_id,
                confirmation_status=str(locked.project.confirmation_status),
            )

        offer = negotiation.latest_offer(negotiation.entries(locked))
        negotiation.append(locked, negotiation.make_entry(EventKind.ACCEPT, actor_id, DEFAULT_ACCEPT_TEXT))

        locked.status = ProposalStatus.ACCEPTED
        locked.accepted_at = timezone.now()
        update_fields = ['status', 'accepted_at', 'updated_at']
        if offer is not None:
            locked.fee = offer.suggested_fee
            update_fields.append('fee')
        locked.save(update_fields=update_fields)

        notifications.emit(notifications.PROPOSAL_ACCEPTED, proposal_id=locked.pk)

    logger.info(f"Proposal {locked.pk} accepted by performer {actor_id}")

    outcome = TransitionOutcome(locked)
    try:
        change = coordinator.on_proposal_accepted(locked)
    except Exception as exc:
        logger.exception(f"Project update after accepting proposal {locked.pk} failed")
        outcome.coordinator_error = str(exc)
    else:
        outcome.project_changed = change.status_changed
        outcome.pm_assigned = change.pm_assigned
    return outcome


def decline(proposal, actor, reason=None):
    actor_id = _actor_id(actor)

    with transaction.atomic():
        locked = _lock(proposal)
        _guard(locked, actor_id)

        negotiation.append(
            locked,
            negotiation.make_entry(EventKind.DECLINE, actor_id, reason or DEFAULT_DECLINE_TEXT),
        )
        locked.status = ProposalStatus.DECLINED
        locked.save(update_fields=['status', 'updated_at'])

        notifications.emit(notifications.PROPOSAL_DECLINED, proposal_id=locked.pk)

    logger.info(f"Proposal {locked.pk} declined by user {actor_id}")
    return _close_project_if_idle(locked, ProposalStatus.DECLINED)


def cancel(proposal, actor):
    """Withdraw a proposal on behalf of its sender."""
    actor_id = _actor_id(actor)

    with transaction.atomic():
        locked = _lock(proposal)
        _guard(locked, actor_id)
        if actor_id != locked.sender_id:
            raise Unauthorized(
                "Only the sender can cancel this proposal.",
                code='not_your_turn',
                proposal_id=locked.pk,
            )

        negotiation.append(locked, negotiation.make_entry(EventKind.DECLINE, actor_id, DEFAULT_CANCEL_TEXT))
        locked.status = ProposalStatus.CANCELLED
        locked.save(update_fields=['status', 'updated_at'])

    logger.info(f"Proposal {locked.pk} cancelled by sender {actor_id}")
    return _close_project_if_idle(locked, ProposalStatus.CANCELLED)


def _close_project_if_idle(proposal, closing_status):
    outcome = TransitionOutcome(proposal)
    try:
        outcome.project_changed = coordinator.on_proposal_closed(proposal, closing_status)
    except Exception as exc:
        logger.exception(f"Project sweep after closing proposal {proposal.pk} failed")
        outcome.coordinator_error = str(exc)
    return outcome
