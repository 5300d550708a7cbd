"""
Invitations.

Inviting from a brief clones the brief once per performer; every clone is an
independent engagement with its own pending proposal and its PM fixed at
creation. Inviting from a derived project adds proposals to that same
project. Each invitation commits on its own, so one failure never undoes the
others.
"""
import logging
from dataclasses import asdict, dataclass, field
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.db.models import Count, Q

from ..constants import (
    ConfirmationStatus,
    ProgressStatus,
    ProposalStatus,
    SummaryStatus,
    TERMINAL_CONFIRMATION_STATUSES,
)
from ..exceptions import BookingError, InvalidTransition, NotFound, PartialFanoutFailure, Unauthorized
from ..models import Project, ProjectSchedule, Proposal
from .proposals import create_proposal, validate_fee

logger = logging.getLogger(__name__)

User = get_user_model()

CLONED_FIELDS = (
    'title',
    'category',
    'description',
    'visibility',
    'embargo_date',
    'start_date',
    'end_date',
    'client_company',
)


@dataclass(frozen=True)
class InviteTerms:
    fee: Optional[int] = None
    role: str = ''
    details: str = ''


@dataclass
class FanoutResult:
    project_ids: list = field(default_factory=list)
    proposal_ids: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    failures: dict = field(default_factory=dict)

    @property
    def ok(self):
        return not self.failures

    def as_dict(self):
        data = asdict(self)
        data['failures'] = {str(key): value for key, value in self.failures.items()}
        return data

    def raise_for_failures(self):
        if self.failures:
            raise PartialFanoutFailure(self)
        return self


def fanout(project, actor, performer_ids, terms=None):
    terms = terms or InviteTerms()
    if terms.fee is not None:
        validate_fee(terms.fee)

    actor_id = getattr(actor, 'pk', actor)
    try:
        project = Project.objects.get(pk=project.pk)
    except Project.DoesNotExist:
        raise NotFound("Project not found.", project_id=project.pk)
    authorize_invite(project, actor_id)
    if project.confirmation_status in TERMINAL_CONFIRMATION_STATUSES:
        raise InvalidTransition(
            f"Cannot invite to a {project.confirmation_status} project.",
            code='project_terminal',
            project_id=project.pk,
        )

    performer_ids = list(dict.fromkeys(performer_ids))
    result = FanoutResult()
    performers = User.objects.in_bulk(performer_ids)

    for performer_id in performer_ids:
        performer = performers.get(performer_id)
        if performer is None:
            result.failures[performer_id] = "Performer not found."
            continue
        if not performer.is_performer:
            result.failures[performer_id] = "User is not a performer."
            continue
        if performer_id == actor_id:
            result.skipped.append(performer_id)
            continue

        try:
            if project.is_brief:
                _invite_from_brief(project, actor_id, performer, terms, result)
            else:
                _invite_to_project(project, actor_id, performer, terms, result)
        except (DatabaseError, BookingError) as exc:
            logger.warning(f"Invitation of performer {performer_id} to project {project.pk} failed: {exc}")
            result.failures[performer_id] = str(exc)

    if result.failures:
        logger.warning(
            f"Fan-out on project {project.pk}: {len(result.proposal_ids)} created, "
            f"{len(result.failures)} failed"
        )
    return result


def invite(project, actor, performer_id, terms=None):
    """Invite a single performer; raises if the invitation was not created."""
    result = fanout(project, actor, [performer_id], terms)
    result.raise_for_failures()
    if not result.proposal_ids:
        raise InvalidTransition(
            "This performer already has a proposal for this casting call.",
            code='duplicate_invite',
            performer_id=performer_id,
        )
    return Proposal.objects.get(pk=result.proposal_ids[0])


def authorize_invite(project, actor_id):
    if project.is_brief:
        if actor_id != project.owner_id:
            raise Unauthorized("Only the owner can invite performers to this brief.", code='not_entitled', project_id=project.pk)
        return
    if project.pm_performer_id is not None:
        if actor_id != project.pm_performer_id:
            raise Unauthorized("Only the PM can invite collaborators to this project.", code='not_entitled', project_id=project.pk)
        return
    if actor_id != project.owner_id:
        raise Unauthorized("Only the owner can invite performers to this project.", code='not_entitled', project_id=project.pk)


def brief_exclusions(brief_id):
    """Performers already holding any proposal on the brief or one of its clones."""
    return set(
        Proposal.objects.filter(
            Q(project_id=brief_id) | Q(project__parent_project_id=brief_id)
        ).values_list('performer_id', flat=True)
    )


def _invite_from_brief(brief, actor_id, performer, terms, result):
    with transaction.atomic():
        locked = Project.objects.select_for_update().get(pk=brief.pk)
        if performer.pk in brief_exclusions(locked.pk):
            result.skipped.append(performer.pk)
            return

        clone = clone_brief(locked, performer)
        proposal = create_proposal(
            clone,
            actor_id,
            performer,
            fee=terms.fee,
            role=terms.role,
            details=terms.details,
        )

    result.project_ids.append(clone.pk)
    result.proposal_ids.append(proposal.pk)


def _invite_to_project(project, actor_id, performer, terms, result):
    with transaction.atomic():
        locked = Project.objects.select_for_update().get(pk=project.pk)
        taken = set(Proposal.objects.filter(project_id=locked.pk).values_list('performer_id', flat=True))
        if performer.pk in taken:
            result.skipped.append(performer.pk)
            return

        proposal = create_proposal(
            locked,
            actor_id,
            performer,
            fee=terms.fee,
            role=terms.role,
            details=terms.details,
        )

    if locked.pk not in result.project_ids:
        result.project_ids.append(locked.pk)
    result.proposal_ids.append(proposal.pk)


def clone_brief(brief, performer):
    clone = Project.objects.create(
        owner_id=brief.owner_id,
        parent_project=brief,
        pm_performer=performer,
        confirmation_status=ConfirmationStatus.NEGOTIATING,
        progress_status=ProgressStatus.IDLE,
        summary_status=SummaryStatus.RECRUITING,
        **{name: getattr(brief, name) for name in CLONED_FIELDS},
    )
    ProjectSchedule.objects.bulk_create([
        ProjectSchedule(
            project=clone,
            date=schedule.date,
            start_time=schedule.start_time,
            end_time=schedule.end_time,
            note=schedule.note,
        )
        for schedule in brief.schedules.all()
    ])
    return clone


def frequent_collaborators(owner, limit=20):
    """Performers with accepted proposals on the owner's projects, most frequent first."""
    rows = list(
        Proposal.objects.filter(project__owner=owner, status=ProposalStatus.ACCEPTED)
        .values('performer')
        .annotate(count=Count('id'))
        .order_by('-count', 'performer')[:limit]
    )
    users = User.objects.in_bulk([row['performer'] for row in rows])
    return [(users[row['performer']], row['count']) for row in rows if row['performer'] in users]
