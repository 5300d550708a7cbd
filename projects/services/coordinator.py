"""
Project status coordinator.

This module is the only writer of a project's ``confirmation_status``,
``progress_status``, ``summary_status`` and of ``pm_performer`` after
creation. It reacts to owner actions and to proposal outcomes, always
re-reading the project and its proposals under a row lock.
"""
import logging
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from .. import notifications
from ..constants import (
    ACTIVE_PROPOSAL_STATUSES,
    ConfirmationStatus,
    ProgressStatus,
    ProposalStatus,
    STAFFING_PROGRESS_STATUSES,
    SummaryStatus,
    TERMINAL_CONFIRMATION_STATUSES,
)
from ..exceptions import InconsistentProjectState, InvalidTransition, NotFound, Unauthorized
from ..models import Project, Proposal
from .careers import ensure_pm_career

logger = logging.getLogger(__name__)


@dataclass
class AcceptanceChange:
    pm_assigned: bool = False
    status_changed: bool = False


def check_invariants(project):
    confirmation = project.confirmation_status
    progress = project.progress_status

    if progress in STAFFING_PROGRESS_STATUSES and confirmation != ConfirmationStatus.CONFIRMED:
        raise InconsistentProjectState(
            f"Project {project.pk} is {progress} without a confirmed deal.",
            project_id=project.pk,
            confirmation_status=str(confirmation),
            progress_status=str(progress),
        )
    if confirmation in (ConfirmationStatus.DECLINED, ConfirmationStatus.CANCELLED) and progress != ProgressStatus.CANCELLED:
        raise InconsistentProjectState(
            f"Project {project.pk} is {confirmation} but progress is {progress}.",
            project_id=project.pk,
            confirmation_status=str(confirmation),
            progress_status=str(progress),
        )
    return project


def _lock_project(project_id):
    try:
        return Project.objects.select_for_update().get(pk=project_id)
    except Project.DoesNotExist:
        raise NotFound("Project not found.", project_id=project_id)


def _apply(project, confirmation=None, progress=None, summary=None):
    previous = (project.confirmation_status, project.progress_status, project.summary_status)
    if confirmation is not None:
        project.confirmation_status = confirmation
    if progress is not None:
        project.progress_status = progress
    if summary is not None:
        project.summary_status = summary

    current = (project.confirmation_status, project.progress_status, project.summary_status)
    if current == previous:
        return False

    check_invariants(project)
    project.save(update_fields=['confirmation_status', 'progress_status', 'summary_status', 'updated_at'])
    notifications.emit(notifications.PROJECT_STATUS_CHANGED, project_id=project.pk)

    logger.info(
        f"Project {project.pk} status {previous[0]}/{previous[1]} -> "
        f"{project.confirmation_status}/{project.progress_status}"
    )
    return True


def _require_owner(project, actor):
    if getattr(actor, 'pk', actor) != project.owner_id:
        raise Unauthorized("Only the project owner can change its status.", code='not_entitled', project_id=project.pk)


def _require_open(project):
    if project.confirmation_status in TERMINAL_CONFIRMATION_STATUSES:
        raise InvalidTransition(
            f"Project is already {project.confirmation_status}.",
            code='project_terminal',
            project_id=project.pk,
            confirmation_status=str(project.confirmation_status),
        )


def _require_derived(project):
    if project.is_brief:
        raise InvalidTransition(
            "A brief is a casting template and cannot be confirmed, started or completed.",
            code='brief_not_engageable',
            project_id=project.pk,
        )


def confirm(project, actor):
    with transaction.atomic():
        locked = _lock_project(project.pk)
        _require_owner(locked, actor)
        _require_open(locked)
        _require_derived(locked)

        progress = ProgressStatus.RECRUITING if locked.progress_status == ProgressStatus.IDLE else None
        _apply(locked, ConfirmationStatus.CONFIRMED, progress, SummaryStatus.ACTIVE)
    return locked


def decline_project(project, actor):
    return _close(project, actor, ConfirmationStatus.DECLINED)


def cancel_project(project, actor):
    return _close(project, actor, ConfirmationStatus.CANCELLED)


def _close(project, actor, confirmation):
    with transaction.atomic():
        locked = _lock_project(project.pk)
        _require_owner(locked, actor)
        _require_open(locked)
        _apply(locked, confirmation, ProgressStatus.CANCELLED, SummaryStatus.CANCELLED)
    return locked


def complete(project, actor):
    with transaction.atomic():
        locked = _lock_project(project.pk)
        _require_owner(locked, actor)
        _require_open(locked)
        _require_derived(locked)
        _apply(locked, ConfirmationStatus.COMPLETED, ProgressStatus.COMPLETED, SummaryStatus.COMPLETED)
    return locked


def start_progress(project, actor):
    """Move a confirmed, recruiting project into execution (owner or PM)."""
    actor_id = getattr(actor, 'pk', actor)
    with transaction.atomic():
        locked = _lock_project(project.pk)
        if actor_id not in (locked.owner_id, locked.pm_performer_id):
            raise Unauthorized("Only the owner or the PM can start this project.", code='not_entitled', project_id=locked.pk)
        _require_open(locked)
        _require_derived(locked)
        if locked.confirmation_status != ConfirmationStatus.CONFIRMED or locked.progress_status != ProgressStatus.RECRUITING:
            raise InvalidTransition(
                "Only a confirmed, recruiting project can start.",
                project_id=locked.pk,
                confirmation_status=str(locked.confirmation_status),
                progress_status=str(locked.progress_status),
            )
        _apply(locked, progress=ProgressStatus.IN_PROGRESS)
    return locked


def on_proposal_accepted(proposal):
    """
    First acceptance wins the PM seat (conditional write, assigned once).
    A negotiating project becomes confirmed and starts recruiting.
    """
    change = AcceptanceChange()

    with transaction.atomic():
        locked = _lock_project(proposal.project_id)

        assigned = Project.objects.filter(pk=locked.pk, pm_performer__isnull=True).update(
            pm_performer_id=proposal.performer_id,
            updated_at=timezone.now(),
        )
        if assigned:
            locked.refresh_from_db(fields=['pm_performer', 'updated_at'])
            change.pm_assigned = True
            logger.info(f"Performer {proposal.performer_id} assigned as PM of project {locked.pk}")
        if locked.pm_performer_id == proposal.performer_id:
            ensure_pm_career(locked, locked.pm_performer)

        if locked.confirmation_status == ConfirmationStatus.NEGOTIATING:
            change.status_changed = _apply(
                locked,
                ConfirmationStatus.CONFIRMED,
                ProgressStatus.RECRUITING,
                SummaryStatus.ACTIVE,
            )
        elif locked.progress_status == ProgressStatus.RECRUITING and locked.summary_status == SummaryStatus.RECRUITING:
            change.status_changed = _apply(locked, summary=SummaryStatus.ACTIVE)

    return change


def on_proposal_closed(proposal, closing_status):
    """
    After a decline or cancel, close the project when none of its proposals
    is still pending, negotiating or accepted.
    """
    with transaction.atomic():
        locked = _lock_project(proposal.project_id)
        if locked.confirmation_status != ConfirmationStatus.NEGOTIATING:
            return False

        has_active = Proposal.objects.filter(project_id=locked.pk, status__in=ACTIVE_PROPOSAL_STATUSES).exists()
        if has_active:
            return False

        confirmation = (
            ConfirmationStatus.CANCELLED
            if closing_status == ProposalStatus.CANCELLED
            else ConfirmationStatus.DECLINED
        )
        return _apply(locked, confirmation, ProgressStatus.CANCELLED, SummaryStatus.CANCELLED)
