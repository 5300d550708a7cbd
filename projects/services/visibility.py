"""
Who sees what of a project. Consumed by serializers; storage does not enforce it.
"""
from datetime import datetime, timedelta, timezone as dt_timezone

from ..constants import Visibility

FULL = 'full'
SUMMARY = 'summary'
OWN_PROPOSAL = 'own_proposal'
NONE = 'none'

KST = dt_timezone(timedelta(hours=9))


def visibility_for(project, user, proposals=None):
    """
    Return the visibility level ``user`` has on ``project``.

    Once a derived project has a PM, recruiting and money details belong to
    the PM; the owner keeps a summary view of it and full view of the brief.
    """
    user_id = getattr(user, 'pk', user)

    if project.is_derived and project.pm_performer_id is not None:
        if user_id == project.pm_performer_id:
            return FULL
        if user_id == project.owner_id:
            return SUMMARY
    elif user_id == project.owner_id:
        return FULL

    if proposals is None:
        proposals = project.proposals.all()
    if any(proposal.performer_id == user_id for proposal in proposals):
        return OWN_PROPOSAL
    return NONE


def kst_today(now=None):
    now = now or datetime.now(dt_timezone.utc)
    return now.astimezone(KST).date()


def is_embargo_active(embargo_date, now=None):
    """The embargo holds through the embargo day (KST) and lifts the next day."""
    if embargo_date is None:
        return False
    return kst_today(now) <= embargo_date


def is_project_public(visibility, embargo_date, now=None):
    """A private project with an expired embargo becomes public as well."""
    if is_embargo_active(embargo_date, now):
        return False
    if visibility == Visibility.PUBLIC:
        return True
    return embargo_date is not None
