"""
Settlement figures for one project or a portfolio, from the point of view of
one user.

Owners earn the project's contract figure and pay every accepted performer.
A PM earns their own accepted fee and pays the other accepted performers.
A plain performer earns their own accepted fee and pays nothing. Fees that
are still open to negotiation make the net profit undetermined instead of
being read as zero.
"""
from dataclasses import dataclass, field
from typing import Optional

from ..constants import OPEN_PROPOSAL_STATUSES, ProposalStatus, status_priority
from ..exceptions import Unauthorized
from .coordinator import check_invariants

OWNER = 'owner'
PM = 'pm'
PERFORMER = 'performer'

PENDING = 'pending'
PARTIAL = 'partial'
COMPLETED = 'completed'


@dataclass(frozen=True)
class ProjectSettlement:
    project_id: int
    role: str
    revenue: int = 0
    expense: int = 0
    pending_revenue: int = 0
    pending_expense: int = 0
    net_profit: Optional[int] = None
    has_undecided: bool = False
    settlement_status: str = PENDING


@dataclass(frozen=True)
class PortfolioSettlement:
    projects: list = field(default_factory=list)
    total_revenue: int = 0
    total_expense: int = 0
    total_pending_revenue: int = 0
    total_pending_expense: int = 0
    net_profit: Optional[int] = None
    undecided_count: int = 0


def dedupe_by_performer(proposals):
    """
    Keep one proposal per performer: the highest status priority, and the
    newest among equals.
    """
    chosen = {}
    for proposal in proposals:
        current = chosen.get(proposal.performer_id)
        if current is None:
            chosen[proposal.performer_id] = proposal
            continue
        candidate_key = (status_priority(proposal.status), proposal.created_at, proposal.pk or 0)
        current_key = (status_priority(current.status), current.created_at, current.pk or 0)
        if candidate_key > current_key:
            chosen[proposal.performer_id] = proposal
    return chosen


def perspective_role(project, perspective_id, deduped):
    if perspective_id == project.owner_id:
        return OWNER
    if perspective_id == project.pm_performer_id:
        return PM
    if perspective_id in deduped:
        return PERFORMER
    raise Unauthorized(
        "You have no part in this project's settlement.",
        code='not_entitled',
        project_id=project.pk,
    )


def settle(project, perspective, proposals=None):
    perspective_id = getattr(perspective, 'pk', perspective)
    check_invariants(project)

    if proposals is None:
        proposals = project.proposals.all()
    deduped = dedupe_by_performer(proposals)
    role = perspective_role(project, perspective_id, deduped)

    revenue = expense = pending_revenue = pending_expense = 0
    has_undecided = False
    item_statuses = []

    if role == OWNER:
        figure = project.contract_amount if project.contract_amount is not None else project.budget
        if figure is None:
            has_undecided = True
        else:
            revenue = figure
    else:
        own = deduped.get(perspective_id)
        if own is not None and own.status == ProposalStatus.ACCEPTED:
            item_statuses.append(own.status)
            if own.fee is None:
                has_undecided = True
            else:
                revenue = own.fee
        elif own is not None and own.status in OPEN_PROPOSAL_STATUSES:
            item_statuses.append(own.status)
            pending_revenue = own.fee or 0

    if role in (OWNER, PM):
        for performer_id, proposal in deduped.items():
            if performer_id == perspective_id:
                continue
            if proposal.status == ProposalStatus.ACCEPTED:
                item_statuses.append(proposal.status)
                if proposal.fee is None:
                    has_undecided = True
                else:
                    expense += proposal.fee
            elif proposal.status in OPEN_PROPOSAL_STATUSES:
                item_statuses.append(proposal.status)
                pending_expense += proposal.fee or 0

    return ProjectSettlement(
        project_id=project.pk,
        role=role,
        revenue=revenue,
        expense=expense,
        pending_revenue=pending_revenue,
        pending_expense=pending_expense,
        net_profit=None if has_undecided else revenue - expense,
        has_undecided=has_undecided,
        settlement_status=_settlement_status(item_statuses, has_undecided),
    )


def _settlement_status(item_statuses, has_undecided):
    accepted = [status for status in item_statuses if status == ProposalStatus.ACCEPTED]
    if item_statuses and len(accepted) == len(item_statuses) and not has_undecided:
        return COMPLETED
    if accepted:
        return PARTIAL
    return PENDING


def settle_portfolio(projects, perspective):
    """Settle every project on its own, then total the per-project figures."""
    settlements = [settle(project, perspective) for project in projects]
    undecided = sum(1 for item in settlements if item.has_undecided)

    return PortfolioSettlement(
        projects=settlements,
        total_revenue=sum(item.revenue for item in settlements),
        total_expense=sum(item.expense for item in settlements),
        total_pending_revenue=sum(item.pending_revenue for item in settlements),
        total_pending_expense=sum(item.pending_expense for item in settlements),
        net_profit=None if undecided else sum(item.net_profit for item in settlements),
        undecided_count=undecided,
    )
