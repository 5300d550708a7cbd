"""
Settlement figures per perspective, deduplication and portfolio totals.
"""
from datetime import timedelta

import pytest
from django.utils import timezone

from projects.constants import ConfirmationStatus, ProgressStatus, ProposalStatus
from projects.exceptions import InconsistentProjectState, Unauthorized
from projects.models import Project, Proposal
from projects.services import settlement


@pytest.fixture
def staffed_project(owner, brief):
    return Project.objects.create(
        owner=owner,
        parent_project=brief,
        title="Gala",
        confirmation_status=ConfirmationStatus.CONFIRMED,
        progress_status=ProgressStatus.RECRUITING,
        contract_amount=1_000_000,
    )


def book(project, performer, status=ProposalStatus.ACCEPTED, fee=None, sender=None, created_at=None):
    return Proposal.objects.create(
        project=project,
        performer=performer,
        sender=sender or project.owner,
        status=status,
        fee=fee,
        created_at=created_at or timezone.now(),
    )


@pytest.mark.django_db
class TestSettle:

    def test_owner_and_performers_see_their_own_figures(self, staffed_project, owner, performer_a, performer_b):
        """Two accepted performers at 300000 and 200000 against a 1000000 contract."""
        book(staffed_project, performer_a, fee=300_000)
        book(staffed_project, performer_b, fee=200_000)

        owner_view = settlement.settle(staffed_project, owner)
        a_view = settlement.settle(staffed_project, performer_a)
        b_view = settlement.settle(staffed_project, performer_b)

        assert (owner_view.role, owner_view.revenue, owner_view.expense, owner_view.net_profit) == ('owner', 1_000_000, 500_000, 500_000)
        assert owner_view.settlement_status == settlement.COMPLETED
        assert (a_view.role, a_view.revenue, a_view.expense, a_view.net_profit) == ('performer', 300_000, 0, 300_000)
        assert (b_view.revenue, b_view.expense) == (200_000, 0)

    def test_pm_pays_the_other_performers(self, staffed_project, performer_a, performer_b):
        Project.objects.filter(pk=staffed_project.pk).update(pm_performer=performer_a)
        staffed_project.refresh_from_db()
        book(staffed_project, performer_a, fee=300_000)
        book(staffed_project, performer_b, fee=200_000, sender=performer_a)

        pm_view = settlement.settle(staffed_project, performer_a)

        assert pm_view.role == settlement.PM
        assert (pm_view.revenue, pm_view.expense, pm_view.net_profit) == (300_000, 200_000, 100_000)

    def test_owner_falls_back_to_budget(self, staffed_project, owner, performer_a):
        Project.objects.filter(pk=staffed_project.pk).update(contract_amount=None, budget=800_000)
        staffed_project.refresh_from_db()
        book(staffed_project, performer_a, fee=300_000)

        assert settlement.settle(staffed_project, owner).revenue == 800_000

    def test_unknown_fee_leaves_net_undetermined(self, staffed_project, owner, performer_a, performer_b):
        book(staffed_project, performer_a, fee=300_000)
        book(staffed_project, performer_b, fee=None)

        result = settlement.settle(staffed_project, owner)

        assert result.has_undecided
        assert result.net_profit is None
        assert result.expense == 300_000

    def test_open_proposals_are_pending_not_spent(self, staffed_project, owner, performer_a, performer_b):
        book(staffed_project, performer_a, fee=300_000)
        book(staffed_project, performer_b, status=ProposalStatus.NEGOTIATING, fee=250_000)

        owner_view = settlement.settle(staffed_project, owner)
        b_view = settlement.settle(staffed_project, performer_b)

        assert (owner_view.expense, owner_view.pending_expense) == (300_000, 250_000)
        assert owner_view.settlement_status == settlement.PARTIAL
        assert (b_view.revenue, b_view.pending_revenue) == (0, 250_000)
        assert b_view.settlement_status == settlement.PENDING

    def test_declined_proposals_cost_nothing(self, staffed_project, owner, performer_a):
        book(staffed_project, performer_a, status=ProposalStatus.DECLINED, fee=300_000)

        result = settlement.settle(staffed_project, owner)

        assert (result.expense, result.pending_expense, result.net_profit) == (0, 0, 1_000_000)

    def test_uninvolved_user_is_refused(self, staffed_project, other_client):
        with pytest.raises(Unauthorized):
            settlement.settle(staffed_project, other_client)

    def test_inconsistent_project_is_surfaced(self, staffed_project, owner):
        Project.objects.filter(pk=staffed_project.pk).update(confirmation_status=ConfirmationStatus.NEGOTIATING)
        staffed_project.refresh_from_db()

        with pytest.raises(InconsistentProjectState):
            settlement.settle(staffed_project, owner)


@pytest.mark.django_db
class TestDedupe:

    def test_one_proposal_per_performer_counts(self, staffed_project, owner, performer_a):
        """A re-invited performer is counted once, by their strongest proposal."""
        earlier = timezone.now() - timedelta(days=2)
        book(staffed_project, performer_a, status=ProposalStatus.ACCEPTED, fee=300_000, created_at=earlier)
        book(staffed_project, performer_a, status=ProposalStatus.PENDING, fee=350_000)

        result = settlement.settle(staffed_project, owner)

        assert (result.expense, result.pending_expense) == (300_000, 0)

    def test_priority_then_newest(self, staffed_project, performer_a, performer_b):
        now = timezone.now()
        book(staffed_project, performer_a, status=ProposalStatus.CANCELLED, fee=1, created_at=now)
        declined = book(staffed_project, performer_a, status=ProposalStatus.DECLINED, fee=2, created_at=now - timedelta(days=1))
        book(staffed_project, performer_b, status=ProposalStatus.PENDING, fee=3, created_at=now - timedelta(days=1))
        newest = book(staffed_project, performer_b, status=ProposalStatus.PENDING, fee=4, created_at=now)

        chosen = settlement.dedupe_by_performer(staffed_project.proposals.all())

        assert chosen[performer_a.pk].pk == declined.pk
        assert chosen[performer_b.pk].pk == newest.pk


@pytest.mark.django_db
class TestPortfolio:

    def test_totals_sum_each_project(self, staffed_project, owner, brief, performer_a, performer_b):
        second = Project.objects.create(
            owner=owner,
            parent_project=brief,
            title="Encore",
            confirmation_status=ConfirmationStatus.CONFIRMED,
            progress_status=ProgressStatus.RECRUITING,
            contract_amount=400_000,
        )
        book(staffed_project, performer_a, fee=300_000)
        book(second, performer_b, fee=100_000)

        result = settlement.settle_portfolio([staffed_project, second], owner)

        assert len(result.projects) == 2
        assert (result.total_revenue, result.total_expense, result.net_profit) == (1_400_000, 400_000, 1_000_000)
        assert result.undecided_count == 0

    def test_one_undecided_project_makes_the_total_undecided(self, staffed_project, owner, brief, performer_a):
        undecided = Project.objects.create(owner=owner, parent_project=brief, title="TBD")
        book(staffed_project, performer_a, fee=300_000)

        result = settlement.settle_portfolio([staffed_project, undecided], owner)

        assert result.net_profit is None
        assert result.undecided_count == 1
        assert result.total_revenue == 1_000_000
