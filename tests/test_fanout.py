"""
Fan-out invitations from briefs and derived projects.
"""
import pytest

from projects.constants import ConfirmationStatus, ProgressStatus, ProposalStatus, SummaryStatus
from projects.exceptions import BookingError, InvalidTransition, NotFound, PartialFanoutFailure, Unauthorized
from projects.models import Project, Proposal
from projects.services import coordinator, fanout, proposals
from projects.services.fanout import InviteTerms


@pytest.mark.django_db
class TestFanoutFromBrief:

    def test_one_clone_per_performer(self, brief, owner, performer_a, performer_b, performer_c):
        terms = InviteTerms(fee=400_000, role="Lead dancer", details="Three rehearsals")

        result = fanout.fanout(brief, owner, [performer_a.pk, performer_b.pk, performer_c.pk], terms)

        assert result.ok
        assert len(result.project_ids) == 3
        assert len(result.proposal_ids) == 3
        clones = Project.objects.filter(parent_project=brief)
        assert {clone.pm_performer_id for clone in clones} == {performer_a.pk, performer_b.pk, performer_c.pk}
        for clone in clones:
            proposal = clone.proposals.get()
            assert proposal.performer_id == clone.pm_performer_id
            assert proposal.sender_id == owner.pk
            assert proposal.status == ProposalStatus.PENDING
            assert (proposal.fee, proposal.role) == (400_000, "Lead dancer")
            assert clone.owner_id == owner.pk
            assert clone.title == brief.title
            assert clone.confirmation_status == ConfirmationStatus.NEGOTIATING
            assert clone.progress_status == ProgressStatus.IDLE
            assert clone.summary_status == SummaryStatus.RECRUITING
            assert clone.budget is None
            assert clone.schedules.count() == 1
        assert not brief.proposals.exists()

    def test_repeat_invite_under_the_same_brief_is_skipped(self, brief, owner, performer_a, performer_b):
        fanout.fanout(brief, owner, [performer_a.pk])

        result = fanout.fanout(brief, owner, [performer_a.pk, performer_b.pk])

        assert result.skipped == [performer_a.pk]
        assert len(result.project_ids) == 1
        assert Project.objects.filter(parent_project=brief).count() == 2

    def test_declined_performer_stays_excluded(self, brief, owner, performer_a, derived_for):
        _, proposal = derived_for(brief, performer_a)
        proposals.decline(proposal, performer_a)

        result = fanout.fanout(brief, owner, [performer_a.pk])

        assert result.skipped == [performer_a.pk]

    def test_duplicate_ids_are_invited_once(self, brief, owner, performer_a):
        result = fanout.fanout(brief, owner, [performer_a.pk, performer_a.pk])

        assert len(result.proposal_ids) == 1

    def test_partial_failure_keeps_the_successes(self, brief, owner, other_client, performer_a):
        result = fanout.fanout(brief, owner, [performer_a.pk, 987654, other_client.pk])

        assert not result.ok
        assert set(result.failures) == {987654, other_client.pk}
        assert Proposal.objects.filter(performer=performer_a).count() == 1

        with pytest.raises(PartialFanoutFailure) as excinfo:
            result.raise_for_failures()
        assert excinfo.value.status_code == 207
        assert excinfo.value.result is result
        assert excinfo.value.data['failures'] == {'987654': "Performer not found.", str(other_client.pk): "User is not a performer."}

    def test_only_owner_invites_on_a_brief(self, brief, other_client, performer_a):
        with pytest.raises(Unauthorized):
            fanout.fanout(brief, other_client, [performer_a.pk])

    def test_closed_brief_refuses_invites(self, brief, owner, performer_a):
        coordinator.cancel_project(brief, owner)

        with pytest.raises(InvalidTransition) as excinfo:
            fanout.fanout(brief, owner, [performer_a.pk])

        assert excinfo.value.code == 'project_terminal'

    def test_missing_project_is_not_found(self, owner, performer_a):
        with pytest.raises(NotFound) as excinfo:
            fanout.fanout(Project(pk=987654), owner, [performer_a.pk])

        assert excinfo.value.data == {'project_id': 987654}

    def test_invalid_fee_is_rejected_before_anything_is_created(self, brief, owner, performer_a):
        with pytest.raises(BookingError):
            fanout.fanout(brief, owner, [performer_a.pk], InviteTerms(fee=-5))

        assert not Project.objects.filter(parent_project=brief).exists()


@pytest.mark.django_db
class TestFanoutFromDerivedProject:

    def test_pm_adds_collaborators_to_the_same_project(self, brief, owner, performer_a, performer_b, performer_c, derived_for):
        project, proposal = derived_for(brief, performer_a)
        proposals.accept(proposal, performer_a)

        result = fanout.fanout(project, performer_a, [performer_a.pk, performer_b.pk, performer_c.pk], InviteTerms(fee=150_000))

        assert result.ok
        assert result.project_ids == [project.pk]
        assert result.skipped == [performer_a.pk]
        added = project.proposals.exclude(performer=performer_a)
        assert {p.performer_id for p in added} == {performer_b.pk, performer_c.pk}
        assert {p.sender_id for p in added} == {performer_a.pk}
        assert Project.objects.filter(parent_project=brief).count() == 1

    def test_owner_cannot_recruit_once_a_pm_exists(self, brief, owner, performer_a, performer_b, derived_for):
        project, _ = derived_for(brief, performer_a)

        with pytest.raises(Unauthorized):
            fanout.fanout(project, owner, [performer_b.pk])

    def test_owner_recruits_while_no_pm_exists(self, brief, owner, performer_a):
        project = Project.objects.create(owner=owner, parent_project=brief, title="Crew")

        result = fanout.fanout(project, owner, [performer_a.pk])

        assert result.proposal_ids
        assert project.proposals.get().sender_id == owner.pk

    def test_single_invite_reports_duplicates(self, brief, owner, performer_a):
        project = Project.objects.create(owner=owner, parent_project=brief, title="Crew")
        invited = fanout.invite(project, owner, performer_a.pk)

        assert invited.performer_id == performer_a.pk
        with pytest.raises(InvalidTransition) as excinfo:
            fanout.invite(project, owner, performer_a.pk)
        assert excinfo.value.code == 'duplicate_invite'


@pytest.mark.django_db
class TestFrequentCollaborators:

    def test_ordered_by_accepted_count(self, owner, performer_a, performer_b, performer_c, derived_for):
        for title in ("One", "Two"):
            brief = Project.objects.create(owner=owner, title=title)
            _, proposal = derived_for(brief, performer_a)
            proposals.accept(proposal, performer_a)
        brief = Project.objects.create(owner=owner, title="Three")
        _, proposal = derived_for(brief, performer_b)
        proposals.accept(proposal, performer_b)
        derived_for(brief, performer_c)

        rows = fanout.frequent_collaborators(owner)

        assert [(user.pk, count) for user, count in rows] == [(performer_a.pk, 2), (performer_b.pk, 1)]
