from django.db import models
from django.db.models import Q
from django.contrib.auth import get_user_model
from django.utils import timezone
from auditlog.registry import auditlog

from .constants import (
    ConfirmationStatus,
    EventKind,
    ProgressStatus,
    ProposalStatus,
    SummaryStatus,
    TERMINAL_PROPOSAL_STATUSES,
    Visibility,
)
from .exceptions import InvalidTransition

User = get_user_model()


class Project(models.Model):
    """
    One engagement container.

    A project without ``parent_project`` is a brief: a casting-call template
    that is only ever fanned out. Derived projects carry the proposals, the
    PM assignment and the money.
    """
    owner = models.ForeignKey(User, related_name='owned_projects', on_delete=models.PROTECT)
    client_company = models.CharField(max_length=255, blank=True)
    pm_performer = models.ForeignKey(User, related_name='pm_projects', on_delete=models.PROTECT, null=True, blank=True)
    parent_project = models.ForeignKey('self', related_name='derived_projects', on_delete=models.PROTECT, null=True, blank=True)

    title = models.CharField(max_length=255)
    category = models.CharField(max_length=50, blank=True)
    description = models.TextField(blank=True)
    visibility = models.CharField(max_length=10, choices=Visibility.choices, default=Visibility.PUBLIC)
    embargo_date = models.DateField(null=True, blank=True)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)

    confirmation_status = models.CharField(max_length=20, choices=ConfirmationStatus.choices, default=ConfirmationStatus.NEGOTIATING)
    progress_status = models.CharField(max_length=20, choices=ProgressStatus.choices, default=ProgressStatus.IDLE)
    summary_status = models.CharField(max_length=20, choices=SummaryStatus.choices, default=SummaryStatus.RECRUITING)

    budget = models.PositiveBigIntegerField(null=True, blank=True)
    contract_amount = models.PositiveBigIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']

    @property
    def is_brief(self):
        return self.parent_project_id is None

    @property
    def is_derived(self):
        return self.parent_project_id is not None

    def __str__(self):
        kind = 'brief' if self.is_brief else 'derived'
        return f"{self.title} ({kind}, {self.confirmation_status}/{self.progress_status})"


class ProjectSchedule(models.Model):
    project = models.ForeignKey(Project, related_name='schedules', on_delete=models.CASCADE)
    date = models.DateField()
    start_time = models.TimeField(null=True, blank=True)
    end_time = models.TimeField(null=True, blank=True)
    note = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ['date', 'start_time', 'id']


class Proposal(models.Model):
    project = models.ForeignKey(Project, related_name='proposals', on_delete=models.PROTECT)
    performer = models.ForeignKey(User, related_name='received_proposals', on_delete=models.PROTECT)
    sender = models.ForeignKey(User, related_name='sent_proposals', on_delete=models.PROTECT)

    status = models.CharField(max_length=20, choices=ProposalStatus.choices, default=ProposalStatus.PENDING)
    fee = models.PositiveBigIntegerField(null=True, blank=True)
    role = models.CharField(max_length=100, blank=True)
    details = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    sender_last_read_at = models.DateTimeField(null=True, blank=True)
    receiver_last_read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['project', 'status']),
            models.Index(fields=['performer', 'status']),
        ]

    @property
    def is_terminal(self):
        return self.status in TERMINAL_PROPOSAL_STATUSES

    def side_of(self, user_id):
        """Return 'sender', 'receiver' or None for the given user id."""
        if user_id == self.sender_id:
            return 'sender'
        if user_id == self.performer_id:
            return 'receiver'
        return None

    def __str__(self):
        return f"Proposal {self.pk} for {self.project_id} -> {self.performer_id} ({self.status})"


class NegotiationEvent(models.Model):
    """
    One entry of a proposal's negotiation log. Rows are written once and never
    updated or deleted; id order is chronological order.
    """
    proposal = models.ForeignKey(Proposal, related_name='negotiation_events', on_delete=models.CASCADE)
    actor = models.ForeignKey(User, related_name='negotiation_events', on_delete=models.PROTECT)
    kind = models.CharField(max_length=10, choices=EventKind.choices)
    text = models.TextField(blank=True)
    suggested_fee = models.PositiveBigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['id']
        constraints = [
            models.CheckConstraint(
                condition=Q(kind=EventKind.OFFER) | Q(suggested_fee__isnull=True),
                name='negotiation_fee_only_on_offer',
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise InvalidTransition("Negotiation events are append-only.", code='append_only')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvalidTransition("Negotiation events are append-only.", code='append_only')

    def __str__(self):
        return f"{self.kind} by {self.actor_id} on proposal {self.proposal_id}"


class Career(models.Model):
    """Career entry recorded for a performer who became PM of a project."""
    performer = models.ForeignKey(User, related_name='careers', on_delete=models.CASCADE)
    project = models.ForeignKey(Project, related_name='careers', on_delete=models.CASCADE)
    kind = models.CharField(max_length=50, default='other')
    title = models.CharField(max_length=255)
    date = models.DateField()
    role_label = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ['performer', 'project']
        ordering = ['-date', '-id']


auditlog.register(Project)
auditlog.register(Proposal)
