from django.db import models


class ProposalStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    NEGOTIATING = 'negotiating', 'Negotiating'
    ACCEPTED = 'accepted', 'Accepted'
    DECLINED = 'declined', 'Declined'
    CANCELLED = 'cancelled', 'Cancelled'


class EventKind(models.TextChoices):
    MESSAGE = 'message', 'Message'
    OFFER = 'offer', 'Offer'
    ACCEPT = 'accept', 'Accept'
    DECLINE = 'decline', 'Decline'


class ConfirmationStatus(models.TextChoices):
    NEGOTIATING = 'negotiating', 'Negotiating'
    CONFIRMED = 'confirmed', 'Confirmed'
    DECLINED = 'declined', 'Declined'
    CANCELLED = 'cancelled', 'Cancelled'
    COMPLETED = 'completed', 'Completed'


class ProgressStatus(models.TextChoices):
    IDLE = 'idle', 'Idle'
    RECRUITING = 'recruiting', 'Recruiting'
    IN_PROGRESS = 'in_progress', 'In progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class SummaryStatus(models.TextChoices):
    RECRUITING = 'recruiting', 'Recruiting'
    ACTIVE = 'active', 'Active'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class Visibility(models.TextChoices):
    PUBLIC = 'public', 'Public'
    PRIVATE = 'private', 'Private'


TERMINAL_PROPOSAL_STATUSES = (
    ProposalStatus.ACCEPTED,
    ProposalStatus.DECLINED,
    ProposalStatus.CANCELLED,
)

ACTIVE_PROPOSAL_STATUSES = (
    ProposalStatus.ACCEPTED,
    ProposalStatus.PENDING,
    ProposalStatus.NEGOTIATING,
)

OPEN_PROPOSAL_STATUSES = (
    ProposalStatus.PENDING,
    ProposalStatus.NEGOTIATING,
)

# Higher wins when one performer holds several proposals on a project.
PROPOSAL_STATUS_PRIORITY = {
    ProposalStatus.ACCEPTED.value: 4,
    ProposalStatus.NEGOTIATING.value: 3,
    ProposalStatus.PENDING.value: 2,
    ProposalStatus.DECLINED.value: 1,
    ProposalStatus.CANCELLED.value: 0,
}

TERMINAL_CONFIRMATION_STATUSES = (
    ConfirmationStatus.DECLINED,
    ConfirmationStatus.CANCELLED,
    ConfirmationStatus.COMPLETED,
)

STAFFING_PROGRESS_STATUSES = (
    ProgressStatus.RECRUITING,
    ProgressStatus.IN_PROGRESS,
)

CATEGORY_ROLE_LABELS = {
    'choreo': 'Choreographer',
    'broadcast': 'Broadcast cast',
    'performance': 'Performer',
    'workshop': 'Workshop instructor',
    'judge': 'Judge',
}

DEFAULT_ACCEPT_TEXT = "Accepted the proposal."
DEFAULT_DECLINE_TEXT = "Declined the proposal."
DEFAULT_CANCEL_TEXT = "Withdrew the proposal."


def status_priority(status):
    return PROPOSAL_STATUS_PRIORITY.get(str(status), -1)
