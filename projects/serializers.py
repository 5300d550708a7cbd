from django.db import transaction
from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from .constants import EventKind, ProposalStatus
from .models import NegotiationEvent, Project, ProjectSchedule, Proposal
from .services import unread, visibility
from .services.fanout import InviteTerms
from .services.negotiation import entry_from_event


class ProjectScheduleSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProjectSchedule
        fields = ['id', 'date', 'start_time', 'end_time', 'note']
        read_only_fields = ['id']


class ProjectSummarySerializer(serializers.ModelSerializer):
    """
    Compact project information for nested responses.
    """
    class Meta:
        model = Project
        fields = ['id', 'title', 'category', 'confirmation_status', 'progress_status', 'start_date', 'end_date']


class CreateProjectSerializer(serializers.ModelSerializer):
    """
    Serializer for owners creating a brief.

    Fields:
        - title (required)
        - category, description, visibility, embargo_date, start_date, end_date,
          client_company, budget, contract_amount, schedules (optional)
    The authenticated user becomes the owner. Statuses start at negotiating/idle.
    """
    schedules = ProjectScheduleSerializer(many=True, required=False)

    class Meta:
        model = Project
        fields = [
            'id', 'title', 'category', 'description', 'visibility', 'embargo_date',
            'start_date', 'end_date', 'client_company', 'budget', 'contract_amount',
            'confirmation_status', 'progress_status', 'schedules',
        ]
        read_only_fields = ['id', 'confirmation_status', 'progress_status']

    def validate(self, attrs):
        start, end = attrs.get('start_date'), attrs.get('end_date')
        if start and end and end < start:
            raise serializers.ValidationError("End date cannot be before the start date.")
        return attrs

    def create(self, validated_data):
        schedules = validated_data.pop('schedules', [])
        with transaction.atomic():
            project = Project.objects.create(owner=self.context['request'].user, **validated_data)
            ProjectSchedule.objects.bulk_create([ProjectSchedule(project=project, **row) for row in schedules])
        return project


class ProjectListSerializer(serializers.ModelSerializer):
    """
    Listing card. Money figures are never part of a card.
    """
    is_brief = serializers.BooleanField(read_only=True)
    pm_performer = UserSummarySerializer(read_only=True)
    visibility_level = serializers.SerializerMethodField()
    is_public = serializers.SerializerMethodField()
    accepted_count = serializers.SerializerMethodField()
    proposal_count = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = [
            'id', 'title', 'category', 'is_brief', 'parent_project', 'pm_performer',
            'confirmation_status', 'progress_status', 'summary_status',
            'start_date', 'end_date', 'visibility_level', 'is_public',
            'accepted_count', 'proposal_count', 'created_at',
        ]

    def get_visibility_level(self, obj):
        return visibility.visibility_for(obj, self.context['request'].user)

    def get_is_public(self, obj):
        return visibility.is_project_public(obj.visibility, obj.embargo_date)

    def get_accepted_count(self, obj):
        return sum(1 for proposal in obj.proposals.all() if proposal.status == ProposalStatus.ACCEPTED)

    def get_proposal_count(self, obj):
        return len(obj.proposals.all())


class NegotiationEventSerializer(serializers.ModelSerializer):
    actor = UserSummarySerializer(read_only=True)

    class Meta:
        model = NegotiationEvent
        fields = ['id', 'kind', 'actor', 'text', 'suggested_fee', 'created_at']

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if instance.kind != EventKind.OFFER:
            data.pop('suggested_fee')
        return data


class ProposalSerializer(serializers.ModelSerializer):
    """
    Proposal card for inbox/outbox listings, with the viewer's unread count.
    """
    project = ProjectSummarySerializer(read_only=True)
    performer = UserSummarySerializer(read_only=True)
    sender = UserSummarySerializer(read_only=True)
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Proposal
        fields = [
            'id', 'project', 'performer', 'sender', 'status', 'fee', 'role', 'details',
            'created_at', 'accepted_at', 'unread_count',
        ]

    def get_unread_count(self, obj):
        log = [entry_from_event(event) for event in obj.negotiation_events.all()]
        return unread.unread_count(obj, self.context['request'].user, log=log)


class ProposalDetailSerializer(ProposalSerializer):
    negotiation_log = NegotiationEventSerializer(source='negotiation_events', many=True, read_only=True)

    class Meta(ProposalSerializer.Meta):
        fields = ProposalSerializer.Meta.fields + ['negotiation_log']


class OwnProposalSerializer(serializers.ModelSerializer):
    """What a plain participant sees of a project: their own terms only."""
    class Meta:
        model = Proposal
        fields = ['id', 'status', 'role', 'fee', 'details']


class ProjectDetailSerializer(serializers.ModelSerializer):
    """
    Project detail shaped by the viewer's visibility level.

    full: everything, including money and every proposal.
    summary: statuses and schedule; recruiting and money hidden.
    own_proposal: statuses, schedule and the viewer's own proposal.
    """
    owner = UserSummarySerializer(read_only=True)
    pm_performer = UserSummarySerializer(read_only=True)
    schedules = ProjectScheduleSerializer(many=True, read_only=True)
    is_brief = serializers.BooleanField(read_only=True)

    class Meta:
        model = Project
        fields = [
            'id', 'title', 'category', 'description', 'visibility', 'embargo_date',
            'start_date', 'end_date', 'client_company', 'owner', 'pm_performer',
            'parent_project', 'is_brief', 'confirmation_status', 'progress_status',
            'summary_status', 'budget', 'contract_amount', 'schedules',
            'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'owner', 'pm_performer', 'parent_project', 'confirmation_status',
            'progress_status', 'summary_status', 'created_at', 'updated_at',
        ]

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError("End date cannot be before the start date.")
        return attrs

    def to_representation(self, instance):
        data = super().to_representation(instance)
        user = self.context['request'].user
        level = visibility.visibility_for(instance, user)
        data['visibility_level'] = level
        data['is_public'] = visibility.is_project_public(instance.visibility, instance.embargo_date)

        if level == visibility.FULL:
            proposals = instance.proposals.select_related('performer', 'sender', 'project')
            data['proposals'] = ProposalSerializer(proposals, many=True, context=self.context).data
            if instance.is_brief:
                data['derived_projects'] = ProjectSummarySerializer(instance.derived_projects.all(), many=True).data
            return data

        data.pop('budget')
        data.pop('contract_amount')
        if level == visibility.OWN_PROPOSAL:
            own = instance.proposals.filter(performer=user).order_by('-created_at').first()
            data['my_proposal'] = OwnProposalSerializer(own).data if own else None
        return data


class InviteSerializer(serializers.Serializer):
    performer_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    fee = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    role = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    details = serializers.CharField(required=False, allow_blank=True, default='')

    def to_terms(self):
        data = self.validated_data
        return InviteTerms(fee=data.get('fee'), role=data['role'], details=data['details'])


class MessageSerializer(serializers.Serializer):
    text = serializers.CharField()


class OfferSerializer(serializers.Serializer):
    fee = serializers.IntegerField(min_value=0)
    text = serializers.CharField(required=False, allow_blank=True, default='')


class DeclineSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ProjectSettlementSerializer(serializers.Serializer):
    project_id = serializers.IntegerField()
    role = serializers.CharField()
    revenue = serializers.IntegerField()
    expense = serializers.IntegerField()
    pending_revenue = serializers.IntegerField()
    pending_expense = serializers.IntegerField()
    net_profit = serializers.IntegerField(allow_null=True)
    has_undecided = serializers.BooleanField()
    settlement_status = serializers.CharField()


class PortfolioSettlementSerializer(serializers.Serializer):
    projects = ProjectSettlementSerializer(many=True)
    total_revenue = serializers.IntegerField()
    total_expense = serializers.IntegerField()
    total_pending_revenue = serializers.IntegerField()
    total_pending_expense = serializers.IntegerField()
    net_profit = serializers.IntegerField(allow_null=True)
    undecided_count = serializers.IntegerField()


class FrequentCollaboratorSerializer(serializers.Serializer):
    performer = UserSummarySerializer()
    count = serializers.IntegerField()
