import logging

from django.db.models import Prefetch, Q
from django.http import Http404
from django.shortcuts import get_object_or_404
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import generics, status, views as drf_views
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from . import serializers as my_serializers
from .models import NegotiationEvent, Project, Proposal
from .pagination import BookingPagination
from .permissions import IsClient, IsProjectEditorOrReadOnly, IsProposalParty
from .services import coordinator, fanout, proposals as proposal_service, settlement, unread, visibility

logger = logging.getLogger(__name__)


def involved_projects(user):
    """Projects the user owns, leads as PM, or holds a proposal on."""
    return (
        Project.objects.filter(Q(owner=user) | Q(pm_performer=user) | Q(proposals__performer=user))
        .distinct()
        .select_related('pm_performer', 'owner')
        .prefetch_related('proposals')
    )


def party_proposals(user):
    return (
        Proposal.objects.filter(Q(sender=user) | Q(performer=user))
        .select_related('project', 'performer', 'sender')
        .prefetch_related(Prefetch('negotiation_events', queryset=NegotiationEvent.objects.select_related('actor')))
    )


class ProjectListCreateAPIView(generics.ListCreateAPIView):
    """
    GET lists every project the user is involved in.
    POST creates a brief owned by the authenticated client.
    """
    permission_classes = [IsAuthenticated]
    pagination_class = BookingPagination
    filterset_fields = ['confirmation_status', 'progress_status', 'summary_status', 'parent_project']

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated(), IsClient()]
        return super().get_permissions()

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return my_serializers.CreateProjectSerializer
        return my_serializers.ProjectListSerializer

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Project.objects.none()
        return involved_projects(self.request.user)

    @swagger_auto_schema(operation_summary="Create a brief", responses={201: my_serializers.CreateProjectSerializer})
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = serializer.save()
        logger.info(f"Brief {project.pk} created by user {request.user.pk}")

        return Response({
            'detail': "Project created successfully.",
            'project': serializer.data
        }, status=status.HTTP_201_CREATED)


class ProjectDetailAPIView(generics.RetrieveUpdateAPIView):
    """
    Project detail shaped by the viewer's visibility level. Owners may edit
    descriptive fields; statuses only change through the action endpoints.
    """
    serializer_class = my_serializers.ProjectDetailSerializer
    queryset = Project.objects.all()
    permission_classes = [IsAuthenticated, IsProjectEditorOrReadOnly]
    http_method_names = ['get', 'patch', 'head', 'options']

    def get_object(self):
        project = get_object_or_404(Project.objects.prefetch_related('schedules', 'proposals'), id=self.kwargs['id'])
        level = visibility.visibility_for(project, self.request.user)
        if level == visibility.NONE and not visibility.is_project_public(project.visibility, project.embargo_date):
            raise Http404
        coordinator.check_invariants(project)
        self.check_object_permissions(self.request, project)
        return project


class ProjectStatusActionAPIView(drf_views.APIView):
    """Base for the owner/PM status actions; subclasses name the coordinator call."""
    permission_classes = [IsAuthenticated]
    transition = None
    success_detail = None

    def post(self, request, id):
        project = get_object_or_404(Project, id=id)
        project = self.transition(project, request.user)
        return Response({
            'detail': self.success_detail,
            'project': my_serializers.ProjectDetailSerializer(project, context={'request': request}).data
        }, status=status.HTTP_200_OK)


class ConfirmProjectAPIView(ProjectStatusActionAPIView):
    transition = staticmethod(coordinator.confirm)
    success_detail = "Project confirmed."


class DeclineProjectAPIView(ProjectStatusActionAPIView):
    transition = staticmethod(coordinator.decline_project)
    success_detail = "Project declined."


class CancelProjectAPIView(ProjectStatusActionAPIView):
    transition = staticmethod(coordinator.cancel_project)
    success_detail = "Project cancelled."


class CompleteProjectAPIView(ProjectStatusActionAPIView):
    transition = staticmethod(coordinator.complete)
    success_detail = "Project completed."


class StartProjectAPIView(ProjectStatusActionAPIView):
    transition = staticmethod(coordinator.start_progress)
    success_detail = "Project started."


class InvitePerformersAPIView(drf_views.APIView):
    """
    Invite performers. From a brief, every performer gets a cloned project of
    their own; from a derived project, proposals are added to that project.
    Responds 201 when every invitation was created and 207 otherwise.
    """
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Invite performers",
        request_body=my_serializers.InviteSerializer,
        responses={201: "All invitations created", 207: "Some invitations failed"}
    )
    def post(self, request, id):
        project = get_object_or_404(Project, id=id)
        serializer = my_serializers.InviteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = fanout.fanout(project, request.user, serializer.validated_data['performer_ids'], serializer.to_terms())
        result.raise_for_failures()

        return Response({
            'detail': "Invitations sent.",
            **result.as_dict()
        }, status=status.HTTP_201_CREATED)


class ProjectSettlementAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_summary="Settlement of one project", responses={200: my_serializers.ProjectSettlementSerializer})
    def get(self, request, id):
        project = get_object_or_404(Project, id=id)
        result = settlement.settle(project, request.user)
        return Response(my_serializers.ProjectSettlementSerializer(result).data)


class PortfolioSettlementAPIView(drf_views.APIView):
    """Settlement across every derived project the user is involved in."""
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_summary="Settlement across projects", responses={200: my_serializers.PortfolioSettlementSerializer})
    def get(self, request):
        projects = involved_projects(request.user).filter(parent_project__isnull=False)
        result = settlement.settle_portfolio(projects, request.user)
        return Response(my_serializers.PortfolioSettlementSerializer(result).data)


class ProposalListAPIView(generics.ListAPIView):
    """
    Proposals the user received (``box=inbox``, default) or sent
    (``box=outbox``), each with the user's unread count.
    """
    serializer_class = my_serializers.ProposalSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = BookingPagination
    filterset_fields = ['status', 'project']

    box_param = openapi.Parameter('box', openapi.IN_QUERY, type=openapi.TYPE_STRING, enum=['inbox', 'outbox'])

    @swagger_auto_schema(operation_summary="List proposals", manual_parameters=[box_param])
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Proposal.objects.none()
        box = self.request.query_params.get('box', 'inbox')
        queryset = party_proposals(self.request.user)
        if box == 'inbox':
            return queryset.filter(performer=self.request.user)
        if box == 'outbox':
            return queryset.filter(sender=self.request.user)
        raise ValidationError({'box': "Must be 'inbox' or 'outbox'."})


class UnreadTotalAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(operation_summary="Total unread activity across proposals")
    def get(self, request):
        total = unread.total_unread_count(party_proposals(request.user), request.user)
        return Response({'unread_count': total})


class ProposalDetailAPIView(generics.RetrieveAPIView):
    """Proposal detail with its negotiation log. Reading it marks it read."""
    serializer_class = my_serializers.ProposalDetailSerializer
    queryset = Proposal.objects.all()
    permission_classes = [IsAuthenticated, IsProposalParty]

    def get_object(self):
        proposal = get_object_or_404(party_proposals(self.request.user), id=self.kwargs['id'])
        self.check_object_permissions(self.request, proposal)
        return proposal

    def retrieve(self, request, *args, **kwargs):
        proposal = self.get_object()
        unread.mark_read(proposal, request.user)
        return Response(self.get_serializer(proposal).data)


class ProposalActionAPIView(drf_views.APIView):
    """Base for proposal transitions; the service layer checks the actor."""
    permission_classes = [IsAuthenticated]
    input_serializer = None
    success_detail = None

    def perform(self, proposal, user, data):
        raise NotImplementedError

    def post(self, request, id):
        proposal = get_object_or_404(Proposal, id=id)
        data = {}
        if self.input_serializer is not None:
            serializer = self.input_serializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            data = serializer.validated_data

        outcome = self.perform(proposal, request.user, data)
        proposal = party_proposals(request.user).get(pk=outcome.proposal.pk)

        body = {
            'detail': self.success_detail,
            'proposal': my_serializers.ProposalSerializer(proposal, context={'request': request}).data,
            'project_changed': outcome.project_changed,
        }
        if outcome.pm_assigned:
            body['pm_assigned'] = True
        if outcome.coordinator_error:
            body['project_update_error'] = outcome.coordinator_error
        return Response(body, status=status.HTTP_200_OK)


class SendMessageAPIView(ProposalActionAPIView):
    input_serializer = my_serializers.MessageSerializer
    success_detail = "Message sent."

    def perform(self, proposal, user, data):
        return proposal_service.send_message(proposal, user, data['text'])


class SendOfferAPIView(ProposalActionAPIView):
    input_serializer = my_serializers.OfferSerializer
    success_detail = "Offer sent."

    def perform(self, proposal, user, data):
        return proposal_service.send_offer(proposal, user, data['fee'], data['text'])


class AcceptProposalAPIView(ProposalActionAPIView):
    success_detail = "Proposal accepted."

    def perform(self, proposal, user, data):
        return proposal_service.accept(proposal, user)


class DeclineProposalAPIView(ProposalActionAPIView):
    input_serializer = my_serializers.DeclineSerializer
    success_detail = "Proposal declined."

    def perform(self, proposal, user, data):
        return proposal_service.decline(proposal, user, data.get('reason'))


class CancelProposalAPIView(ProposalActionAPIView):
    success_detail = "Proposal cancelled."

    def perform(self, proposal, user, data):
        return proposal_service.cancel(proposal, user)


class FrequentCollaboratorsAPIView(drf_views.APIView):
    """Performers the owner has booked most often."""
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(operation_summary="Frequent collaborators", responses={200: my_serializers.FrequentCollaboratorSerializer(many=True)})
    def get(self, request):
        rows = fanout.frequent_collaborators(request.user)
        data = [{'performer': performer, 'count': count} for performer, count in rows]
        return Response(my_serializers.FrequentCollaboratorSerializer(data, many=True).data)
