from django.urls import path

from . import views as my_views

urlpatterns = [
    # Project endpoints
    path('projects/', my_views.ProjectListCreateAPIView.as_view(), name='list-create-projects'),
    path('projects/<int:id>/', my_views.ProjectDetailAPIView.as_view(), name='retrieve-update-project'),
    path('projects/<int:id>/confirm/', my_views.ConfirmProjectAPIView.as_view(), name='confirm-project'),
    path('projects/<int:id>/decline/', my_views.DeclineProjectAPIView.as_view(), name='decline-project'),
    path('projects/<int:id>/cancel/', my_views.CancelProjectAPIView.as_view(), name='cancel-project'),
    path('projects/<int:id>/complete/', my_views.CompleteProjectAPIView.as_view(), name='complete-project'),
    path('projects/<int:id>/start/', my_views.StartProjectAPIView.as_view(), name='start-project'),
    path('projects/<int:id>/invite/', my_views.InvitePerformersAPIView.as_view(), name='invite-performers'),

    # Settlement endpoints
    path('projects/<int:id>/settlement/', my_views.ProjectSettlementAPIView.as_view(), name='project-settlement'),
    path('settlements/', my_views.PortfolioSettlementAPIView.as_view(), name='portfolio-settlement'),

    # Proposal endpoints
    path('proposals/', my_views.ProposalListAPIView.as_view(), name='list-proposals'),
    path('proposals/unread/', my_views.UnreadTotalAPIView.as_view(), name='unread-total'),
    path('proposals/<int:id>/', my_views.ProposalDetailAPIView.as_view(), name='retrieve-proposal'),
    path('proposals/<int:id>/message/', my_views.SendMessageAPIView.as_view(), name='proposal-message'),
    path('proposals/<int:id>/offer/', my_views.SendOfferAPIView.as_view(), name='proposal-offer'),
    path('proposals/<int:id>/accept/', my_views.AcceptProposalAPIView.as_view(), name='accept-proposal'),
    path('proposals/<int:id>/decline/', my_views.DeclineProposalAPIView.as_view(), name='decline-proposal'),
    path('proposals/<int:id>/cancel/', my_views.CancelProposalAPIView.as_view(), name='cancel-proposal'),

    path('collaborators/frequent/', my_views.FrequentCollaboratorsAPIView.as_view(), name='frequent-collaborators'),
]
