"""
Shared fixtures: one client owner, three performers and a brief with a
schedule. Services are exercised directly; API tests use ``api_client``.
"""
from datetime import date, time

import pytest
from rest_framework.test import APIClient

from accounts.models import CustomUser
from projects.models import Project, ProjectSchedule
from projects.services import fanout


def _make_user(email, user_type, **extra):
    return CustomUser.objects.create_user(
        email=email,
        password='s3cure-Passw0rd',
        first_name=email.split('@')[0].title(),
        last_name='Test',
        user_type=user_type,
        **extra,
    )


@pytest.fixture
def owner(db):
    return _make_user('owner@example.com', CustomUser.CLIENT)


@pytest.fixture
def other_client(db):
    return _make_user('other@example.com', CustomUser.CLIENT)


@pytest.fixture
def performer_a(db):
    return _make_user('alpha@example.com', CustomUser.PERFORMER, stage_name='Alpha')


@pytest.fixture
def performer_b(db):
    return _make_user('bravo@example.com', CustomUser.PERFORMER, stage_name='Bravo')


@pytest.fixture
def performer_c(db):
    return _make_user('charlie@example.com', CustomUser.PERFORMER, stage_name='Charlie')


@pytest.fixture
def brief(owner):
    project = Project.objects.create(
        owner=owner,
        title="Spring showcase",
        category='choreo',
        description="Opening number for the spring showcase.",
        start_date=date(2026, 4, 1),
        end_date=date(2026, 4, 3),
        budget=1_500_000,
    )
    ProjectSchedule.objects.create(project=project, date=date(2026, 4, 1), start_time=time(10), end_time=time(18))
    return project


@pytest.fixture
def derived_for(owner):
    """Fan the brief out to one performer and return (project, proposal)."""
    def _derive(brief, performer, fee=None):
        result = fanout.fanout(brief, owner, [performer.pk], fanout.InviteTerms(fee=fee))
        assert result.ok, result.failures
        project = Project.objects.get(pk=result.project_ids[0])
        return project, project.proposals.get()
    return _derive


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def auth_client(api_client):
    def _as(user):
        api_client.force_authenticate(user=user)
        return api_client
    return _as
