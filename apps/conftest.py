"""
Shared fixtures: users for every editorial role and articles at each
lifecycle position, built through the lifecycle service.
"""

from datetime import timedelta

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from apps.articles.placement import PlacementOptions
from apps.articles.services import ArticleLifecycleService
from apps.articles.state_machine import ArticleStateMachine, Section
from apps.core.models import UserProfile

User = get_user_model()


# ============================================================================
# Users
# ============================================================================

@pytest.fixture
def make_user(db):
    """Create a user and give its profile the requested role."""
    def _make_user(username, role=UserProfile.ROLE_READER, subscription_days=None):
        user = User.objects.create_user(
            username=username,
            email=f'{username}@example.com',
            password='testpass123',
        )
        profile = user.profile
        profile.role = role
        if subscription_days is not None:
            profile.subscription_expires_at = timezone.now() + timedelta(days=subscription_days)
        profile.save()
        return user
    return _make_user


@pytest.fixture
def watcher(make_user):
    return make_user('watcher', UserProfile.ROLE_WATCHER)


@pytest.fixture
def other_watcher(make_user):
    return make_user('other_watcher', UserProfile.ROLE_WATCHER)


@pytest.fixture
def moderator(make_user):
    return make_user('moderator', UserProfile.ROLE_MODERATOR)


@pytest.fixture
def reader(make_user):
    return make_user('reader')


@pytest.fixture
def subscriber(make_user):
    return make_user('subscriber', subscription_days=30)


@pytest.fixture
def lapsed_subscriber(make_user):
    return make_user('lapsed', subscription_days=-1)


@pytest.fixture
def api_client():
    """Create an API client."""
    return APIClient()


# ============================================================================
# Articles
# ============================================================================

@pytest.fixture
def service():
    return ArticleLifecycleService()


@pytest.fixture
def draft_article(service, watcher):
    return service.create_draft(
        watcher.pk,
        title='Budget vote postponed',
        content='<p>The parliament postponed the vote on the budget.</p>',
        excerpt='Vote postponed',
    )


@pytest.fixture
def pending_article(service, watcher, draft_article):
    return service.submit_for_review(draft_article.pk, watcher.pk)


@pytest.fixture
def approved_article(service, moderator, pending_article):
    return service.approve(pending_article.pk, moderator.pk)


@pytest.fixture
def published_article(service, moderator, approved_article):
    return service.publish(
        approved_article.pk,
        moderator.pk,
        PlacementOptions(section=Section.GENERAL_FEED),
    )


@pytest.fixture
def summary_article(service, watcher, moderator):
    """An approved news summary."""
    article = service.create_draft(
        watcher.pk,
        title='Morning briefing',
        content='Five things to know this morning.',
        content_type='summary',
    )
    service.submit_for_review(article.pk, watcher.pk)
    return service.approve(article.pk, moderator.pk)


@pytest.fixture
def future():
    return timezone.now() + timedelta(hours=2)


@pytest.fixture(autouse=True)
def reset_transition_hooks():
    yield
    ArticleStateMachine.clear_hooks()
