"""
Tests for the scheduled publication and homepage maintenance tasks.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from apps.articles import tasks
from apps.articles.models import Article
from apps.articles.placement import PlacementOptions
from apps.articles.state_machine import ArticleEvent, ArticleStateMachine, Section
from apps.core.middleware import current_context


@pytest.fixture
def scheduled_article(service, moderator, approved_article, future):
    return service.publish(
        approved_article.pk,
        moderator.pk,
        PlacementOptions(section=Section.FOCUS, is_scheduled=True, scheduled_publish_at=future),
    )


def make_due(article):
    """Move the scheduled time into the past, as if the clock had advanced."""
    Article.objects.filter(pk=article.pk).update(
        scheduled_publish_at=timezone.now() - timedelta(minutes=1),
    )


@pytest.mark.django_db
class TestPublishDueArticles:

    def test_nothing_due(self, scheduled_article):
        with patch.object(tasks.fire_scheduled_publish, 'apply_async') as apply_async:
            result = tasks.publish_due_articles.apply().get()
        assert result == {'dispatched': 0}
        apply_async.assert_not_called()

    def test_dispatches_due_articles(self, scheduled_article):
        make_due(scheduled_article)
        with patch.object(tasks.fire_scheduled_publish, 'apply_async') as apply_async:
            result = tasks.publish_due_articles.apply().get()

        assert result == {'dispatched': 1}
        apply_async.assert_called_once()
        assert apply_async.call_args.kwargs['args'] == [str(scheduled_article.pk)]
        assert apply_async.call_args.kwargs['headers']['article_id'] == str(scheduled_article.pk)

    def test_end_to_end_publication(self, scheduled_article):
        make_due(scheduled_article)
        tasks.publish_due_articles.apply()

        scheduled_article.refresh_from_db()
        assert scheduled_article.status == 'published'
        assert scheduled_article.section == 'focus'
        assert scheduled_article.published_at is not None


@pytest.mark.django_db
class TestFireScheduledPublish:

    def test_publishes_due_article(self, scheduled_article):
        make_due(scheduled_article)
        result = tasks.fire_scheduled_publish.apply(args=[str(scheduled_article.pk)]).get()
        assert result['status'] == 'published'
        assert result['article_id'] == str(scheduled_article.pk)

    def test_duplicate_trigger_is_harmless(self, scheduled_article):
        make_due(scheduled_article)
        first = tasks.fire_scheduled_publish.apply(args=[str(scheduled_article.pk)]).get()
        second = tasks.fire_scheduled_publish.apply(args=[str(scheduled_article.pk)]).get()
        assert first == second

    def test_not_due_reports_error(self, scheduled_article):
        result = tasks.fire_scheduled_publish.apply(args=[str(scheduled_article.pk)]).get()
        assert result['error'] == 'SCHEDULE_NOT_DUE'
        assert result['retry'] == 'later'
        scheduled_article.refresh_from_db()
        assert scheduled_article.status == 'approved'

    def test_article_and_event_in_log_context(self, scheduled_article):
        make_due(scheduled_article)
        seen = []
        ArticleStateMachine.register_after_hook(
            ArticleEvent.PUBLISH, lambda context: seen.append(current_context()),
        )

        tasks.fire_scheduled_publish.apply(args=[str(scheduled_article.pk)])

        assert seen[0].article_id == str(scheduled_article.pk)
        assert seen[0].event == 'publish'
        assert current_context() is None

    def test_unknown_article(self):
        article_id = '00000000-0000-0000-0000-000000000000'
        result = tasks.fire_scheduled_publish.apply(args=[article_id]).get()
        assert result == {'error': 'not_found', 'article_id': article_id}


@pytest.mark.django_db
class TestExpireFeaturedHome:

    def test_clears_lapsed_features(self, service, moderator, approved_article):
        article = service.publish(
            approved_article.pk,
            moderator.pk,
            PlacementOptions(section=Section.ESSENTIAL, is_featured_home=True),
        )
        Article.objects.filter(pk=article.pk).update(
            featured_home_expires_at=timezone.now() - timedelta(minutes=1),
        )

        result = tasks.expire_featured_home.apply().get()

        assert result == {'expired': 1}
        article.refresh_from_db()
        assert not article.is_featured_home
