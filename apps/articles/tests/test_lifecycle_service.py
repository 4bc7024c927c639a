"""
Tests for the article lifecycle service.

Covers:
- Draft creation and content edits
- Review workflow (submit, approve, reject, revise)
- Publication, placement and unpublication
- Scheduled publication and idempotent firing
- Optimistic locking under concurrent writes
- Transition log and after-transition hooks
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from apps.articles.models import Article, ArticleTransition
from apps.articles.placement import PlacementOptions
from apps.articles.providers import DjangoArticleRepository
from apps.articles.services import ArticleLifecycleService
from apps.articles.state_machine import ArticleEvent, ArticleStateMachine, Section
from apps.core.exceptions import (
    AuthorizationError,
    ConflictError,
    ErrorCode,
    IllegalTransitionError,
    NotFoundError,
    ValidationError,
)


# ============================================================================
# Draft & Edit
# ============================================================================

@pytest.mark.django_db
class TestCreateDraft:

    def test_watcher_creates_draft(self, service, watcher):
        article = service.create_draft(watcher.pk, title='  Title  ', content='Body')
        assert article.status == 'draft'
        assert article.title == 'Title'
        assert article.author_id == watcher.pk
        assert article.version == 0
        assert not article.is_premium

    def test_summary_is_premium_from_creation(self, service, watcher):
        article = service.create_draft(watcher.pk, title='Briefing', content_type='summary')
        assert article.is_summary
        assert article.is_premium
        assert article.section is None

    @pytest.mark.parametrize('role_fixture', ['reader', 'moderator'])
    def test_non_authoring_roles_refused(self, request, service, role_fixture):
        user = request.getfixturevalue(role_fixture)
        with pytest.raises(AuthorizationError):
            service.create_draft(user.pk, title='Title')
        assert Article.objects.count() == 0

    def test_title_required(self, service, watcher):
        with pytest.raises(ValidationError) as exc_info:
            service.create_draft(watcher.pk, title='   ')
        assert exc_info.value.field == 'title'

    def test_unknown_content_type(self, service, watcher):
        with pytest.raises(ValidationError) as exc_info:
            service.create_draft(watcher.pk, title='Title', content_type='podcast')
        assert exc_info.value.field == 'content_type'

    def test_unknown_actor(self, service):
        with pytest.raises(NotFoundError):
            service.create_draft(999999, title='Title')


@pytest.mark.django_db
class TestEditContent:

    def test_author_edits_draft(self, service, watcher, draft_article):
        article = service.edit_content(draft_article.pk, watcher.pk, content='New body')
        assert article.content == 'New body'
        assert article.version == draft_article.version + 1
        assert not ArticleTransition.objects.filter(article=article).exists()

    def test_author_edits_rejected(self, service, watcher, moderator, pending_article):
        service.reject(pending_article.pk, moderator.pk, 'Needs sources')
        article = service.edit_content(pending_article.pk, watcher.pk, title='Better title')
        assert article.title == 'Better title'
        assert article.status == 'rejected'

    def test_pending_article_locked(self, service, watcher, pending_article):
        with pytest.raises(AuthorizationError):
            service.edit_content(pending_article.pk, watcher.pk, content='Sneaky change')
        pending_article.refresh_from_db()
        assert 'Sneaky' not in pending_article.content

    @pytest.mark.parametrize('locked_status', ['approved', 'published', 'archived'])
    def test_moderated_article_locked(self, service, watcher, moderator, pending_article, locked_status):
        service.approve(pending_article.pk, moderator.pk)
        if locked_status != 'approved':
            service.publish(pending_article.pk, moderator.pk, PlacementOptions(section=Section.FOCUS))
        if locked_status == 'archived':
            service.archive(pending_article.pk, moderator.pk)

        with pytest.raises(AuthorizationError):
            service.edit_content(pending_article.pk, watcher.pk, content='Late change')

        pending_article.refresh_from_db()
        assert pending_article.status == locked_status
        assert 'Late change' not in pending_article.content

    def test_other_watcher_refused(self, service, other_watcher, draft_article):
        with pytest.raises(AuthorizationError):
            service.edit_content(draft_article.pk, other_watcher.pk, content='Hijack')

    def test_workflow_fields_not_editable(self, service, watcher, draft_article):
        with pytest.raises(ValidationError) as exc_info:
            service.edit_content(draft_article.pk, watcher.pk, status='published')
        assert exc_info.value.error_details == {'fields': ['status']}

    def test_empty_title_refused(self, service, watcher, draft_article):
        with pytest.raises(ValidationError):
            service.edit_content(draft_article.pk, watcher.pk, title='')


# ============================================================================
# Review Workflow
# ============================================================================

@pytest.mark.django_db
class TestReview:

    def test_submit(self, service, watcher, draft_article):
        article = service.submit_for_review(draft_article.pk, watcher.pk)
        assert article.status == 'pending'
        assert article.version == draft_article.version + 1

    def test_submit_requires_content(self, service, watcher):
        article = service.create_draft(watcher.pk, title='Empty')
        with pytest.raises(ValidationError) as exc_info:
            service.submit_for_review(article.pk, watcher.pk)
        assert exc_info.value.error_details == {'missing': ['content']}
        article.refresh_from_db()
        assert article.status == 'draft'

    def test_submit_twice(self, service, watcher, pending_article):
        with pytest.raises(IllegalTransitionError):
            service.submit_for_review(pending_article.pk, watcher.pk)

    def test_approve_records_validator(self, service, moderator, pending_article):
        article = service.approve(pending_article.pk, moderator.pk)
        assert article.status == 'approved'
        assert article.validated_by_id == moderator.pk
        assert article.validated_at is not None

    def test_watcher_cannot_approve(self, service, watcher, pending_article):
        with pytest.raises(AuthorizationError):
            service.approve(pending_article.pk, watcher.pk)

    def test_reject_requires_reason(self, service, moderator, pending_article):
        with pytest.raises(ValidationError) as exc_info:
            service.reject(pending_article.pk, moderator.pk, '   ')
        assert exc_info.value.field == 'reason'
        pending_article.refresh_from_db()
        assert pending_article.status == 'pending'

    def test_reject_then_resubmit(self, service, watcher, moderator, pending_article):
        rejected = service.reject(pending_article.pk, moderator.pk, ' Missing sources ')
        assert rejected.status == 'rejected'
        assert rejected.rejection_reason == 'Missing sources'

        resubmitted = service.submit_for_review(pending_article.pk, watcher.pk)
        assert resubmitted.status == 'pending'
        assert resubmitted.rejection_reason == ''

    def test_revise_back_to_draft(self, service, watcher, moderator, pending_article):
        service.reject(pending_article.pk, moderator.pk, 'Rewrite the lede')
        article = service.revise(pending_article.pk, watcher.pk)
        assert article.status == 'draft'
        assert article.rejection_reason == ''

    def test_approve_then_reject_is_illegal(self, service, moderator, make_user, pending_article):
        second = make_user('second_moderator', 'moderator')
        service.approve(pending_article.pk, moderator.pk)
        with pytest.raises(IllegalTransitionError):
            service.reject(pending_article.pk, second.pk, 'Too late')

    def test_unknown_article(self, service, moderator):
        with pytest.raises(NotFoundError):
            service.approve('00000000-0000-0000-0000-000000000000', moderator.pk)

    def test_malformed_article_id(self, service, moderator):
        with pytest.raises(NotFoundError):
            service.approve('not-a-uuid', moderator.pk)


# ============================================================================
# Publication & Placement
# ============================================================================

@pytest.mark.django_db
class TestPublish:

    def test_publish_with_section(self, service, moderator, approved_article):
        article = service.publish(
            approved_article.pk,
            moderator.pk,
            PlacementOptions(section=Section.FOCUS, is_premium=True, is_featured_home=True),
        )
        assert article.status == 'published'
        assert article.section == 'focus'
        assert article.is_premium
        assert article.published_at is not None
        assert article.featured_home_expires_at == article.published_at + timedelta(hours=24)

    def test_publish_without_section(self, service, moderator, approved_article):
        with pytest.raises(ValidationError) as exc_info:
            service.publish(approved_article.pk, moderator.pk, PlacementOptions())
        assert exc_info.value.error_code is ErrorCode.MISSING_FIELD
        approved_article.refresh_from_db()
        assert approved_article.status == 'approved'

    def test_publish_pending_is_illegal(self, service, moderator, pending_article):
        with pytest.raises(IllegalTransitionError):
            service.publish(
                pending_article.pk, moderator.pk, PlacementOptions(section=Section.FOCUS),
            )

    def test_summary_stays_premium_without_section(self, service, moderator, summary_article):
        article = service.publish(
            summary_article.pk,
            moderator.pk,
            PlacementOptions(section=Section.GENERAL_FEED, is_premium=False),
        )
        assert article.section is None
        assert article.is_premium

    def test_unpublish_and_republish(self, service, moderator, published_article):
        unpublished = service.unpublish(published_article.pk, moderator.pk)
        assert unpublished.status == 'approved'
        assert unpublished.published_at is None
        assert unpublished.section == 'general_feed'

        republished = service.publish(
            published_article.pk, moderator.pk, PlacementOptions(section=Section.ESSENTIAL),
        )
        assert republished.status == 'published'
        assert republished.section == 'essential'
        assert republished.published_at is not None

    def test_archive(self, service, moderator, published_article):
        article = service.archive(published_article.pk, moderator.pk)
        assert article.status == 'archived'
        assert article.published_at == published_article.published_at

    def test_update_placement_keeps_publication_date(self, service, moderator, published_article):
        article = service.update_placement(
            published_article.pk,
            moderator.pk,
            PlacementOptions(section=Section.CHRONICLE, is_premium=True, is_archive=True),
        )
        assert article.status == 'published'
        assert article.published_at == published_article.published_at
        assert article.section == 'chronicle'
        assert article.is_premium
        assert article.is_archive

    def test_update_placement_keeps_feature_window(self, service, moderator, approved_article):
        published = service.publish(
            approved_article.pk,
            moderator.pk,
            PlacementOptions(section=Section.FOCUS, is_featured_home=True),
        )
        updated = service.update_placement(
            published.pk,
            moderator.pk,
            PlacementOptions(section=Section.ESSENTIAL, is_featured_home=True),
        )
        assert updated.featured_home_expires_at == published.featured_home_expires_at

    def test_republish_restarts_lapsed_feature_window(self, service, moderator, approved_article):
        published = service.publish(
            approved_article.pk,
            moderator.pk,
            PlacementOptions(section=Section.FOCUS, is_featured_home=True),
        )
        service.unpublish(published.pk, moderator.pk)

        later = timezone.now() + timedelta(hours=30)
        republished = ArticleLifecycleService(clock=lambda: later).publish(
            published.pk,
            moderator.pk,
            PlacementOptions(section=Section.FOCUS, is_featured_home=True),
        )

        assert republished.featured_home_expires_at == later + timedelta(hours=24)
        assert service.expire_featured_home(now=later + timedelta(hours=1)) == 0

    def test_update_placement_requires_published(self, service, moderator, approved_article):
        with pytest.raises(IllegalTransitionError):
            service.update_placement(
                approved_article.pk, moderator.pk, PlacementOptions(section=Section.FOCUS),
            )

    def test_update_placement_cannot_schedule(self, service, moderator, published_article, future):
        with pytest.raises(ValidationError):
            service.update_placement(
                published_article.pk,
                moderator.pk,
                PlacementOptions(section=Section.FOCUS, is_scheduled=True, scheduled_publish_at=future),
            )

    def test_expire_featured_home(self, service, moderator, approved_article):
        published = service.publish(
            approved_article.pk,
            moderator.pk,
            PlacementOptions(section=Section.FOCUS, is_featured_home=True),
        )
        assert service.expire_featured_home(now=timezone.now()) == 0

        later = published.featured_home_expires_at + timedelta(seconds=1)
        assert service.expire_featured_home(now=later) == 1

        published.refresh_from_db()
        assert not published.is_featured_home
        assert published.featured_home_expires_at is None
        assert published.status == 'published'


# ============================================================================
# Scheduled Publication
# ============================================================================

@pytest.mark.django_db
class TestScheduledPublication:

    def _schedule(self, service, moderator, article, at, **placement):
        options = PlacementOptions(
            section=placement.pop('section', Section.FOCUS),
            is_scheduled=True,
            scheduled_publish_at=at,
            **placement,
        )
        return service.publish(article.pk, moderator.pk, options)

    def test_schedule_keeps_status(self, service, moderator, approved_article, future):
        article = self._schedule(service, moderator, approved_article, future, is_premium=True)
        assert article.status == 'approved'
        assert article.is_scheduled
        assert article.scheduled_publish_at == future
        assert article.scheduled_placement['section'] == 'focus'
        assert article.published_at is None

    def test_schedule_in_past(self, service, moderator, approved_article):
        with pytest.raises(ValidationError):
            self._schedule(
                service, moderator, approved_article, timezone.now() - timedelta(minutes=1),
            )

    def test_schedule_validates_placement_upfront(self, service, moderator, approved_article, future):
        with pytest.raises(ValidationError) as exc_info:
            self._schedule(service, moderator, approved_article, future, section=None)
        assert exc_info.value.field == 'section'

    def test_schedule_pending_is_illegal(self, service, moderator, pending_article, future):
        with pytest.raises(IllegalTransitionError):
            self._schedule(service, moderator, pending_article, future)

    def test_fire_applies_captured_placement(self, service, moderator, approved_article, future):
        self._schedule(service, moderator, approved_article, future, is_premium=True)

        fired_at = future + timedelta(seconds=30)
        article = service.fire_scheduled_publish(approved_article.pk, now=fired_at)

        assert article.status == 'published'
        assert article.published_at == fired_at
        assert article.section == 'focus'
        assert article.is_premium
        assert not article.is_scheduled
        assert article.scheduled_placement is None

        transition = ArticleTransition.objects.get(article=article, event='publish')
        assert transition.actor is None
        assert transition.metadata['scheduled'] is True

    def test_fire_before_due(self, service, moderator, approved_article, future):
        self._schedule(service, moderator, approved_article, future)
        with pytest.raises(IllegalTransitionError) as exc_info:
            service.fire_scheduled_publish(approved_article.pk, now=future - timedelta(minutes=1))
        assert exc_info.value.error_code is ErrorCode.SCHEDULE_NOT_DUE

    def test_fire_twice_is_noop(self, service, moderator, approved_article, future):
        self._schedule(service, moderator, approved_article, future)
        first = service.fire_scheduled_publish(approved_article.pk, now=future)
        second = service.fire_scheduled_publish(approved_article.pk, now=future + timedelta(minutes=5))

        assert second.published_at == first.published_at
        assert second.version == first.version
        assert ArticleTransition.objects.filter(article_id=approved_article.pk, event='publish').count() == 1

    def test_fire_after_archive_is_noop(self, service, moderator, approved_article, future):
        self._schedule(service, moderator, approved_article, future)
        service.fire_scheduled_publish(approved_article.pk, now=future)
        archived = service.archive(approved_article.pk, moderator.pk)

        again = service.fire_scheduled_publish(approved_article.pk, now=future + timedelta(minutes=5))

        assert again.status == 'archived'
        assert again.version == archived.version

    def test_fire_without_schedule(self, service, approved_article):
        with pytest.raises(IllegalTransitionError):
            service.fire_scheduled_publish(approved_article.pk)

    def test_manual_publish_clears_schedule(self, service, moderator, approved_article, future):
        self._schedule(service, moderator, approved_article, future)
        article = service.publish(
            approved_article.pk, moderator.pk, PlacementOptions(section=Section.ESSENTIAL),
        )
        assert article.status == 'published'
        assert not article.is_scheduled

    def test_reschedule(self, service, moderator, approved_article, future):
        self._schedule(service, moderator, approved_article, future)
        later = future + timedelta(days=1)
        article = service.reschedule(approved_article.pk, moderator.pk, later)
        assert article.scheduled_publish_at == later
        assert article.scheduled_placement['section'] == 'focus'

    def test_reschedule_without_schedule(self, service, moderator, approved_article, future):
        with pytest.raises(IllegalTransitionError):
            service.reschedule(approved_article.pk, moderator.pk, future)

    def test_cancel_schedule(self, service, moderator, approved_article, future):
        self._schedule(service, moderator, approved_article, future)
        article = service.cancel_schedule(approved_article.pk, moderator.pk)
        assert article.status == 'approved'
        assert not article.is_scheduled
        assert article.scheduled_placement is None

    def test_due_for_publication(self, service, moderator, approved_article, future):
        self._schedule(service, moderator, approved_article, future)
        repository = DjangoArticleRepository()
        assert repository.due_for_publication(timezone.now()) == []
        assert repository.due_for_publication(future) == [approved_article.pk]


# ============================================================================
# Concurrency
# ============================================================================

class StaleRepository(DjangoArticleRepository):
    """Hands out a snapshot taken before a concurrent write landed."""

    def __init__(self, snapshot):
        self.snapshot = snapshot

    def load(self, article_id):
        return self.snapshot


@pytest.mark.django_db
class TestOptimisticLocking:

    def test_stale_write_conflicts(self, service, moderator, pending_article):
        snapshot = Article.objects.get(pk=pending_article.pk)
        service.approve(pending_article.pk, moderator.pk)

        stale_service = ArticleLifecycleService(repository=StaleRepository(snapshot))
        with pytest.raises(ConflictError):
            stale_service.reject(pending_article.pk, moderator.pk, 'Off topic')

        pending_article.refresh_from_db()
        assert pending_article.status == 'approved'
        assert pending_article.rejection_reason == ''
        assert not ArticleTransition.objects.filter(article=pending_article, event='reject').exists()

    def test_version_mismatch_conflicts(self, draft_article):
        repository = DjangoArticleRepository()
        with pytest.raises(ConflictError):
            repository.save(
                draft_article,
                {'title': 'Other'},
                expected_status='draft',
                expected_version=draft_article.version + 1,
            )

    def test_invalid_candidate_not_written(self, draft_article):
        repository = DjangoArticleRepository()
        with pytest.raises(ValidationError):
            repository.save(
                draft_article,
                {'published_at': timezone.now()},
                expected_status='draft',
                expected_version=draft_article.version,
            )
        draft_article.refresh_from_db()
        assert draft_article.published_at is None

    def test_concurrent_fire_returns_published(self, service, moderator, approved_article, future):
        service.publish(
            approved_article.pk,
            moderator.pk,
            PlacementOptions(section=Section.FOCUS, is_scheduled=True, scheduled_publish_at=future),
        )
        snapshot = Article.objects.get(pk=approved_article.pk)
        service.fire_scheduled_publish(approved_article.pk, now=future)

        class RacingRepository(DjangoArticleRepository):
            calls = 0

            def load(self, article_id):
                self.calls += 1
                if self.calls == 1:
                    return snapshot
                return super().load(article_id)

        racing = ArticleLifecycleService(repository=RacingRepository())
        article = racing.fire_scheduled_publish(approved_article.pk, now=future)
        assert article.status == 'published'


# ============================================================================
# Transition Log & Hooks
# ============================================================================

@pytest.mark.django_db
class TestTransitionLog:

    def test_each_action_logged(self, service, watcher, moderator, published_article):
        events = list(
            ArticleTransition.objects.filter(article=published_article)
            .order_by('created_at')
            .values_list('event', 'from_status', 'to_status')
        )
        assert events == [
            ('submit', 'draft', 'pending'),
            ('approve', 'pending', 'approved'),
            ('publish', 'approved', 'published'),
        ]

    def test_actor_recorded(self, service, moderator, pending_article):
        service.approve(pending_article.pk, moderator.pk)
        transition = ArticleTransition.objects.get(article=pending_article, event='approve')
        assert transition.actor_id == moderator.pk

    def test_hook_runs_after_write(self, service, moderator, pending_article):
        seen = []

        def hook(context):
            seen.append((context.from_state.value, context.to_state.value, Article.objects.get(pk=context.article.pk).status))

        ArticleStateMachine.register_after_hook(ArticleEvent.APPROVE, hook)
        service.approve(pending_article.pk, moderator.pk)

        assert seen == [('pending', 'approved', 'approved')]

    def test_hook_failure_does_not_undo_transition(self, service, moderator, pending_article):
        def broken(context):
            raise RuntimeError('cache unavailable')

        ArticleStateMachine.register_after_hook(ArticleEvent.APPROVE, broken)
        article = service.approve(pending_article.pk, moderator.pk)
        assert article.status == 'approved'
