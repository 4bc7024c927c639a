"""
Tests for the article workflow table.

Covers:
- Reachable statuses per status
- Role and ownership checks
- Status preconditions
- Content edit rules
- After-transition hooks
"""

import uuid
from types import SimpleNamespace

import pytest
from django.utils import timezone

from apps.articles.state_machine import (
    TRANSITION_RULES,
    VALID_TRANSITIONS,
    Actor,
    ArticleEvent,
    ArticleStateMachine,
    ArticleStatus,
    TransitionContext,
)
from apps.core.exceptions import AuthorizationError, ErrorCode, IllegalTransitionError


AUTHOR_ID = uuid.uuid4()


def make_article(status, author_id=AUTHOR_ID):
    return SimpleNamespace(id=uuid.uuid4(), status=status, author_id=author_id)


AUTHOR = Actor(id=AUTHOR_ID, role='watcher')
OTHER_WATCHER = Actor(id=uuid.uuid4(), role='watcher')
MODERATOR = Actor(id=uuid.uuid4(), role='moderator')
ADMIN = Actor(id=AUTHOR_ID, role='admin')
READER = Actor(id=uuid.uuid4(), role='reader')


# ============================================================================
# Transition Table
# ============================================================================

class TestTransitionTable:

    def test_every_event_has_a_rule(self):
        assert set(TRANSITION_RULES) == set(ArticleEvent)

    def test_reachable_statuses(self):
        assert VALID_TRANSITIONS[ArticleStatus.DRAFT] == {ArticleStatus.PENDING}
        assert VALID_TRANSITIONS[ArticleStatus.PENDING] == {
            ArticleStatus.APPROVED, ArticleStatus.REJECTED,
        }
        assert VALID_TRANSITIONS[ArticleStatus.REJECTED] == {
            ArticleStatus.PENDING, ArticleStatus.DRAFT,
        }
        assert VALID_TRANSITIONS[ArticleStatus.APPROVED] == {ArticleStatus.PUBLISHED}
        assert VALID_TRANSITIONS[ArticleStatus.PUBLISHED] == {
            ArticleStatus.APPROVED, ArticleStatus.ARCHIVED,
        }
        assert VALID_TRANSITIONS[ArticleStatus.ARCHIVED] == set()

    def test_status_preserving_events_have_no_target(self):
        for event in (
            ArticleEvent.SCHEDULE,
            ArticleEvent.RESCHEDULE,
            ArticleEvent.CANCEL_SCHEDULE,
            ArticleEvent.UPDATE_PLACEMENT,
        ):
            assert TRANSITION_RULES[event].target is None

    def test_get_valid_transitions_returns_copy(self):
        machine = ArticleStateMachine(make_article('draft'))
        reachable = machine.get_valid_transitions()
        reachable.add(ArticleStatus.ARCHIVED)
        assert ArticleStatus.ARCHIVED not in VALID_TRANSITIONS[ArticleStatus.DRAFT]

    def test_unknown_status_raises(self):
        with pytest.raises(ValueError):
            ArticleStatus.from_string('deleted')


# ============================================================================
# Authorization
# ============================================================================

class TestAuthorization:

    def test_author_can_submit_own_draft(self):
        machine = ArticleStateMachine(make_article('draft'))
        rule = machine.check(ArticleEvent.SUBMIT, AUTHOR)
        assert rule.target is ArticleStatus.PENDING

    def test_other_watcher_cannot_submit(self):
        machine = ArticleStateMachine(make_article('draft'))
        with pytest.raises(AuthorizationError):
            machine.check(ArticleEvent.SUBMIT, OTHER_WATCHER)

    def test_moderator_cannot_submit(self):
        machine = ArticleStateMachine(make_article('draft'))
        with pytest.raises(AuthorizationError):
            machine.check(ArticleEvent.SUBMIT, MODERATOR)

    def test_admin_author_can_submit(self):
        machine = ArticleStateMachine(make_article('draft'))
        assert machine.can_fire(ArticleEvent.SUBMIT, ADMIN)

    @pytest.mark.parametrize('actor', [AUTHOR, READER, None])
    def test_only_moderation_roles_approve(self, actor):
        machine = ArticleStateMachine(make_article('pending'))
        with pytest.raises(AuthorizationError) as exc_info:
            machine.check(ArticleEvent.APPROVE, actor)
        assert exc_info.value.error_code is ErrorCode.PERMISSION_DENIED

    def test_authorization_checked_before_status(self):
        """A reader asking to approve a draft is refused for the role, not the status."""
        machine = ArticleStateMachine(make_article('draft'))
        with pytest.raises(AuthorizationError):
            machine.check(ArticleEvent.APPROVE, READER)

    def test_event_accepts_string(self):
        machine = ArticleStateMachine(make_article('pending'))
        assert machine.check('approve', MODERATOR).target is ArticleStatus.APPROVED


# ============================================================================
# Status Preconditions
# ============================================================================

class TestStatusPreconditions:

    @pytest.mark.parametrize('status', ['draft', 'approved', 'rejected', 'published', 'archived'])
    def test_approve_requires_pending(self, status):
        machine = ArticleStateMachine(make_article(status))
        with pytest.raises(IllegalTransitionError) as exc_info:
            machine.check(ArticleEvent.APPROVE, MODERATOR)
        assert exc_info.value.error_code is ErrorCode.ILLEGAL_TRANSITION
        assert exc_info.value.error_details['status'] == status

    def test_publish_requires_approved(self):
        machine = ArticleStateMachine(make_article('pending'))
        assert not machine.can_fire(ArticleEvent.PUBLISH, MODERATOR)

    def test_rejected_can_be_resubmitted(self):
        machine = ArticleStateMachine(make_article('rejected'))
        assert machine.can_fire(ArticleEvent.SUBMIT, AUTHOR)
        assert machine.can_fire(ArticleEvent.REVISE, AUTHOR)

    def test_unpublish_returns_to_approved(self):
        machine = ArticleStateMachine(make_article('published'))
        assert machine.check(ArticleEvent.UNPUBLISH, MODERATOR).target is ArticleStatus.APPROVED

    def test_placement_only_on_published(self):
        assert ArticleStateMachine(make_article('published')).can_fire(
            ArticleEvent.UPDATE_PLACEMENT, MODERATOR
        )
        assert not ArticleStateMachine(make_article('approved')).can_fire(
            ArticleEvent.UPDATE_PLACEMENT, MODERATOR
        )

    def test_archived_is_terminal(self):
        machine = ArticleStateMachine(make_article('archived'))
        for event in ArticleEvent:
            assert not machine.can_fire(event, MODERATOR)


# ============================================================================
# Content Edits
# ============================================================================

class TestEditRules:

    @pytest.mark.parametrize('status', ['draft', 'rejected'])
    def test_author_can_edit(self, status):
        ArticleStateMachine(make_article(status)).check_editable(AUTHOR)

    @pytest.mark.parametrize('status', ['pending', 'approved', 'published', 'archived'])
    def test_author_cannot_edit_after_submission(self, status):
        with pytest.raises(AuthorizationError):
            ArticleStateMachine(make_article(status)).check_editable(AUTHOR)

    def test_moderator_cannot_edit(self):
        with pytest.raises(AuthorizationError):
            ArticleStateMachine(make_article('draft')).check_editable(MODERATOR)

    def test_other_watcher_cannot_edit(self):
        with pytest.raises(AuthorizationError):
            ArticleStateMachine(make_article('draft')).check_editable(OTHER_WATCHER)


# ============================================================================
# Hooks
# ============================================================================

class TestHooks:

    def _context(self, article):
        return TransitionContext(
            article=article,
            event=ArticleEvent.APPROVE,
            from_state=ArticleStatus.PENDING,
            to_state=ArticleStatus.APPROVED,
            actor=MODERATOR,
            timestamp=timezone.now(),
        )

    def test_hooks_receive_context(self):
        seen = []
        ArticleStateMachine.register_after_hook(ArticleEvent.APPROVE, seen.append)

        article = make_article('approved')
        ArticleStateMachine(article).run_after_hooks(self._context(article))

        assert len(seen) == 1
        assert seen[0].to_state is ArticleStatus.APPROVED

    def test_failing_hook_does_not_raise(self):
        calls = []

        def broken(context):
            raise RuntimeError('notification service down')

        ArticleStateMachine.register_after_hook(ArticleEvent.APPROVE, broken)
        ArticleStateMachine.register_after_hook(ArticleEvent.APPROVE, calls.append)

        article = make_article('approved')
        ArticleStateMachine(article).run_after_hooks(self._context(article))

        assert len(calls) == 1

    def test_hooks_are_scoped_to_event(self):
        seen = []
        ArticleStateMachine.register_after_hook(ArticleEvent.PUBLISH, seen.append)

        article = make_article('approved')
        ArticleStateMachine(article).run_after_hooks(self._context(article))

        assert seen == []
