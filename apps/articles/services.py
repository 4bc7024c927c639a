"""
Article lifecycle service: the editorial workflow operations.

Composes the state machine, the placement policy and the scheduler over
the persistence provider. Every operation:

1. loads the article and resolves the actor through the providers,
2. validates role, ownership and status,
3. computes every derived attribute,
4. writes them in one compare-and-swap update together with the
   transition log row.

Nothing is written when any step fails, and the caller gets one of the
typed errors from ``apps.core.exceptions``.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import (
    AuthorizationError,
    ConflictError,
    ErrorCode,
    IllegalTransitionError,
    NewsdeskException,
    ValidationError,
)
from apps.core.middleware import bind_context
from apps.core.permissions import AUTHORING_ROLES
from .models import Article
from .placement import (
    Placement,
    PlacementOptions,
    featured_home_fields,
    resolve_placement,
)
from .providers import (
    ArticleRepository,
    DjangoArticleRepository,
    DjangoIdentityProvider,
    IdentityProvider,
)
from .scheduling import (
    captured_placement,
    cleared_schedule_fields,
    ensure_due,
    has_pending_schedule,
    schedule_fields,
    validate_schedule_time,
)
from .state_machine import (
    Actor,
    ArticleEvent,
    ArticleStateMachine,
    ArticleStatus,
    ContentType,
    TransitionContext,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('title', 'excerpt', 'content')


class ArticleLifecycleService:
    """
    Editorial workflow operations.

    Usage:
        service = ArticleLifecycleService()
        article = service.approve(article_id, moderator.pk)
    """

    def __init__(
        self,
        repository: Optional[ArticleRepository] = None,
        identity: Optional[IdentityProvider] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository or DjangoArticleRepository()
        self.identity = identity or DjangoIdentityProvider()
        self.clock = clock or timezone.now

    # ------------------------------------------------------------------
    # Watcher operations
    # ------------------------------------------------------------------

    def create_draft(
        self,
        actor_id: Any,
        title: str,
        content: str = '',
        content_type: str = ContentType.STANDARD.value,
        excerpt: str = '',
    ) -> Article:
        actor = self.identity.get_actor(actor_id)
        if actor.role not in AUTHORING_ROLES:
            raise AuthorizationError("Only watchers can draft articles")

        try:
            content_type = ContentType(content_type)
        except ValueError:
            raise ValidationError(
                f"Unknown content type: {content_type}",
                code=ErrorCode.INVALID_VALUE,
                field='content_type',
            )

        if not (title or '').strip():
            raise ValidationError("Title is required", code=ErrorCode.MISSING_FIELD, field='title')

        article = self.repository.create(
            author_id=actor.id,
            title=title.strip(),
            content=content or '',
            excerpt=excerpt or '',
            content_type=content_type.value,
            status=ArticleStatus.DRAFT.value,
            is_premium=content_type is ContentType.SUMMARY,
        )
        logger.info(f"Article {article.id} drafted by {actor.id} ({content_type.value})")
        return article

    def edit_content(self, article_id: Any, actor_id: Any, **changes) -> Article:
        """Change title/excerpt/content of a draft or rejected article."""
        actor = self.identity.get_actor(actor_id)
        article = self.repository.load(article_id)
        ArticleStateMachine(article).check_editable(actor)

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(
                "Only title, excerpt and content can be edited",
                code=ErrorCode.INVALID_VALUE,
                details={'fields': sorted(unknown)},
            )

        if 'title' in changes:
            if not (changes['title'] or '').strip():
                raise ValidationError("Title is required", code=ErrorCode.MISSING_FIELD, field='title')
            changes['title'] = changes['title'].strip()

        if not changes:
            return article

        return self.repository.save(
            article,
            changes,
            expected_status=article.status,
            expected_version=article.version,
        )

    def submit_for_review(self, article_id: Any, actor_id: Any) -> Article:
        actor = self.identity.get_actor(actor_id)
        article = self.repository.load(article_id)

        def precondition():
            missing = [name for name in ('title', 'content') if not (getattr(article, name) or '').strip()]
            if missing:
                raise ValidationError(
                    "Title and content are required before review",
                    code=ErrorCode.MISSING_FIELD,
                    details={'missing': missing},
                )

        return self._apply(
            article,
            ArticleEvent.SUBMIT,
            actor,
            {'rejection_reason': ''},
            precondition=precondition,
        )

    def revise(self, article_id: Any, actor_id: Any) -> Article:
        """Take a rejected article back to draft."""
        actor = self.identity.get_actor(actor_id)
        article = self.repository.load(article_id)
        return self._apply(article, ArticleEvent.REVISE, actor, {'rejection_reason': ''})

    # ------------------------------------------------------------------
    # Moderator operations
    # ------------------------------------------------------------------

    def approve(self, article_id: Any, actor_id: Any) -> Article:
        actor = self.identity.get_actor(actor_id)
        article = self.repository.load(article_id)
        changes = {
            'validated_by_id': actor.id,
            'validated_at': self.clock(),
        }
        return self._apply(article, ArticleEvent.APPROVE, actor, changes)

    def reject(self, article_id: Any, actor_id: Any, reason: str) -> Article:
        actor = self.identity.get_actor(actor_id)
        article = self.repository.load(article_id)
        reason = (reason or '').strip()

        def precondition():
            if not reason:
                raise ValidationError(
                    "A rejection reason is required",
                    code=ErrorCode.MISSING_FIELD,
                    field='reason',
                )

        changes = {
            'rejection_reason': reason,
            'validated_by_id': actor.id,
            'validated_at': self.clock(),
        }
        return self._apply(
            article,
            ArticleEvent.REJECT,
            actor,
            changes,
            precondition=precondition,
            metadata={'reason': reason},
        )

    def publish(self, article_id: Any, actor_id: Any, options: PlacementOptions) -> Article:
        """
        Publish now, or record a deferred publication when ``options.is_scheduled``.
        """
        actor = self.identity.get_actor(actor_id)
        article = self.repository.load(article_id)
        now = self.clock()

        if options.is_scheduled:
            return self._schedule(article, actor, options, now)

        ArticleStateMachine(article).check(ArticleEvent.PUBLISH, actor)
        placement = resolve_placement(article.content_type, options)
        return self._apply(
            article,
            ArticleEvent.PUBLISH,
            actor,
            self._publication_fields(article, placement, now),
            metadata={'placement': placement.to_json()},
        )

    def unpublish(self, article_id: Any, actor_id: Any) -> Article:
        """Back to approved; placement attributes are kept for the next publication."""
        actor = self.identity.get_actor(actor_id)
        article = self.repository.load(article_id)
        return self._apply(article, ArticleEvent.UNPUBLISH, actor, {'published_at': None})

    def archive(self, article_id: Any, actor_id: Any) -> Article:
        actor = self.identity.get_actor(actor_id)
        article = self.repository.load(article_id)
        return self._apply(article, ArticleEvent.ARCHIVE, actor, {})

    def update_placement(self, article_id: Any, actor_id: Any, options: PlacementOptions) -> Article:
        """Re-place a published article without touching status or published_at."""
        actor = self.identity.get_actor(actor_id)
        article = self.repository.load(article_id)

        if options.is_scheduled:
            raise ValidationError(
                "A published article cannot be scheduled",
                code=ErrorCode.INVALID_VALUE,
                field='is_scheduled',
            )

        ArticleStateMachine(article).check(ArticleEvent.UPDATE_PLACEMENT, actor)
        placement = resolve_placement(article.content_type, options)
        changes = {
            **placement.as_fields(),
            **featured_home_fields(article, placement, self.clock()),
        }
        return self._apply(
            article,
            ArticleEvent.UPDATE_PLACEMENT,
            actor,
            changes,
            metadata={'placement': placement.to_json()},
        )

    def reschedule(self, article_id: Any, actor_id: Any, scheduled_publish_at: Optional[datetime]) -> Article:
        actor = self.identity.get_actor(actor_id)
        article = self.repository.load(article_id)
        now = self.clock()

        def precondition():
            if not has_pending_schedule(article):
                raise IllegalTransitionError("Article has no scheduled publication to move")
            validate_schedule_time(scheduled_publish_at, now)

        return self._apply(
            article,
            ArticleEvent.RESCHEDULE,
            actor,
            {'scheduled_publish_at': scheduled_publish_at},
            precondition=precondition,
            metadata={
                'previous': article.scheduled_publish_at.isoformat() if article.scheduled_publish_at else None,
                'scheduled_publish_at': scheduled_publish_at.isoformat() if scheduled_publish_at else None,
            },
        )

    def cancel_schedule(self, article_id: Any, actor_id: Any) -> Article:
        actor = self.identity.get_actor(actor_id)
        article = self.repository.load(article_id)

        def precondition():
            if not has_pending_schedule(article):
                raise IllegalTransitionError("Article has no scheduled publication to cancel")

        return self._apply(
            article,
            ArticleEvent.CANCEL_SCHEDULE,
            actor,
            cleared_schedule_fields(),
            precondition=precondition,
        )

    # ------------------------------------------------------------------
    # Scheduler operations
    # ------------------------------------------------------------------

    def fire_scheduled_publish(self, article_id: Any, now: Optional[datetime] = None) -> Article:
        """
        Publish a due article with the placement captured at scheduling time.

        Firing an article that is already live (published, or archived since
        the first trigger) is a no-op so the scheduler may deliver the same
        trigger more than once.
        """
        now = now or self.clock()
        article = self.repository.load(article_id)

        if ArticleStatus.from_string(article.status).is_live:
            logger.debug(f"Article {article.id} already {article.status}, ignoring scheduled trigger")
            return article

        machine = ArticleStateMachine(article)
        machine.check_transition(ArticleEvent.PUBLISH)
        ensure_due(article, now)

        placement = captured_placement(article)
        try:
            return self._apply(
                article,
                ArticleEvent.PUBLISH,
                None,
                self._publication_fields(article, placement, now),
                authorize=False,
                metadata={
                    'scheduled': True,
                    'scheduled_publish_at': article.scheduled_publish_at.isoformat(),
                    'placement': placement.to_json(),
                },
            )
        except ConflictError:
            # Another trigger may have won the race
            current = self.repository.load(article_id)
            if ArticleStatus.from_string(current.status).is_live:
                return current
            raise

    def expire_featured_home(self, now: Optional[datetime] = None) -> int:
        now = now or self.clock()
        expired = self.repository.expire_featured_home(now)
        if expired:
            logger.info(f"Cleared {expired} expired homepage feature(s)")
        return expired

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _schedule(self, article: Article, actor: Actor, options: PlacementOptions, now: datetime) -> Article:
        ArticleStateMachine(article).check(ArticleEvent.SCHEDULE, actor)
        placement = resolve_placement(article.content_type, options)
        scheduled_at = validate_schedule_time(options.scheduled_publish_at, now)
        return self._apply(
            article,
            ArticleEvent.SCHEDULE,
            actor,
            schedule_fields(placement, scheduled_at),
            metadata={
                'scheduled_publish_at': scheduled_at.isoformat(),
                'placement': placement.to_json(),
            },
        )

    def _publication_fields(self, article: Article, placement: Placement, now: datetime) -> Dict[str, Any]:
        return {
            **placement.as_fields(),
            **featured_home_fields(article, placement, now),
            **cleared_schedule_fields(),
            'published_at': now,
        }

    def _apply(
        self,
        article: Article,
        event: ArticleEvent,
        actor: Optional[Actor],
        changes: Dict[str, Any],
        precondition: Optional[Callable[[], None]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        authorize: bool = True,
    ) -> Article:
        bind_context(article_id=article.id, event=event.value)
        machine = ArticleStateMachine(article)
        from_state = machine.current_state

        try:
            if authorize:
                rule = machine.check(event, actor)
            else:
                rule = machine.check_transition(event)

            if precondition is not None:
                precondition()

            to_state = rule.target or from_state
            changes = {**changes, 'status': to_state.value}

            with transaction.atomic():
                saved = self.repository.save(
                    article,
                    changes,
                    expected_status=from_state.value,
                    expected_version=article.version,
                )
                self.repository.record_transition(
                    saved,
                    event.value,
                    from_state.value,
                    to_state.value,
                    actor,
                    metadata,
                )

        except NewsdeskException as e:
            logger.warning(
                f"Article {article.id} {event.value} refused "
                f"({from_state.value}, {e.error_code.value}): {e.message}"
            )
            raise

        logger.info(
            f"Article {saved.id} {event.value}: {from_state.value} → {to_state.value}"
        )

        machine.run_after_hooks(TransitionContext(
            article=saved,
            event=event,
            from_state=from_state,
            to_state=to_state,
            actor=actor,
            timestamp=self.clock(),
            metadata=metadata or {},
        ))

        return saved
