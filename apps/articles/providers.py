"""
Collaborator interfaces for the article lifecycle engine.

These interfaces define the contract for pluggable components:
- IdentityProvider: Resolve who is acting and with which role
- SubscriptionProvider: Tell whether a reader currently pays
- ArticleRepository: Load articles and save them with compare-and-swap

The Django-backed implementations are the defaults; the engine only
talks to the abstract contracts so it can be driven without a database
in other deployments.
"""

import copy
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.core.exceptions import ConflictError, NotFoundError
from apps.core.permissions import get_user_role
from .access import ViewerContext
from .models import Article, ArticleTransition
from .placement import validate_article_state
from .state_machine import Actor, ArticleStatus

logger = logging.getLogger(__name__)


class IdentityProvider(ABC):
    """Supplies the role of the current actor."""

    @abstractmethod
    def get_actor(self, actor_id: Any) -> Actor:
        """
        Resolve an actor id.

        Raises:
            NotFoundError: unknown actor
        """
        pass

    @abstractmethod
    def get_role(self, user) -> Optional[str]:
        """Role of an authenticated user, or None for anonymous visitors."""
        pass


class SubscriptionProvider(ABC):
    """Supplies the subscription state of a reader."""

    @abstractmethod
    def has_active_subscription(self, user_id: Any) -> bool:
        pass


class ArticleRepository(ABC):
    """Persistence contract used by the lifecycle service."""

    @abstractmethod
    def load(self, article_id: Any) -> Article:
        """
        Raises:
            NotFoundError: no such article
        """
        pass

    @abstractmethod
    def create(self, **fields) -> Article:
        pass

    @abstractmethod
    def save(
        self,
        article: Article,
        changes: Dict[str, Any],
        expected_status: str,
        expected_version: int,
    ) -> Article:
        """
        Write ``changes`` only if the stored status and version still match.

        Raises:
            ValidationError: the resulting article would break an invariant
            ConflictError: the article changed since it was loaded
        """
        pass

    @abstractmethod
    def record_transition(
        self,
        article: Article,
        event: str,
        from_status: str,
        to_status: str,
        actor: Optional[Actor],
        metadata: Optional[Dict[str, Any]] = None,
    ):
        pass

    @abstractmethod
    def due_for_publication(self, now: datetime) -> List[Any]:
        """Ids of approved articles whose scheduled time has come."""
        pass

    @abstractmethod
    def expire_featured_home(self, now: datetime) -> int:
        """Clear lapsed homepage features. Returns the number of articles changed."""
        pass


# =============================================================================
# Django-backed implementations
# =============================================================================

class DjangoIdentityProvider(IdentityProvider):
    """Roles come from ``UserProfile`` (superusers are admins)."""

    def get_actor(self, actor_id: Any) -> Actor:
        User = get_user_model()
        try:
            user = User.objects.get(pk=actor_id)
        except User.DoesNotExist:
            raise NotFoundError(f"User {actor_id} not found", field='actor_id')
        return Actor(id=user.pk, role=self.get_role(user))

    def get_role(self, user) -> Optional[str]:
        return get_user_role(user)


class ProfileSubscriptionProvider(SubscriptionProvider):
    """Reads the subscription window the billing service writes on the profile."""

    def __init__(self, clock=None):
        self.clock = clock or timezone.now

    def has_active_subscription(self, user_id: Any) -> bool:
        from apps.core.models import UserProfile

        profile = UserProfile.objects.filter(user_id=user_id).only('subscription_expires_at').first()
        if profile is None:
            return False
        return profile.has_active_subscription(now=self.clock())


class DjangoArticleRepository(ArticleRepository):
    """Article persistence on the Django ORM with optimistic locking."""

    def load(self, article_id: Any) -> Article:
        try:
            return Article.objects.get(pk=article_id)
        except (Article.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundError(f"Article {article_id} not found", field='article_id')

    def create(self, **fields) -> Article:
        article = Article(**fields)
        validate_article_state(article)
        article.save()
        return article

    def save(
        self,
        article: Article,
        changes: Dict[str, Any],
        expected_status: str,
        expected_version: int,
    ) -> Article:
        candidate = copy.copy(article)
        for name, value in changes.items():
            setattr(candidate, name, value)
        validate_article_state(candidate)

        updated = Article.objects.filter(
            pk=article.pk,
            status=expected_status,
            version=expected_version,
        ).update(
            **changes,
            version=F('version') + 1,
            updated_at=timezone.now(),
        )

        if updated == 0:
            current = Article.objects.filter(pk=article.pk).values('status', 'version').first()
            if current is None:
                raise NotFoundError(f"Article {article.pk} not found", field='article_id')
            logger.warning(
                f"Article {article.pk} write conflict: expected "
                f"{expected_status}/v{expected_version}, found {current['status']}/v{current['version']}"
            )
            raise ConflictError(
                "Article was modified by another request; reload and retry",
                details={
                    'expected_status': expected_status,
                    'current_status': current['status'],
                },
            )

        return self.load(article.pk)

    def record_transition(
        self,
        article: Article,
        event: str,
        from_status: str,
        to_status: str,
        actor: Optional[Actor],
        metadata: Optional[Dict[str, Any]] = None,
    ):
        return ArticleTransition.objects.create(
            article=article,
            event=event,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor.id if actor is not None else None,
            metadata=metadata or {},
        )

    def due_for_publication(self, now: datetime) -> List[Any]:
        return list(
            Article.objects.filter(
                status=ArticleStatus.APPROVED.value,
                scheduled_publish_at__lte=now,
            ).order_by('scheduled_publish_at').values_list('pk', flat=True)
        )

    def expire_featured_home(self, now: datetime) -> int:
        with transaction.atomic():
            return Article.objects.filter(
                is_featured_home=True,
                featured_home_expires_at__lte=now,
            ).update(
                is_featured_home=False,
                featured_home_expires_at=None,
                version=F('version') + 1,
                updated_at=now,
            )


def viewer_context_for(
    user,
    identity: Optional[IdentityProvider] = None,
    subscriptions: Optional[SubscriptionProvider] = None,
) -> ViewerContext:
    """Build the access-decision input for the requesting user."""
    if user is None or not user.is_authenticated:
        return ViewerContext.anonymous()

    identity = identity or DjangoIdentityProvider()
    role = identity.get_role(user)
    viewer = ViewerContext(is_authenticated=True, role=role)
    if viewer.is_staff:
        return viewer

    subscriptions = subscriptions or ProfileSubscriptionProvider()
    return ViewerContext(
        is_authenticated=True,
        role=role,
        has_active_subscription=subscriptions.has_active_subscription(user.pk),
    )
