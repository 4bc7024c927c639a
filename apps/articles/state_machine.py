"""
Article Lifecycle State Machine.

Provides the editorial workflow an article moves through:
- Clear state transitions with validation
- Role and ownership checks for every action
- Hook system for after-transition side effects (notifications, cache busting)

States:
    draft → pending → approved → published → archived
              ↓          ↑  ↑         |
           rejected ─────┘  └─────────┘ (unpublish)
              ↓
            draft (revise)

Rejected articles go back to pending on resubmission. Actions that keep
the status (scheduling, placement changes) are listed in the same rule
table with ``target=None``.

Usage:
    machine = ArticleStateMachine(article)
    rule = machine.check(ArticleEvent.APPROVE, actor)
    # ... persist rule.target ...
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set

from apps.core.exceptions import AuthorizationError, IllegalTransitionError
from apps.core.permissions import AUTHORING_ROLES, MODERATION_ROLES

logger = logging.getLogger(__name__)


class ArticleStatus(str, Enum):
    """Lifecycle position of an article."""
    DRAFT = 'draft'
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    PUBLISHED = 'published'
    ARCHIVED = 'archived'

    @classmethod
    def from_string(cls, value: str) -> 'ArticleStatus':
        """Convert string to ArticleStatus."""
        for state in cls:
            if state.value == value:
                return state
        raise ValueError(f"Unknown status: {value}")

    @property
    def is_live(self) -> bool:
        """Content is publicly visible."""
        return self in (ArticleStatus.PUBLISHED, ArticleStatus.ARCHIVED)

    @property
    def is_editable(self) -> bool:
        """The owning watcher may still change the content."""
        return self in (ArticleStatus.DRAFT, ArticleStatus.REJECTED)


class ContentType(str, Enum):
    STANDARD = 'standard'
    SUMMARY = 'summary'


class Section(str, Enum):
    ESSENTIAL = 'essential'
    GENERAL_FEED = 'general_feed'
    FOCUS = 'focus'
    CHRONICLE = 'chronicle'


class ArticleEvent(str, Enum):
    """Actions that can be applied to an article."""
    SUBMIT = 'submit'
    REVISE = 'revise'
    APPROVE = 'approve'
    REJECT = 'reject'
    PUBLISH = 'publish'
    UNPUBLISH = 'unpublish'
    ARCHIVE = 'archive'
    SCHEDULE = 'schedule'
    RESCHEDULE = 'reschedule'
    CANCEL_SCHEDULE = 'cancel_schedule'
    UPDATE_PLACEMENT = 'update_placement'


@dataclass(frozen=True)
class Actor:
    """Identity of whoever triggers an action, as supplied by the identity provider."""
    id: Any
    role: Optional[str]


@dataclass(frozen=True)
class TransitionRule:
    """One row of the workflow table."""
    event: ArticleEvent
    sources: FrozenSet[ArticleStatus]
    target: Optional[ArticleStatus]
    roles: FrozenSet[str]
    owner_only: bool = False

    @property
    def changes_status(self) -> bool:
        return self.target is not None


_OWNER_EDITABLE = frozenset({ArticleStatus.DRAFT, ArticleStatus.REJECTED})

TRANSITION_RULES: Dict[ArticleEvent, TransitionRule] = {
    ArticleEvent.SUBMIT: TransitionRule(
        ArticleEvent.SUBMIT, _OWNER_EDITABLE, ArticleStatus.PENDING,
        AUTHORING_ROLES, owner_only=True,
    ),
    ArticleEvent.REVISE: TransitionRule(
        ArticleEvent.REVISE, frozenset({ArticleStatus.REJECTED}), ArticleStatus.DRAFT,
        AUTHORING_ROLES, owner_only=True,
    ),
    ArticleEvent.APPROVE: TransitionRule(
        ArticleEvent.APPROVE, frozenset({ArticleStatus.PENDING}), ArticleStatus.APPROVED,
        MODERATION_ROLES,
    ),
    ArticleEvent.REJECT: TransitionRule(
        ArticleEvent.REJECT, frozenset({ArticleStatus.PENDING}), ArticleStatus.REJECTED,
        MODERATION_ROLES,
    ),
    ArticleEvent.PUBLISH: TransitionRule(
        ArticleEvent.PUBLISH, frozenset({ArticleStatus.APPROVED}), ArticleStatus.PUBLISHED,
        MODERATION_ROLES,
    ),
    ArticleEvent.UNPUBLISH: TransitionRule(
        ArticleEvent.UNPUBLISH, frozenset({ArticleStatus.PUBLISHED}), ArticleStatus.APPROVED,
        MODERATION_ROLES,
    ),
    ArticleEvent.ARCHIVE: TransitionRule(
        ArticleEvent.ARCHIVE, frozenset({ArticleStatus.PUBLISHED}), ArticleStatus.ARCHIVED,
        MODERATION_ROLES,
    ),
    ArticleEvent.SCHEDULE: TransitionRule(
        ArticleEvent.SCHEDULE, frozenset({ArticleStatus.APPROVED}), None,
        MODERATION_ROLES,
    ),
    ArticleEvent.RESCHEDULE: TransitionRule(
        ArticleEvent.RESCHEDULE, frozenset({ArticleStatus.APPROVED}), None,
        MODERATION_ROLES,
    ),
    ArticleEvent.CANCEL_SCHEDULE: TransitionRule(
        ArticleEvent.CANCEL_SCHEDULE, frozenset({ArticleStatus.APPROVED}), None,
        MODERATION_ROLES,
    ),
    ArticleEvent.UPDATE_PLACEMENT: TransitionRule(
        ArticleEvent.UPDATE_PLACEMENT, frozenset({ArticleStatus.PUBLISHED}), None,
        MODERATION_ROLES,
    ),
}


def _build_valid_transitions() -> Dict[ArticleStatus, Set[ArticleStatus]]:
    transitions: Dict[ArticleStatus, Set[ArticleStatus]] = {state: set() for state in ArticleStatus}
    for rule in TRANSITION_RULES.values():
        if rule.changes_status:
            for source in rule.sources:
                transitions[source].add(rule.target)
    return transitions


VALID_TRANSITIONS: Dict[ArticleStatus, Set[ArticleStatus]] = _build_valid_transitions()


@dataclass
class TransitionContext:
    """Context passed to transition hooks."""
    article: Any  # Article model instance, as saved
    event: ArticleEvent
    from_state: ArticleStatus
    to_state: ArticleStatus
    actor: Optional[Actor]
    timestamp: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)


HookFunction = Callable[[TransitionContext], None]


class ArticleStateMachine:
    """
    Validates lifecycle actions for a single article.

    The machine never writes; the lifecycle service persists the result
    with a compare-and-swap so the decision taken here still holds at
    write time.
    """

    # Class-level hooks (shared across all instances)
    _global_after_hooks: Dict[ArticleEvent, List[HookFunction]] = {}

    def __init__(self, article):
        self.article = article

    @property
    def current_state(self) -> ArticleStatus:
        return ArticleStatus.from_string(self.article.status)

    def rule_for(self, event: ArticleEvent | str) -> TransitionRule:
        if isinstance(event, str):
            event = ArticleEvent(event)
        return TRANSITION_RULES[event]

    def get_valid_transitions(self) -> Set[ArticleStatus]:
        """Get all statuses reachable in one step from the current one."""
        return VALID_TRANSITIONS.get(self.current_state, set()).copy()

    def is_owner(self, actor: Optional[Actor]) -> bool:
        return actor is not None and actor.id is not None and str(actor.id) == str(self.article.author_id)

    def authorize(self, event: ArticleEvent | str, actor: Optional[Actor]) -> TransitionRule:
        """Raise AuthorizationError unless the actor may trigger ``event``."""
        rule = self.rule_for(event)

        if actor is None or actor.role not in rule.roles:
            raise AuthorizationError(
                f"Role {getattr(actor, 'role', None)!r} cannot {rule.event.value} articles",
                details={'event': rule.event.value, 'allowed_roles': sorted(rule.roles)},
            )

        if rule.owner_only and not self.is_owner(actor):
            raise AuthorizationError(
                f"Only the author can {rule.event.value} this article",
                details={'event': rule.event.value},
            )

        return rule

    def check_transition(self, event: ArticleEvent | str) -> TransitionRule:
        """Raise IllegalTransitionError unless ``event`` is legal from the current status."""
        rule = self.rule_for(event)
        current = self.current_state

        if current not in rule.sources:
            raise IllegalTransitionError(
                f"Cannot {rule.event.value} an article that is {current.value}",
                details={
                    'event': rule.event.value,
                    'status': current.value,
                    'allowed_from': sorted(s.value for s in rule.sources),
                },
            )

        return rule

    def can_fire(self, event: ArticleEvent | str, actor: Optional[Actor]) -> bool:
        try:
            self.check(event, actor)
        except (AuthorizationError, IllegalTransitionError):
            return False
        return True

    def check(self, event: ArticleEvent | str, actor: Optional[Actor]) -> TransitionRule:
        """Authorize the actor, then validate the status precondition."""
        self.authorize(event, actor)
        return self.check_transition(event)

    def check_editable(self, actor: Optional[Actor]):
        """
        Content edits are a policy decision, not a UI one: refuse anyone but
        the author, and refuse the author once the article left draft/rejected.
        """
        if not self.is_owner(actor) or actor.role not in AUTHORING_ROLES:
            raise AuthorizationError("Only the author can edit this article")

        if not self.current_state.is_editable:
            raise AuthorizationError(
                f"Article is {self.current_state.value} and can no longer be edited",
                details={'status': self.current_state.value},
            )

    # Hook registration
    @classmethod
    def register_after_hook(cls, event: ArticleEvent, hook: HookFunction):
        """Register a global hook run after ``event`` is persisted."""
        cls._global_after_hooks.setdefault(event, []).append(hook)

    @classmethod
    def clear_hooks(cls):
        cls._global_after_hooks = {}

    def run_after_hooks(self, context: TransitionContext):
        """Hooks run after the write; their failures are logged, never raised."""
        for hook in self._global_after_hooks.get(context.event, []):
            try:
                hook(context)
            except Exception as e:
                logger.error(
                    f"Hook error after {context.event.value} on article {self.article.id}: {e}"
                )
