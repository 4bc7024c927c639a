"""
Read-time access decision.

Decides whether a viewer gets the full article or only a preview with a
call to action. The decision is a pure function of the article's premium
flag and the viewer context; it is recomputed on every read because a
subscription can start or lapse between two requests.

The preview is cut here, on the server, so a denied viewer never receives
the rest of the content in the response payload.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from django.conf import settings
from django.utils.html import strip_tags
from django.utils.text import Truncator

from apps.core.permissions import STAFF_ROLES


DEFAULT_PREVIEW_CHARS = 500


class AccessDecision(str, Enum):
    FULL_CONTENT = 'full_content'
    DENIED = 'denied'


class DenialReason(str, Enum):
    """Which call to action the client should render."""
    LOGIN_REQUIRED = 'login_required'
    SUBSCRIPTION_REQUIRED = 'subscription_required'


@dataclass(frozen=True)
class ViewerContext:
    is_authenticated: bool
    role: Optional[str] = None
    has_active_subscription: bool = False

    @classmethod
    def anonymous(cls) -> 'ViewerContext':
        return cls(is_authenticated=False)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


@dataclass(frozen=True)
class AccessResult:
    decision: AccessDecision
    preview_text: Optional[str] = None
    reason: Optional[DenialReason] = None

    @property
    def granted(self) -> bool:
        return self.decision is AccessDecision.FULL_CONTENT


def evaluate_access(is_premium: bool, viewer: ViewerContext) -> Tuple[AccessDecision, Optional[DenialReason]]:
    """Apply the paywall rules in order."""
    if not is_premium:
        return AccessDecision.FULL_CONTENT, None

    if viewer.is_staff:
        return AccessDecision.FULL_CONTENT, None

    if not viewer.is_authenticated:
        return AccessDecision.DENIED, DenialReason.LOGIN_REQUIRED

    if viewer.has_active_subscription:
        return AccessDecision.FULL_CONTENT, None

    return AccessDecision.DENIED, DenialReason.SUBSCRIPTION_REQUIRED


def render_preview(content: str, limit: Optional[int] = None) -> str:
    """Plain-text prefix of the article body, at most ``limit`` characters."""
    if limit is None:
        limit = getattr(settings, 'ARTICLE_PREVIEW_CHARS', DEFAULT_PREVIEW_CHARS)
    text = ' '.join(strip_tags(content or '').split())
    return Truncator(text).chars(limit)


def decide_access(article, viewer: ViewerContext, preview_chars: Optional[int] = None) -> AccessResult:
    decision, reason = evaluate_access(article.is_premium, viewer)

    if decision is AccessDecision.FULL_CONTENT:
        return AccessResult(decision=decision)

    return AccessResult(
        decision=decision,
        preview_text=render_preview(article.content, preview_chars),
        reason=reason,
    )
