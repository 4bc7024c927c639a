"""
Scheduled publication timer.

A moderator may ask for an approved article to go live later. The intent
(time + resolved placement) is stored on the article; the beat-driven
sweep in ``tasks.publish_due_articles`` fires it once due.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from apps.core.exceptions import ErrorCode, IllegalTransitionError, ValidationError
from .placement import Placement


def validate_schedule_time(scheduled_at: Optional[datetime], now: datetime) -> datetime:
    """A deferred publish needs an aware timestamp strictly in the future."""
    if scheduled_at is None:
        raise ValidationError(
            "scheduled_publish_at is required when is_scheduled is set",
            code=ErrorCode.MISSING_FIELD,
            field='scheduled_publish_at',
        )

    if scheduled_at.tzinfo is None:
        raise ValidationError(
            "scheduled_publish_at must include a timezone",
            code=ErrorCode.INVALID_VALUE,
            field='scheduled_publish_at',
        )

    if scheduled_at <= now:
        raise ValidationError(
            "scheduled_publish_at must be in the future",
            code=ErrorCode.INVALID_VALUE,
            field='scheduled_publish_at',
            details={'scheduled_publish_at': scheduled_at.isoformat(), 'now': now.isoformat()},
        )

    return scheduled_at


def schedule_fields(placement: Placement, scheduled_at: datetime) -> Dict[str, Any]:
    return {
        'scheduled_publish_at': scheduled_at,
        'scheduled_placement': placement.to_json(),
    }


def cleared_schedule_fields() -> Dict[str, Any]:
    return {
        'scheduled_publish_at': None,
        'scheduled_placement': None,
    }


def has_pending_schedule(article) -> bool:
    return article.scheduled_publish_at is not None


def is_due(article, now: datetime) -> bool:
    return has_pending_schedule(article) and now >= article.scheduled_publish_at


def captured_placement(article) -> Placement:
    return Placement.from_json(article.scheduled_placement or {})


def ensure_due(article, now: datetime):
    """
    Raises:
        IllegalTransitionError: nothing is scheduled, or the time has not come yet.
    """
    if not has_pending_schedule(article):
        raise IllegalTransitionError(
            "Article has no scheduled publication",
            details={'article_id': str(article.id)},
        )

    if not is_due(article, now):
        raise IllegalTransitionError(
            "Scheduled publication is not due yet",
            code=ErrorCode.SCHEDULE_NOT_DUE,
            details={
                'scheduled_publish_at': article.scheduled_publish_at.isoformat(),
                'now': now.isoformat(),
            },
        )
