"""
Placement & monetization policy.

Resolves where a published article appears (section, homepage feature,
archive view) and whether it sits behind the paywall. Summaries are
always premium and never belong to a section.

Every write of an article goes through ``validate_article_state`` so that
the cross-field invariants hold no matter which action produced the write.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

from django.conf import settings
from django.utils.dateparse import parse_datetime

from apps.core.exceptions import ErrorCode, ValidationError
from .state_machine import ArticleStatus, ContentType, Section

logger = logging.getLogger(__name__)

# Sections sold as subscriber content. Advisory: a free article may still
# be placed there.
PREMIUM_SECTIONS = frozenset({Section.FOCUS, Section.CHRONICLE})


@dataclass(frozen=True)
class PlacementOptions:
    """Placement request carried by publish and update-placement actions."""
    section: Optional[Section] = None
    is_essential: bool = False
    is_premium: bool = False
    is_featured_home: bool = False
    is_archive: bool = False
    is_scheduled: bool = False
    scheduled_publish_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PlacementOptions':
        section = data.get('section') or None
        if section is not None and not isinstance(section, Section):
            try:
                section = Section(section)
            except ValueError:
                raise ValidationError(
                    f"Unknown section: {section}",
                    code=ErrorCode.INVALID_VALUE,
                    field='section',
                )

        scheduled_at = data.get('scheduled_publish_at') or None
        if isinstance(scheduled_at, str):
            try:
                parsed = parse_datetime(scheduled_at)
            except ValueError:
                parsed = None
            if parsed is None:
                raise ValidationError(
                    f"Invalid scheduled time: {scheduled_at}",
                    code=ErrorCode.INVALID_VALUE,
                    field='scheduled_publish_at',
                )
            scheduled_at = parsed

        return cls(
            section=section,
            is_essential=bool(data.get('is_essential', False)),
            is_premium=bool(data.get('is_premium', False)),
            is_featured_home=bool(data.get('is_featured_home', False)),
            is_archive=bool(data.get('is_archive', False)),
            is_scheduled=bool(data.get('is_scheduled', False)),
            scheduled_publish_at=scheduled_at,
        )


@dataclass(frozen=True)
class Placement:
    """A resolved, valid placement for a given content type."""
    section: Optional[Section]
    is_premium: bool
    is_featured_home: bool
    is_archive: bool

    def as_fields(self) -> Dict[str, Any]:
        return {
            'section': self.section.value if self.section else None,
            'is_premium': self.is_premium,
            'is_featured_home': self.is_featured_home,
            'is_archive': self.is_archive,
        }

    def to_json(self) -> Dict[str, Any]:
        return self.as_fields()

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> 'Placement':
        section = data.get('section')
        return cls(
            section=Section(section) if section else None,
            is_premium=bool(data.get('is_premium', False)),
            is_featured_home=bool(data.get('is_featured_home', False)),
            is_archive=bool(data.get('is_archive', False)),
        )


def resolve_placement(content_type: ContentType | str, options: PlacementOptions) -> Placement:
    """
    Resolve placement options against the article's content type.

    Raises:
        ValidationError: a standard article has no destination section, or
            the essential flag contradicts an explicit section.
    """
    content_type = ContentType(content_type)

    if content_type is ContentType.SUMMARY:
        if options.section or options.is_essential or not options.is_premium:
            logger.debug("Ignoring section/premium options for summary article")
        return Placement(
            section=None,
            is_premium=True,
            is_featured_home=options.is_featured_home,
            is_archive=options.is_archive,
        )

    section = options.section
    if options.is_essential:
        if section is not None and section is not Section.ESSENTIAL:
            raise ValidationError(
                "Choose exactly one destination section",
                code=ErrorCode.INVALID_VALUE,
                field='section',
                details={'section': section.value, 'is_essential': True},
            )
        section = Section.ESSENTIAL

    if section is None:
        raise ValidationError(
            "A section is required to publish a standard article",
            code=ErrorCode.MISSING_FIELD,
            field='section',
        )

    if section in PREMIUM_SECTIONS and not options.is_premium:
        logger.info(f"Free article placed in premium section {section.value}")

    return Placement(
        section=section,
        is_premium=options.is_premium,
        is_featured_home=options.is_featured_home,
        is_archive=options.is_archive,
    )


def featured_home_fields(article, placement: Placement, now: datetime) -> Dict[str, Any]:
    """
    Homepage features expire after FEATURED_HOME_TTL_HOURS. Turning the flag
    on starts the window; keeping it on leaves a running window alone. A
    window that lapsed while the article was off the site starts over.
    """
    if not placement.is_featured_home:
        return {'featured_home_expires_at': None}

    running = article.featured_home_expires_at
    if article.is_featured_home and running and running > now:
        return {'featured_home_expires_at': running}

    ttl = timedelta(hours=getattr(settings, 'FEATURED_HOME_TTL_HOURS', 24))
    return {'featured_home_expires_at': now + ttl}


def validate_article_state(article):
    """
    Check every cross-field invariant of an article.

    Raises:
        ValidationError: with the list of violated rules in ``details``.
    """
    errors = {}
    status = ArticleStatus.from_string(article.status)
    content_type = ContentType(article.content_type)

    if content_type is ContentType.SUMMARY:
        if article.section:
            errors['section'] = "Summaries cannot be placed in a section"
        if not article.is_premium:
            errors['is_premium'] = "Summaries are always premium"

    if article.section:
        try:
            Section(article.section)
        except ValueError:
            errors['section'] = f"Unknown section: {article.section}"

    reason = (article.rejection_reason or '').strip()
    if status is ArticleStatus.REJECTED and not reason:
        errors['rejection_reason'] = "A rejected article needs a rejection reason"
    if status is not ArticleStatus.REJECTED and article.rejection_reason:
        errors['rejection_reason'] = "Only rejected articles carry a rejection reason"

    if status.is_live and article.published_at is None:
        errors['published_at'] = "Live articles must have a publication date"
    if not status.is_live and article.published_at is not None:
        errors['published_at'] = "Only live articles have a publication date"

    if article.scheduled_publish_at is not None and status is not ArticleStatus.APPROVED:
        errors['scheduled_publish_at'] = "Only approved articles can be scheduled"
    if (article.scheduled_publish_at is None) != (not article.scheduled_placement):
        errors['scheduled_placement'] = "Schedule time and captured placement go together"

    if errors:
        raise ValidationError(
            "Article state is inconsistent",
            details=errors,
        )
