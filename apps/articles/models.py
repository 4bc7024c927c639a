"""
Article models for Newsdesk.
Editorial articles, their placement and their workflow history.
"""

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models
from apps.core.exceptions import ValidationError
from apps.core.models import BaseModel


class Article(BaseModel):
    """
    An editorial article, from draft to publication.

    ``status`` is the single source of truth for the lifecycle position.
    Writes go through ``ArticleLifecycleService`` which keeps the
    placement fields consistent with it.
    """

    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('pending', 'Pending Review'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
        ('published', 'Published'),
        ('archived', 'Archived'),
    ]

    CONTENT_TYPE_CHOICES = [
        ('standard', 'Article'),
        ('summary', 'News Summary'),
    ]

    SECTION_CHOICES = [
        ('essential', 'Essential'),
        ('general_feed', 'General Feed'),
        ('focus', 'Focus'),
        ('chronicle', 'Chronicle'),
    ]

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='articles',
        verbose_name='Author',
        help_text='Watcher who drafted the article'
    )

    # Editorial content
    title = models.CharField(
        max_length=500,
        verbose_name='Title',
        help_text='Article title'
    )

    excerpt = models.TextField(
        blank=True,
        verbose_name='Excerpt',
        help_text='Short standfirst shown in listings'
    )

    content = models.TextField(
        blank=True,
        verbose_name='Content',
        help_text='Article body (HTML)'
    )

    content_type = models.CharField(
        max_length=20,
        choices=CONTENT_TYPE_CHOICES,
        default='standard',
        verbose_name='Content Type',
        help_text='Fixed at creation; summaries are always premium and unsectioned'
    )

    # Workflow
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='draft',
        db_index=True,
        verbose_name='Status',
        help_text='Lifecycle position'
    )

    version = models.PositiveIntegerField(
        default=0,
        verbose_name='Version',
        help_text='Incremented on every workflow write (optimistic locking)'
    )

    rejection_reason = models.TextField(
        blank=True,
        verbose_name='Rejection Reason',
        help_text='Set only while the article is rejected'
    )

    validated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name='Validated By',
        help_text='Moderator who last approved or rejected the article'
    )

    validated_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name='Validated At',
        help_text='When the article was last approved or rejected'
    )

    # Placement & monetization
    section = models.CharField(
        max_length=20,
        choices=SECTION_CHOICES,
        null=True,
        blank=True,
        db_index=True,
        verbose_name='Section',
        help_text='Destination section (standard articles only)'
    )

    is_premium = models.BooleanField(
        default=False,
        verbose_name='Premium',
        help_text='Full content requires an active subscription'
    )

    is_featured_home = models.BooleanField(
        default=False,
        verbose_name='Featured on Home',
        help_text='Temporary homepage prominence'
    )

    featured_home_expires_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name='Featured Until',
        help_text='When the homepage feature lapses'
    )

    is_archive = models.BooleanField(
        default=False,
        verbose_name='In Archive View',
        help_text='Listed in the archive view (independent of status)'
    )

    # Scheduling
    scheduled_publish_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name='Scheduled Publish At',
        help_text='Pending deferred publication time'
    )

    scheduled_placement = models.JSONField(
        null=True,
        blank=True,
        verbose_name='Scheduled Placement',
        help_text='Placement captured when the deferred publication was requested'
    )

    published_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name='Published At',
        help_text='When the content became visible'
    )

    # Reader counters (maintained by the reader-facing services)
    views = models.PositiveIntegerField(
        default=0,
        verbose_name='Views'
    )

    likes = models.PositiveIntegerField(
        default=0,
        verbose_name='Likes'
    )

    class Meta:
        db_table = 'articles'
        verbose_name = 'Article'
        verbose_name_plural = 'Articles'
        ordering = ['-published_at', '-created_at']
        indexes = [
            models.Index(fields=['status', 'scheduled_publish_at'], name='article_status_sched_idx'),
            models.Index(fields=['status', 'section'], name='article_status_section_idx'),
        ]

    def __str__(self):
        return f"{self.title[:80]} ({self.status})"

    @property
    def is_summary(self):
        return self.content_type == 'summary'

    @property
    def is_scheduled(self):
        return self.scheduled_publish_at is not None

    @property
    def is_live(self):
        return self.status in ('published', 'archived')

    def clean(self):
        from .placement import validate_article_state

        try:
            validate_article_state(self)
        except ValidationError as exc:
            raise DjangoValidationError(exc.error_details or exc.message)


class ArticleTransition(BaseModel):
    """
    Append-only record of a workflow action on an article.
    """

    article = models.ForeignKey(
        Article,
        on_delete=models.CASCADE,
        related_name='transitions',
        verbose_name='Article'
    )

    event = models.CharField(
        max_length=30,
        db_index=True,
        verbose_name='Event',
        help_text='Workflow action (submit, approve, publish, ...)'
    )

    from_status = models.CharField(
        max_length=20,
        verbose_name='From Status'
    )

    to_status = models.CharField(
        max_length=20,
        verbose_name='To Status'
    )

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name='Actor',
        help_text='Who triggered the action (empty for the scheduler)'
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        verbose_name='Metadata'
    )

    class Meta:
        db_table = 'article_transitions'
        verbose_name = 'Article Transition'
        verbose_name_plural = 'Article Transitions'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.event}: {self.from_status} → {self.to_status}"
