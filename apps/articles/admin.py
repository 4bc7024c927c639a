"""
Admin interface for Article management.

Status and placement are read-only here: workflow changes go through the
API so that roles, invariants and the transition log are enforced.
"""

from django.contrib import admin
from django.utils.html import format_html
from .models import Article, ArticleTransition


class ArticleTransitionInline(admin.TabularInline):
    model = ArticleTransition
    extra = 0
    can_delete = False
    fields = ['created_at', 'event', 'from_status', 'to_status', 'actor', 'metadata']
    readonly_fields = fields
    ordering = ['created_at']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Article)
class ArticleAdmin(admin.ModelAdmin):
    """
    Admin interface for Article model.
    """

    list_display = [
        'title_short',
        'author',
        'content_type',
        'status_badge',
        'section',
        'is_premium',
        'is_featured_home',
        'scheduled_publish_at',
        'published_at',
    ]

    list_filter = [
        'status',
        'content_type',
        'section',
        'is_premium',
        'is_featured_home',
        'is_archive',
        ('published_at', admin.DateFieldListFilter),
    ]

    search_fields = [
        'title',
        'excerpt',
        'author__username',
    ]

    readonly_fields = [
        'id',
        'status',
        'version',
        'rejection_reason',
        'validated_by',
        'validated_at',
        'section',
        'is_premium',
        'is_featured_home',
        'featured_home_expires_at',
        'is_archive',
        'scheduled_publish_at',
        'scheduled_placement',
        'published_at',
        'created_at',
        'updated_at',
    ]

    raw_id_fields = ['author']

    date_hierarchy = 'created_at'

    fieldsets = (
        ('Basic Information', {
            'fields': (
                'author',
                'title',
                'excerpt',
                'content_type',
            )
        }),
        ('Content', {
            'fields': (
                'content',
            ),
            'classes': ('collapse',),
        }),
        ('Workflow', {
            'fields': (
                'status',
                'version',
                'rejection_reason',
                'validated_by',
                'validated_at',
            )
        }),
        ('Placement', {
            'fields': (
                'section',
                'is_premium',
                'is_featured_home',
                'featured_home_expires_at',
                'is_archive',
            )
        }),
        ('Publication', {
            'fields': (
                'scheduled_publish_at',
                'scheduled_placement',
                'published_at',
                'views',
                'likes',
            )
        }),
        ('System Fields', {
            'fields': (
                'id',
                'created_at',
                'updated_at',
            ),
            'classes': ('collapse',),
        }),
    )

    inlines = [ArticleTransitionInline]

    ordering = ['-created_at']

    def title_short(self, obj):
        """Display shortened title."""
        max_length = 60
        if len(obj.title) > max_length:
            return obj.title[:max_length] + '...'
        return obj.title
    title_short.short_description = 'Title'
    title_short.admin_order_field = 'title'

    def status_badge(self, obj):
        colors = {
            'draft': 'gray',
            'pending': 'orange',
            'approved': 'blue',
            'rejected': 'red',
            'published': 'green',
            'archived': 'black',
        }
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 6px; '
            'border-radius: 3px; font-size: 11px; font-weight: bold;">{}</span>',
            colors.get(obj.status, 'gray'),
            obj.get_status_display().upper(),
        )
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'
