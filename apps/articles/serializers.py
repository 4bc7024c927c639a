"""
Article serializers.

Read serializers apply the access decision: ``content`` is only emitted
when the viewer is granted full access, otherwise the server-side
preview and the call-to-action reason are returned instead.
"""

from rest_framework import serializers

from .access import ViewerContext, decide_access
from .models import Article, ArticleTransition
from .placement import PlacementOptions


# ============================================================================
# Read Serializers
# ============================================================================

class ArticleListSerializer(serializers.ModelSerializer):
    """Compact serializer for article lists."""

    author_name = serializers.CharField(source='author.get_username', read_only=True)
    is_scheduled = serializers.BooleanField(read_only=True)

    class Meta:
        model = Article
        fields = [
            'id',
            'title',
            'excerpt',
            'author_name',
            'content_type',
            'status',
            'section',
            'is_premium',
            'is_featured_home',
            'is_archive',
            'is_scheduled',
            'scheduled_publish_at',
            'published_at',
            'created_at',
            'views',
            'likes',
        ]


class ArticleDetailSerializer(serializers.ModelSerializer):
    """
    Full article view, gated by the access decision.

    Expects ``viewer`` (a ViewerContext) in the serializer context.
    """

    author_name = serializers.CharField(source='author.get_username', read_only=True)
    is_scheduled = serializers.BooleanField(read_only=True)
    content = serializers.SerializerMethodField()
    preview = serializers.SerializerMethodField()
    access = serializers.SerializerMethodField()

    class Meta:
        model = Article
        fields = [
            'id',
            'title',
            'excerpt',
            'content',
            'preview',
            'access',
            'author',
            'author_name',
            'content_type',
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
            'is_scheduled',
            'scheduled_publish_at',
            'published_at',
            'created_at',
            'updated_at',
            'views',
            'likes',
        ]

    def _access(self, obj):
        cache = self.context.setdefault('_access_results', {})
        if obj.pk not in cache:
            viewer = self.context.get('viewer') or ViewerContext.anonymous()
            cache[obj.pk] = decide_access(obj, viewer)
        return cache[obj.pk]

    def get_content(self, obj):
        result = self._access(obj)
        return obj.content if result.granted else None

    def get_preview(self, obj):
        return self._access(obj).preview_text

    def get_access(self, obj):
        result = self._access(obj)
        return {
            'decision': result.decision.value,
            'reason': result.reason.value if result.reason else None,
        }


class ArticleTransitionSerializer(serializers.ModelSerializer):

    actor_name = serializers.SerializerMethodField()

    class Meta:
        model = ArticleTransition
        fields = [
            'id',
            'event',
            'from_status',
            'to_status',
            'actor',
            'actor_name',
            'metadata',
            'created_at',
        ]

    def get_actor_name(self, obj):
        return obj.actor.get_username() if obj.actor else None


# ============================================================================
# Write Serializers
# ============================================================================

class ArticleCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=500)
    excerpt = serializers.CharField(required=False, allow_blank=True, default='')
    content = serializers.CharField(required=False, allow_blank=True, default='')
    content_type = serializers.ChoiceField(
        choices=Article.CONTENT_TYPE_CHOICES,
        default='standard',
    )


class ArticleEditSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=500, required=False)
    excerpt = serializers.CharField(required=False, allow_blank=True)
    content = serializers.CharField(required=False, allow_blank=True)


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=True, required=False, default='')


class PlacementOptionsSerializer(serializers.Serializer):
    """Placement and scheduling options for publish / update-placement."""

    section = serializers.ChoiceField(
        choices=Article.SECTION_CHOICES,
        required=False,
        allow_null=True,
        allow_blank=True,
    )
    is_essential = serializers.BooleanField(required=False, default=False)
    is_premium = serializers.BooleanField(required=False, default=False)
    is_featured_home = serializers.BooleanField(required=False, default=False)
    is_archive = serializers.BooleanField(required=False, default=False)
    is_scheduled = serializers.BooleanField(required=False, default=False)
    scheduled_publish_at = serializers.DateTimeField(required=False, allow_null=True)

    def to_options(self) -> PlacementOptions:
        return PlacementOptions.from_dict(self.validated_data)


class RescheduleSerializer(serializers.Serializer):
    scheduled_publish_at = serializers.DateTimeField()
