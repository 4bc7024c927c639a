"""
Article workflow API views.

Readers list and read live articles (premium content gated server-side);
watchers draft, edit and submit; moderators approve, reject, publish,
schedule and place. Every action delegates to ArticleLifecycleService,
which enforces roles and states again regardless of the HTTP permissions.
"""

from django.db.models import Q
from django_filters import rest_framework as filters
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from apps.core.exceptions import ErrorCode, ValidationError
from apps.core.permissions import (
    MODERATION_ROLES,
    IsAuthorOrModerator,
    IsModerator,
    IsWatcher,
    get_user_role,
)

from .models import Article
from .providers import viewer_context_for
from .serializers import (
    ArticleCreateSerializer,
    ArticleDetailSerializer,
    ArticleEditSerializer,
    ArticleListSerializer,
    ArticleTransitionSerializer,
    PlacementOptionsSerializer,
    RejectSerializer,
    RescheduleSerializer,
)
from .services import ArticleLifecycleService
from .state_machine import ArticleStatus

LIVE_STATUSES = (ArticleStatus.PUBLISHED.value, ArticleStatus.ARCHIVED.value)

MODERATION_ACTIONS = {
    'approve', 'reject', 'publish', 'unpublish', 'archive',
    'placement', 'reschedule', 'cancel_schedule',
}
AUTHORING_ACTIONS = {'create', 'partial_update', 'submit', 'revise'}


# =============================================================================
# Filters
# =============================================================================

class ArticleFilter(filters.FilterSet):
    """Filters for article lists (moderation queue, section pages)."""
    status = filters.CharFilter(field_name='status', lookup_expr='iexact')
    content_type = filters.CharFilter(field_name='content_type')
    section = filters.CharFilter(field_name='section')
    is_premium = filters.BooleanFilter(field_name='is_premium')
    is_featured_home = filters.BooleanFilter(field_name='is_featured_home')
    is_archive = filters.BooleanFilter(field_name='is_archive')
    scheduled = filters.BooleanFilter(field_name='scheduled_publish_at', lookup_expr='isnull', exclude=True)
    published_after = filters.DateTimeFilter(field_name='published_at', lookup_expr='gte')
    published_before = filters.DateTimeFilter(field_name='published_at', lookup_expr='lte')

    class Meta:
        model = Article
        fields = ['status', 'content_type', 'section']


class ArticleViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """
    Article workflow API.

    GET   /api/articles/                         - List visible articles (?status=, ?section=, ?scheduled=)
    GET   /api/articles/{id}/                    - Article detail, access decision applied
    POST  /api/articles/                         - Draft a new article (watcher)
    PATCH /api/articles/{id}/                    - Edit a draft/rejected article (author)
    POST  /api/articles/{id}/submit/             - Submit for review (author)
    POST  /api/articles/{id}/revise/             - Rejected back to draft (author)
    POST  /api/articles/{id}/approve/            - Approve (moderator)
    POST  /api/articles/{id}/reject/             - Reject with reason (moderator)
    POST  /api/articles/{id}/publish/            - Publish now or schedule (moderator)
    POST  /api/articles/{id}/unpublish/          - Back to approved (moderator)
    POST  /api/articles/{id}/archive/            - Archive a published article (moderator)
    POST  /api/articles/{id}/placement/          - Re-place a published article (moderator)
    POST  /api/articles/{id}/reschedule/         - Move a scheduled publication (moderator)
    POST  /api/articles/{id}/cancel-schedule/    - Drop a scheduled publication (moderator)
    GET   /api/articles/{id}/transitions/        - Workflow history (author/moderator)
    """

    http_method_names = ['get', 'post', 'patch', 'head', 'options']
    service_class = ArticleLifecycleService
    filter_backends = [filters.DjangoFilterBackend, OrderingFilter]
    filterset_class = ArticleFilter
    ordering_fields = ['published_at', 'created_at', 'scheduled_publish_at', 'views', 'likes']
    ordering = ['-published_at', '-created_at']

    def get_permissions(self):
        if self.action in ('list', 'retrieve'):
            return [AllowAny()]
        if self.action in AUTHORING_ACTIONS:
            return [IsAuthenticated(), IsWatcher()]
        if self.action in MODERATION_ACTIONS:
            return [IsAuthenticated(), IsModerator()]
        return [IsAuthenticated(), IsAuthorOrModerator()]

    def get_serializer_class(self):
        if self.action == 'list':
            return ArticleListSerializer
        return ArticleDetailSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['viewer'] = viewer_context_for(self.request.user)
        return context

    def get_queryset(self):
        queryset = Article.objects.select_related('author')
        user = self.request.user
        role = get_user_role(user)

        if role not in MODERATION_ROLES:
            visible = Q(status__in=LIVE_STATUSES)
            if role is not None:
                visible |= Q(author=user)
            queryset = queryset.filter(visible)

        return queryset

    @property
    def service(self):
        return self.service_class()

    def _respond(self, article, status_code=status.HTTP_200_OK):
        serializer = ArticleDetailSerializer(article, context=self.get_serializer_context())
        return Response(serializer.data, status=status_code)

    def _validated(self, serializer_class, partial=False):
        serializer = serializer_class(data=self.request.data, partial=partial)
        if not serializer.is_valid():
            raise ValidationError(
                "Invalid request body",
                code=ErrorCode.VALIDATION_ERROR,
                details=serializer.errors,
            )
        return serializer

    # ------------------------------------------------------------------
    # Watcher endpoints
    # ------------------------------------------------------------------

    def create(self, request, *args, **kwargs):
        data = self._validated(ArticleCreateSerializer).validated_data
        article = self.service.create_draft(request.user.pk, **data)
        return self._respond(article, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        data = self._validated(ArticleEditSerializer, partial=True).validated_data
        article = self.service.edit_content(kwargs['pk'], request.user.pk, **data)
        return self._respond(article)

    @action(detail=True, methods=['post'])
    def submit(self, request, pk=None):
        return self._respond(self.service.submit_for_review(pk, request.user.pk))

    @action(detail=True, methods=['post'])
    def revise(self, request, pk=None):
        return self._respond(self.service.revise(pk, request.user.pk))

    # ------------------------------------------------------------------
    # Moderator endpoints
    # ------------------------------------------------------------------

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        return self._respond(self.service.approve(pk, request.user.pk))

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        reason = self._validated(RejectSerializer).validated_data['reason']
        return self._respond(self.service.reject(pk, request.user.pk, reason))

    @action(detail=True, methods=['post'])
    def publish(self, request, pk=None):
        options = self._validated(PlacementOptionsSerializer).to_options()
        return self._respond(self.service.publish(pk, request.user.pk, options))

    @action(detail=True, methods=['post'])
    def unpublish(self, request, pk=None):
        return self._respond(self.service.unpublish(pk, request.user.pk))

    @action(detail=True, methods=['post'])
    def archive(self, request, pk=None):
        return self._respond(self.service.archive(pk, request.user.pk))

    @action(detail=True, methods=['post'])
    def placement(self, request, pk=None):
        options = self._validated(PlacementOptionsSerializer).to_options()
        return self._respond(self.service.update_placement(pk, request.user.pk, options))

    @action(detail=True, methods=['post'])
    def reschedule(self, request, pk=None):
        scheduled_at = self._validated(RescheduleSerializer).validated_data['scheduled_publish_at']
        return self._respond(self.service.reschedule(pk, request.user.pk, scheduled_at))

    @action(detail=True, methods=['post'], url_path='cancel-schedule')
    def cancel_schedule(self, request, pk=None):
        return self._respond(self.service.cancel_schedule(pk, request.user.pk))

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @action(detail=True, methods=['get'])
    def transitions(self, request, pk=None):
        article = self.get_object()
        serializer = ArticleTransitionSerializer(
            article.transitions.select_related('actor').order_by('created_at'),
            many=True,
        )
        return Response(serializer.data)
