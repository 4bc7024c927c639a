"""
Role-Based Permissions for Newsdesk.

Maps UserProfile.role to DRF permission classes.

Roles:
- reader: Reads published articles; premium content requires a subscription
- watcher: Drafts and submits articles
- moderator: Approves, rejects, publishes and places articles
- admin: Everything a moderator can do, plus drafting

Usage:
    from apps.core.permissions import IsModerator, IsWatcher

    class MyView(APIView):
        permission_classes = [IsAuthenticated, IsModerator]

The DRF classes only gate the HTTP surface. The lifecycle engine checks
roles again for every transition, so a direct call cannot bypass them.
"""

from rest_framework.permissions import BasePermission
import logging

logger = logging.getLogger(__name__)


ROLE_READER = 'reader'
ROLE_WATCHER = 'watcher'
ROLE_MODERATOR = 'moderator'
ROLE_ADMIN = 'admin'

STAFF_ROLES = frozenset({ROLE_WATCHER, ROLE_MODERATOR, ROLE_ADMIN})
MODERATION_ROLES = frozenset({ROLE_MODERATOR, ROLE_ADMIN})
AUTHORING_ROLES = frozenset({ROLE_WATCHER, ROLE_ADMIN})


def get_user_role(user):
    """
    Helper function to get user's role.

    Returns: 'reader', 'watcher', 'moderator', 'admin', or None when
    the user is anonymous.
    """
    if not user or not user.is_authenticated:
        return None

    if user.is_superuser:
        return ROLE_ADMIN

    from apps.core.models import UserProfile
    try:
        return UserProfile.objects.only('role').get(user=user).role
    except UserProfile.DoesNotExist:
        logger.debug("User %s has no profile, treating as reader", user.pk)
        return ROLE_READER


class RolePermission(BasePermission):
    """Base class for role-based permissions."""

    # Override in subclasses
    allowed_roles = frozenset()

    def has_permission(self, request, view):
        """Check if user has required role."""
        return get_user_role(request.user) in self.allowed_roles


class IsWatcher(RolePermission):
    """Allow users that can author articles (watchers and admins)."""
    allowed_roles = AUTHORING_ROLES
    message = "Watcher access required."


class IsModerator(RolePermission):
    """
    Allow moderators and admins.

    Moderators can:
    - Approve or reject pending articles
    - Publish, schedule, unpublish and archive
    - Change placement of published articles
    """
    allowed_roles = MODERATION_ROLES
    message = "Moderator access required."


class IsAuthorOrModerator(BasePermission):
    """
    Allow access if the user wrote the article or moderates.

    Useful for article detail endpoints that expose unpublished drafts.
    """
    message = "You must be the author or a moderator."

    def has_object_permission(self, request, view, obj):
        role = get_user_role(request.user)
        if role in MODERATION_ROLES:
            return True
        return role is not None and obj.author_id == request.user.pk
