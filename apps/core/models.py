"""
Core models for Newsdesk.
Base classes and shared functionality.
"""

import uuid
from django.conf import settings
from django.db import models
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils import timezone


class BaseModel(models.Model):
    """
    Abstract base model with common fields for all Newsdesk models.
    Provides UUID primary key and timestamp tracking.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        verbose_name='ID',
        help_text='Unique identifier (UUID)'
    )

    created_at = models.DateTimeField(
        default=timezone.now,
        editable=False,
        verbose_name='Created At',
        help_text='Timestamp when record was created'
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name='Updated At',
        help_text='Timestamp when record was last updated'
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.__class__.__name__} ({self.id})"


class UserProfile(BaseModel):
    """
    Newsroom profile for a Django user.
    Carries the editorial role and the subscription window.
    """

    ROLE_READER = 'reader'
    ROLE_WATCHER = 'watcher'
    ROLE_MODERATOR = 'moderator'
    ROLE_ADMIN = 'admin'

    ROLE_CHOICES = [
        (ROLE_READER, 'Reader'),
        (ROLE_WATCHER, 'Watcher'),
        (ROLE_MODERATOR, 'Moderator'),
        (ROLE_ADMIN, 'Administrator'),
    ]

    STAFF_ROLES = (ROLE_WATCHER, ROLE_MODERATOR, ROLE_ADMIN)

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='profile',
        verbose_name='User',
        help_text='The associated Django user account'
    )

    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=ROLE_READER,
        db_index=True,
        verbose_name='Role',
        help_text='Editorial role determining permissions'
    )

    subscription_expires_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name='Subscription Expires At',
        help_text='End of the paid subscription window, maintained by the billing service'
    )

    class Meta:
        db_table = 'user_profiles'
        verbose_name = 'User Profile'
        verbose_name_plural = 'User Profiles'

    def __str__(self):
        return f"{self.user.get_username()} ({self.role})"

    @property
    def is_staff_role(self):
        """Watchers, moderators and admins bypass the paywall."""
        return self.role in self.STAFF_ROLES

    @property
    def can_moderate(self):
        return self.role in (self.ROLE_MODERATOR, self.ROLE_ADMIN)

    def has_active_subscription(self, now=None):
        if self.subscription_expires_at is None:
            return False
        return self.subscription_expires_at > (now or timezone.now())


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_profile(sender, instance, created, **kwargs):
    """Auto-create UserProfile when a new User is created."""
    if created:
        role = UserProfile.ROLE_ADMIN if instance.is_superuser else UserProfile.ROLE_READER
        UserProfile.objects.create(user=instance, role=role)
