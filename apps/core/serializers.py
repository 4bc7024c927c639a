"""
Serializers for authentication and user profiles.
"""

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import UserProfile
from .permissions import get_user_role

User = get_user_model()


class UserProfileSerializer(serializers.ModelSerializer):
    """Serializer for UserProfile model."""

    has_active_subscription = serializers.SerializerMethodField()

    class Meta:
        model = UserProfile
        fields = [
            'id',
            'role',
            'subscription_expires_at',
            'has_active_subscription',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_has_active_subscription(self, obj):
        return obj.has_active_subscription()


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User with nested profile."""

    profile = UserProfileSerializer(read_only=True)

    class Meta:
        model = User
        fields = [
            'id',
            'username',
            'email',
            'first_name',
            'last_name',
            'is_active',
            'date_joined',
            'last_login',
            'profile',
        ]
        read_only_fields = ['id', 'date_joined', 'last_login', 'is_active']


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Custom token serializer that includes user info in response.
    """

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)

        token['username'] = user.get_username()
        token['role'] = get_user_role(user)

        return token

    def validate(self, attrs):
        data = super().validate(attrs)
        data['user'] = UserSerializer(self.user).data
        return data
