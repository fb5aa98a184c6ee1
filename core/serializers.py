"""
Core App Serializers - User Management
"""

from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password

from .models import SWITCHABLE_ROLES, UserRole

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model (read operations and settings updates)."""

    class Meta:
        model = User
        fields = [
            'id', 'phone_number', 'full_name', 'role',
            'notifications_enabled', 'sound_enabled', 'vibration_enabled',
            'is_active', 'date_joined'
        ]
        read_only_fields = ['id', 'phone_number', 'role', 'is_active', 'date_joined']


class UserCreateSerializer(serializers.ModelSerializer):
    """Serializer for user registration."""

    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password]
    )
    role = serializers.ChoiceField(
        choices=[(role.value, role.label) for role in SWITCHABLE_ROLES],
        default=UserRole.LOADER
    )

    class Meta:
        model = User
        fields = ['id', 'phone_number', 'password', 'full_name', 'role']
        read_only_fields = ['id']

    def create(self, validated_data):
        user = User.objects.create_user(
            phone_number=validated_data['phone_number'],
            password=validated_data['password'],
            full_name=validated_data.get('full_name', ''),
            role=validated_data.get('role', UserRole.LOADER)
        )
        return user
