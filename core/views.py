"""
Core App Views - User Management API
"""

import logging
from rest_framework import viewsets, status, permissions, mixins
from rest_framework.decorators import action
from rest_framework.response import Response
from django.contrib.auth import get_user_model

from .serializers import UserSerializer, UserCreateSerializer
from .models import UserRole
from orders.events import notify_role_changed

logger = logging.getLogger(__name__)

User = get_user_model()


class IsAdminUser(permissions.BasePermission):
    """Permission for admin users only."""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role == UserRole.ADMIN


class UserViewSet(mixins.CreateModelMixin,
                  mixins.ListModelMixin,
                  viewsets.GenericViewSet):
    """
    ViewSet for User model.

    - Create: Public (registration)
    - List: Admin only
    - me / switch_role: the authenticated user
    """

    queryset = User.objects.all()
    serializer_class = UserSerializer

    def get_permissions(self):
        if self.action == 'create':
            return [permissions.AllowAny()]
        elif self.action == 'list':
            return [IsAdminUser()]
        return [permissions.IsAuthenticated()]

    def get_serializer_class(self):
        if self.action == 'create':
            return UserCreateSerializer
        return UserSerializer

    @action(detail=False, methods=['get', 'patch'])
    def me(self, request):
        """Get or update the current user's profile and settings."""
        if request.method == 'PATCH':
            serializer = UserSerializer(request.user, data=request.data, partial=True)
            serializer.is_valid(raise_exception=True)
            serializer.save()
            return Response(serializer.data)

        return Response(UserSerializer(request.user).data)

    @action(detail=False, methods=['post'])
    def switch_role(self, request):
        """Switch between dispatcher and loader mode."""
        user = request.user

        try:
            new_role = user.switch_role()
        except ValueError as e:
            return Response(
                {'error': str(e), 'code': 'role_not_switchable'},
                status=status.HTTP_400_BAD_REQUEST
            )

        logger.info(f"[ACCOUNTS] User {str(user.pk)[:8]} switched role to {new_role}")
        notify_role_changed(user)

        return Response(UserSerializer(user).data)
