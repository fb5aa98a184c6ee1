"""
Orders App Views - Order board API for dispatchers and loaders
"""

import logging

from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.models import UserRole
from .exceptions import (
    InvalidTransition, OrderConflict, OrderError, OrderForbidden,
    OrderNotFound, OrderValidationError,
)
from .filters import OrderFilter
from .models import Order
from .serializers import OrderCreateSerializer, OrderEventSerializer, OrderSerializer
from .services import AssignmentCoordinator, OrderQueryService, OrderStore

logger = logging.getLogger(__name__)


ERROR_STATUS_CODES = {
    OrderValidationError: status.HTTP_400_BAD_REQUEST,
    InvalidTransition: status.HTTP_400_BAD_REQUEST,
    OrderForbidden: status.HTTP_403_FORBIDDEN,
    OrderNotFound: status.HTTP_404_NOT_FOUND,
    OrderConflict: status.HTTP_409_CONFLICT,
}


def order_error_response(error: OrderError) -> Response:
    """Map a domain error to an API response."""
    body = {
        'error': error.message,
        'code': error.code,
    }
    if isinstance(error, OrderValidationError):
        body['fields'] = error.errors
    if isinstance(error, (OrderConflict, InvalidTransition)) and error.current_status:
        body['current_status'] = error.current_status

    return Response(
        body,
        status=ERROR_STATUS_CODES.get(type(error), status.HTTP_400_BAD_REQUEST)
    )


class IsLoader(permissions.BasePermission):
    """Allow only authenticated loaders."""

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.role == UserRole.LOADER
        )


class OrderViewSet(viewsets.GenericViewSet):
    """
    Order lifecycle endpoints.

    POST /api/orders/                  create (dispatcher)
    GET  /api/orders/{id}/             snapshot
    POST /api/orders/{id}/claim/       AVAILABLE -> TAKEN (loader)
    POST /api/orders/{id}/complete/    TAKEN -> COMPLETED (assignee)
    POST /api/orders/{id}/cancel/      AVAILABLE -> CANCELLED (creator)
    GET  /api/orders/{id}/events/      event log
    GET  /api/orders/available/        order board
    GET  /api/orders/mine/             claimed by me
    GET  /api/orders/created/          created by me (filterable)
    GET  /api/orders/history/          finished orders I took part in

    Role checks for transitions are done by the coordinator so that the
    API and the service layer report the same errors.
    """

    queryset = Order.objects.all()
    serializer_class = OrderSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_class = OrderFilter

    def get_permissions(self):
        if self.action in ('available', 'mine'):
            return [IsLoader()]
        return super().get_permissions()

    # ============================================
    # CREATE / READ
    # ============================================

    def create(self, request):
        """Create a new order."""
        serializer = OrderCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {
                    'error': 'Invalid order',
                    'code': OrderValidationError.code,
                    'fields': serializer.errors,
                },
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            order = AssignmentCoordinator.create(request.user, **serializer.to_store_kwargs())
        except OrderError as e:
            return order_error_response(e)

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        """Get one order."""
        try:
            order = OrderStore.get(pk)
        except OrderError as e:
            return order_error_response(e)

        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=['get'])
    def events(self, request, pk=None):
        """Lifecycle events of an order, oldest first."""
        try:
            order = OrderStore.get(pk)
        except OrderError as e:
            return order_error_response(e)

        events = OrderQueryService.events(order.pk)
        return Response(OrderEventSerializer(events, many=True).data)

    # ============================================
    # TRANSITIONS
    # ============================================

    @action(detail=True, methods=['post'])
    def claim(self, request, pk=None):
        """Take an available order (race condition safe)."""
        return self._transition(AssignmentCoordinator.claim, pk, request.user)

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        """Finish an order taken by the current loader."""
        return self._transition(AssignmentCoordinator.complete, pk, request.user)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        """Cancel an order before anyone took it."""
        return self._transition(AssignmentCoordinator.cancel, pk, request.user)

    def _transition(self, operation, order_id, actor):
        try:
            order = operation(order_id, actor)
        except OrderError as e:
            logger.info(
                f"[API] {operation.__name__} on order {order_id} by {str(actor.pk)[:8]} "
                f"rejected: {e.code}"
            )
            return order_error_response(e)

        return Response(OrderSerializer(order).data)

    # ============================================
    # QUERY VIEWS
    # ============================================

    @action(detail=False, methods=['get'])
    def available(self, request):
        """Orders a loader can take, soonest first."""
        orders = OrderQueryService.available()
        return Response(OrderSerializer(orders, many=True).data)

    @action(detail=False, methods=['get'])
    def mine(self, request):
        """Orders claimed by the current loader."""
        orders = OrderQueryService.mine(request.user.pk)
        return Response(OrderSerializer(orders, many=True).data)

    @action(detail=False, methods=['get'])
    def created(self, request):
        """Orders created by the current dispatcher."""
        orders = self.filter_queryset(OrderQueryService.created_by_me(request.user.pk))
        return Response(OrderSerializer(orders, many=True).data)

    @action(detail=False, methods=['get'])
    def history(self, request):
        """Completed and cancelled orders the current user took part in."""
        orders = OrderQueryService.history(request.user.pk)
        return Response(OrderSerializer(orders, many=True).data)
