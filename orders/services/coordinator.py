"""
ORDERS App - Assignment Coordinator

Translates dispatcher and loader intents into store transitions.

State machine:
    AVAILABLE --claim(loader)-------> TAKEN       (sets assignee)
    TAKEN     --complete(assignee)--> COMPLETED
    AVAILABLE --cancel(creator)-----> CANCELLED

Checks run in a fixed order: order exists, actor role, edge exists,
actor owns the order, then the store's compare-and-swap.
"""

import logging

from django.utils import timezone

from core.models import UserRole
from orders.exceptions import InvalidTransition, OrderConflict, OrderForbidden
from orders.models import Order, OrderStatus
from orders.services.store import OrderStore

logger = logging.getLogger(__name__)


class AssignmentCoordinator:
    """Business rules on top of OrderStore. Stateless; safe to share."""

    @staticmethod
    def create(dispatcher, **fields) -> Order:
        """
        Create an order as a dispatcher.

        Raises:
            OrderForbidden: If the actor is not a dispatcher
            OrderValidationError: If the fields are invalid
        """
        AssignmentCoordinator._require_role(dispatcher, UserRole.DISPATCHER, 'create orders')
        return OrderStore.create(created_by=dispatcher, **fields)

    @staticmethod
    def claim(order_id, loader) -> Order:
        """
        Claim an AVAILABLE order (race condition safe).

        Of any number of concurrent claims on the same order exactly one
        succeeds; the others get OrderConflict.

        Raises:
            OrderNotFound: Unknown order
            OrderForbidden: Actor is not a loader
            OrderConflict: Order already taken, or the race was lost
            InvalidTransition: Order is COMPLETED or CANCELLED
        """
        order = OrderStore.get(order_id)
        AssignmentCoordinator._require_role(loader, UserRole.LOADER, 'claim orders')

        if order.status == OrderStatus.TAKEN:
            raise OrderConflict(order.pk, OrderStatus.AVAILABLE, order.status)
        if not order.is_available:
            raise InvalidTransition(order.pk, order.status, 'claim')

        order = OrderStore.apply_transition(
            order.pk,
            OrderStatus.AVAILABLE,
            {
                'status': OrderStatus.TAKEN,
                'assignee': loader,
                'taken_at': timezone.now(),
            },
            actor=loader,
        )

        logger.info(f"[COORDINATOR] Order #{order.pk} claimed by loader {str(loader.pk)[:8]}")

        return order

    @staticmethod
    def complete(order_id, loader) -> Order:
        """
        Complete a TAKEN order. Only its assignee may do this.

        Raises:
            OrderNotFound: Unknown order
            OrderForbidden: Actor is not a loader or not the assignee
            InvalidTransition: Order is not TAKEN
            OrderConflict: The order changed between read and update
        """
        order = OrderStore.get(order_id)
        AssignmentCoordinator._require_role(loader, UserRole.LOADER, 'complete orders')

        if order.status != OrderStatus.TAKEN:
            raise InvalidTransition(order.pk, order.status, 'complete')
        if order.assignee_id != loader.pk:
            raise OrderForbidden(f"Order {order.pk} is assigned to another loader")

        order = OrderStore.apply_transition(
            order.pk,
            OrderStatus.TAKEN,
            {
                'status': OrderStatus.COMPLETED,
                'completed_at': timezone.now(),
            },
            actor=loader,
        )

        logger.info(f"[COORDINATOR] Order #{order.pk} completed by loader {str(loader.pk)[:8]}")

        return order

    @staticmethod
    def cancel(order_id, dispatcher) -> Order:
        """
        Cancel an AVAILABLE order. Only its creator may do this.

        Raises:
            OrderNotFound: Unknown order
            OrderForbidden: Actor is not a dispatcher or not the creator
            InvalidTransition: Order is not AVAILABLE
            OrderConflict: A loader claimed the order first
        """
        order = OrderStore.get(order_id)
        AssignmentCoordinator._require_role(dispatcher, UserRole.DISPATCHER, 'cancel orders')

        if not order.is_available:
            raise InvalidTransition(order.pk, order.status, 'cancel')
        if order.created_by_id != dispatcher.pk:
            raise OrderForbidden(f"Order {order.pk} was created by another dispatcher")

        order = OrderStore.apply_transition(
            order.pk,
            OrderStatus.AVAILABLE,
            {
                'status': OrderStatus.CANCELLED,
                'cancelled_at': timezone.now(),
            },
            actor=dispatcher,
        )

        logger.info(
            f"[COORDINATOR] Order #{order.pk} cancelled by dispatcher {str(dispatcher.pk)[:8]}"
        )

        return order

    @staticmethod
    def _require_role(actor, role: str, operation: str) -> None:
        if not actor.is_active or actor.role != role:
            raise OrderForbidden(f"Only active {role.lower()}s can {operation}")
