"""
ORDERS App - Query Views

Read-only projections over the order table, recomputed on every call.
They reflect the last committed transition; nothing here mutates orders.
"""

from django.db.models import Q, QuerySet

from orders.models import Order, OrderEvent, OrderStatus, TERMINAL_STATUSES


class OrderQueryService:
    """
    Projections used by the mobile screens:
    - available(): loader's order board
    - mine(): loader's "my orders" tab
    - created_by_me(): dispatcher's order list
    - history(): history screen for both roles
    """

    @staticmethod
    def _base() -> QuerySet:
        return Order.objects.select_related('created_by', 'assignee')

    @staticmethod
    def available() -> QuerySet:
        """AVAILABLE orders, soonest first."""
        return OrderQueryService._base().filter(
            status=OrderStatus.AVAILABLE
        ).order_by('scheduled_at', 'id')

    @staticmethod
    def mine(actor_id) -> QuerySet:
        """Orders claimed by this loader, any status, soonest first."""
        return OrderQueryService._base().filter(
            assignee_id=actor_id
        ).order_by('scheduled_at', 'id')

    @staticmethod
    def created_by_me(actor_id) -> QuerySet:
        """Orders created by this dispatcher, newest first."""
        return OrderQueryService._base().filter(
            created_by_id=actor_id
        ).order_by('-id')

    @staticmethod
    def history(actor_id) -> QuerySet:
        """Finished orders the actor created or worked on, latest scheduled first."""
        return OrderQueryService._base().filter(
            Q(assignee_id=actor_id) | Q(created_by_id=actor_id),
            status__in=TERMINAL_STATUSES,
        ).order_by('-scheduled_at', '-id')

    @staticmethod
    def events(order_id) -> QuerySet:
        """Lifecycle events of one order, oldest first."""
        return OrderEvent.objects.filter(order_id=order_id).order_by('id')
