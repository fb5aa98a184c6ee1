"""
ORDERS App - Order Store

Owns order records and the event log. apply_transition is the only way an
existing order is mutated: a single conditional UPDATE keyed on
(id, status), so two actors racing on the same order can never both win.
"""

import logging
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F, QuerySet
from django.utils import timezone

from orders.exceptions import OrderConflict, OrderNotFound, OrderValidationError
from orders.models import Order, OrderEvent, OrderStatus

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
# DecimalField(max_digits=10, decimal_places=2)
MAX_PRICE_PER_HOUR = Decimal('100000000')


class OrderStore:
    """
    Canonical table of orders keyed by id.

    All write operations run inside transaction.atomic() and append to the
    event log in the same transaction; publication is deferred until commit.
    """

    # ==========================================
    # Creation
    # ==========================================

    @staticmethod
    def validate(address, scheduled_at, cargo_description, price_per_hour) -> dict:
        """
        Check creation fields.

        Returns:
            Cleaned values keyed by field name

        Raises:
            OrderValidationError: with every invalid field listed
        """
        errors = {}
        cleaned = {}

        address = (address or '').strip()
        if not address:
            errors.setdefault('address', []).append("Address is required.")
        elif len(address) > Order._meta.get_field('address').max_length:
            errors.setdefault('address', []).append("Address is too long.")
        cleaned['address'] = address

        cargo_description = (cargo_description or '').strip()
        if not cargo_description:
            errors.setdefault('cargo_description', []).append("Cargo description is required.")
        cleaned['cargo_description'] = cargo_description

        try:
            price = Decimal(str(price_per_hour))
            if not price.is_finite() or price <= 0:
                errors.setdefault('price_per_hour', []).append("Price per hour must be positive.")
            elif price >= MAX_PRICE_PER_HOUR:
                errors.setdefault('price_per_hour', []).append("Price per hour is too large.")
            else:
                cleaned['price_per_hour'] = price.quantize(CENT, rounding=ROUND_HALF_UP)
        except (InvalidOperation, TypeError, ValueError):
            errors.setdefault('price_per_hour', []).append("Price per hour must be a number.")

        if not isinstance(scheduled_at, datetime):
            errors.setdefault('date_time', []).append("Scheduled time is required.")
        else:
            if timezone.is_naive(scheduled_at):
                scheduled_at = timezone.make_aware(scheduled_at)
            grace = timedelta(seconds=settings.ORDER_SCHEDULE_GRACE_SECONDS)
            if scheduled_at < timezone.now() - grace:
                errors.setdefault('date_time', []).append("Scheduled time is in the past.")
            cleaned['scheduled_at'] = scheduled_at

        if errors:
            raise OrderValidationError(errors)

        return cleaned

    @staticmethod
    @transaction.atomic
    def create(created_by, address: str, scheduled_at: datetime,
               cargo_description: str, price_per_hour) -> Order:
        """
        Create a new AVAILABLE order.

        Args:
            created_by: User instance (the dispatcher)
            address: Destination, free text
            scheduled_at: When the work starts (now or later)
            cargo_description: What is being moved
            price_per_hour: Positive amount

        Returns:
            The new Order

        Raises:
            OrderValidationError: If any field is invalid (nothing is written)
        """
        cleaned = OrderStore.validate(address, scheduled_at, cargo_description, price_per_hour)

        order = Order.objects.create(
            created_by=created_by,
            status=OrderStatus.AVAILABLE,
            **cleaned
        )

        event = OrderEvent.objects.create(
            order=order,
            from_status='',
            to_status=OrderStatus.AVAILABLE,
            actor=created_by,
        )
        OrderStore._schedule_publish(event)

        logger.info(
            f"[STORE] Order #{order.pk} created by {str(created_by.pk)[:8]} "
            f"({order.address}, {order.price_per_hour}/h)"
        )

        return order

    # ==========================================
    # Reads
    # ==========================================

    @staticmethod
    def get(order_id) -> Order:
        """
        Fetch one order.

        Raises:
            OrderNotFound: If no order has this id
        """
        try:
            return Order.objects.select_related('created_by', 'assignee').get(pk=order_id)
        except (Order.DoesNotExist, ValueError, TypeError):
            raise OrderNotFound(order_id)

    @staticmethod
    def list_by_status(statuses: Iterable[str]) -> QuerySet:
        """Orders whose status is in `statuses`, in insertion order."""
        return Order.objects.filter(
            status__in=list(statuses)
        ).select_related('created_by', 'assignee').order_by('id')

    # ==========================================
    # Transitions
    # ==========================================

    @staticmethod
    @transaction.atomic
    def apply_transition(order_id, expected_status: str, mutation: dict,
                         actor) -> Order:
        """
        Atomic compare-and-swap on an order's status.

        Args:
            order_id: Order primary key
            expected_status: Status the caller observed; the update only
                applies if the row still has it
            mutation: Field updates, must include the new 'status'
            actor: User performing the transition (recorded in the event log)

        Returns:
            The updated Order

        Raises:
            OrderNotFound: If no order has this id
            OrderConflict: If the status is no longer `expected_status`
        """
        new_status = mutation['status']

        updated = Order.objects.filter(
            pk=order_id,
            status=expected_status,
        ).update(version=F('version') + 1, **mutation)

        if updated == 0:
            current = OrderStore._current_status(order_id)
            if current is None:
                raise OrderNotFound(order_id)
            logger.warning(
                f"[STORE] Conflict on order #{order_id}: expected {expected_status}, "
                f"found {current}"
            )
            raise OrderConflict(order_id, expected_status, current)

        event = OrderEvent.objects.create(
            order_id=order_id,
            from_status=expected_status,
            to_status=new_status,
            actor=actor,
        )
        OrderStore._schedule_publish(event)

        logger.info(
            f"[STORE] Order #{order_id}: {expected_status} -> {new_status} "
            f"by {str(actor.pk)[:8]}"
        )

        return OrderStore.get(order_id)

    # ==========================================
    # Helpers
    # ==========================================

    @staticmethod
    def _current_status(order_id) -> Optional[str]:
        return Order.objects.filter(pk=order_id).values_list('status', flat=True).first()

    @staticmethod
    def _schedule_publish(event: OrderEvent) -> None:
        """Hand the event to the notification worker once the transaction commits."""
        from orders.events import enqueue_event

        event_id = event.pk
        transaction.on_commit(lambda: enqueue_event(event_id))
