"""
ORDERS App - Orders & Lifecycle Events for Loader Dispatch

Handles: Orders (AVAILABLE -> TAKEN -> COMPLETED, or AVAILABLE -> CANCELLED)
and the append-only event log consumed by the notification hook.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone


class OrderStatus(models.TextChoices):
    """Order status enumeration."""
    AVAILABLE = 'AVAILABLE', 'Available'
    TAKEN = 'TAKEN', 'Taken'
    COMPLETED = 'COMPLETED', 'Completed'
    CANCELLED = 'CANCELLED', 'Cancelled'


TERMINAL_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class Order(models.Model):
    """
    A unit of loading work posted by a dispatcher.

    The id is an auto-increment integer so that id order is insertion order.
    Rows are only mutated through OrderStore.apply_transition; the assignee
    is set by the claim and never cleared afterwards.
    """

    # Actors
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='created_orders',
        verbose_name="Dispatcher"
    )
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='assigned_orders',
        verbose_name="Loader"
    )

    # Work description
    address = models.CharField(max_length=255, verbose_name="Address")
    scheduled_at = models.DateTimeField(verbose_name="Scheduled for")
    cargo_description = models.TextField(verbose_name="Cargo")
    price_per_hour = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        verbose_name="Price per hour"
    )

    # Status
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.AVAILABLE,
        verbose_name="Status"
    )
    version = models.PositiveIntegerField(default=1)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    taken_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Order"
        verbose_name_plural = "Orders"
        ordering = ['id']
        indexes = [
            models.Index(fields=['status', 'scheduled_at'], name='order_status_sched_idx'),
            models.Index(fields=['assignee', 'status'], name='order_assignee_status_idx'),
            models.Index(fields=['created_by', 'status'], name='order_creator_status_idx'),
        ]

    def __str__(self):
        return f"Order #{self.pk} - {self.status}"

    @property
    def is_available(self) -> bool:
        return self.status == OrderStatus.AVAILABLE


class OrderEvent(models.Model):
    """
    Append-only lifecycle event.

    Written by the order store in the same transaction as the status change.
    from_status is empty for the creation event. published_at stays NULL
    until the notification hook has accepted the event.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='events',
        verbose_name="Order"
    )
    from_status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        blank=True,
        verbose_name="From"
    )
    to_status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        verbose_name="To"
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='order_events',
        verbose_name="Actor"
    )
    timestamp = models.DateTimeField(default=timezone.now)

    # Outbox bookkeeping
    published_at = models.DateTimeField(null=True, blank=True)
    publish_attempts = models.PositiveSmallIntegerField(default=0)

    class Meta:
        verbose_name = "Order event"
        verbose_name_plural = "Order events"
        ordering = ['id']
        indexes = [
            models.Index(fields=['published_at', 'timestamp'], name='event_outbox_idx'),
        ]

    def __str__(self):
        return f"Order #{self.order_id}: {self.from_status or '-'} -> {self.to_status}"

    def as_payload(self) -> dict:
        """Wire format handed to the notification hook."""
        return {
            'event_id': self.pk,
            'order_id': self.order_id,
            'from_status': self.from_status or None,
            'to_status': self.to_status,
            'actor_id': str(self.actor_id),
            'timestamp': self.timestamp.isoformat(),
        }
