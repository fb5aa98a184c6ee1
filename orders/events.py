"""
ORDERS App - Notification Hook

Fans order lifecycle events out to connected clients via Django Channels.

Delivery is best-effort per call and at-least-once overall: an event is
stamped published_at only after the hook accepted it, and the periodic
task in orders.tasks re-sends anything left unstamped. Clients must be
idempotent on (order_id, to_status).
"""

import logging
from abc import ABC, abstractmethod
from functools import lru_cache

from django.conf import settings
from django.db.models import F
from django.utils import timezone
from django.utils.module_loading import import_string

from orders.models import Order, OrderEvent

logger = logging.getLogger(__name__)

# Every loader browsing the order board listens here
ORDERS_FEED_GROUP = 'orders_feed'


class NotificationHook(ABC):
    """Interface for pushing lifecycle events outside the service."""

    @abstractmethod
    def publish(self, event: dict) -> None:
        """
        Deliver one event payload (see OrderEvent.as_payload).

        May raise; callers treat any exception as "not delivered" and the
        event stays in the outbox.
        """


def get_channel_layer():
    """Get the Django Channels layer (lazy import)."""
    from channels.layers import get_channel_layer as _get_channel_layer
    return _get_channel_layer()


def _send_group_event(group_name: str, message: dict) -> None:
    """Send a message to a channel group."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        raise RuntimeError("No channel layer configured")

    from asgiref.sync import async_to_sync
    async_to_sync(channel_layer.group_send)(group_name, message)


class ChannelsNotificationHook(NotificationHook):
    """
    Publishes to Channels groups.

    - orders_feed: every event (loaders refresh the available list)
    - actor_<uuid>: the order's creator and assignee, only if they kept
      notifications enabled in their settings
    """

    def publish(self, event: dict) -> None:
        _send_group_event(ORDERS_FEED_GROUP, {
            'type': 'order_event',
            'event': event,
        })

        for recipient in self._personal_recipients(event['order_id']):
            if not recipient.notifications_enabled:
                logger.debug(
                    f"[EVENTS] Notifications disabled for {str(recipient.pk)[:8]}, skipping"
                )
                continue

            _send_group_event(recipient.notification_group, {
                'type': 'order_event',
                'event': event,
                'sound': recipient.sound_enabled,
                'vibration': recipient.vibration_enabled,
            })

        logger.debug(
            f"[EVENTS] Broadcasted order #{event['order_id']} -> {event['to_status']}"
        )

    @staticmethod
    def _personal_recipients(order_id):
        order = Order.objects.select_related('created_by', 'assignee').filter(
            pk=order_id
        ).first()
        if order is None:
            return []

        recipients = [order.created_by]
        if order.assignee_id and order.assignee_id != order.created_by_id:
            recipients.append(order.assignee)
        return recipients


@lru_cache(maxsize=None)
def _load_hook(path: str) -> NotificationHook:
    return import_string(path)()


def get_notification_hook() -> NotificationHook:
    """Hook instance configured by settings.ORDER_NOTIFICATION_HOOK."""
    return _load_hook(settings.ORDER_NOTIFICATION_HOOK)


# ============================================
# OUTBOX
# ============================================

def deliver_event(event_id) -> bool:
    """
    Publish one logged event and mark it as published.

    Never raises: a failed delivery is logged, counted, and left for the
    periodic re-send.

    Returns:
        True if the hook accepted the event (or it was already published)
    """
    try:
        event = OrderEvent.objects.get(pk=event_id)
    except OrderEvent.DoesNotExist:
        logger.error(f"[EVENTS] Event {event_id} not found")
        return False

    if event.published_at is not None:
        return True

    OrderEvent.objects.filter(pk=event.pk).update(publish_attempts=F('publish_attempts') + 1)

    try:
        get_notification_hook().publish(event.as_payload())
    except Exception as e:
        logger.warning(f"[EVENTS] Failed to publish event {event_id}: {e}")
        return False

    OrderEvent.objects.filter(pk=event.pk).update(published_at=timezone.now())
    return True


def enqueue_event(event_id) -> None:
    """
    Hand an event to the Celery worker.

    Runs as a transaction.on_commit callback, so it must not raise: if the
    broker is unreachable the event simply waits for the periodic re-send.
    """
    try:
        from orders.tasks import publish_order_event
        publish_order_event.delay(event_id)
    except Exception as e:
        logger.warning(f"[EVENTS] Could not enqueue event {event_id}: {e}")


# ============================================
# ACCOUNT CHANGES
# ============================================

def notify_role_changed(user) -> None:
    """
    Tell the user's open feed connections to re-subscribe for their new role.

    Best-effort: a client that misses it gets the right groups on reconnect.
    """
    try:
        _send_group_event(user.notification_group, {
            'type': 'role_changed',
            'role': user.role,
        })
    except Exception as e:
        logger.warning(f"[EVENTS] Could not notify role change for {str(user.pk)[:8]}: {e}")
