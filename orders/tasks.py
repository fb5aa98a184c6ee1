"""
ORDERS App - Celery Tasks

Event outbox processing:
- publish_order_event: push one event right after its transaction commits
- republish_pending_events: periodic sweep for events never confirmed
"""

from datetime import timedelta
import logging

from celery import shared_task
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    name='orders.tasks.publish_order_event',
    ignore_result=True,
    max_retries=3,
    default_retry_delay=5,
)
def publish_order_event(self, event_id):
    """
    Publish a single lifecycle event through the notification hook.

    Retries with exponential backoff; once retries are exhausted the event
    stays in the outbox for republish_pending_events.
    """
    from orders.events import deliver_event

    delivered = deliver_event(event_id)
    if delivered:
        return True

    if self.request.retries < self.max_retries:
        countdown = self.default_retry_delay * (2 ** self.request.retries)
        logger.info(f"[TASK] Event {event_id} not delivered, retrying in {countdown}s")
        raise self.retry(countdown=countdown)

    logger.warning(f"[TASK] Event {event_id} left for periodic re-send")
    return False


@shared_task(name='orders.tasks.republish_pending_events')
def republish_pending_events():
    """
    Re-send events left unpublished.

    Only events older than ORDER_EVENT_REPUBLISH_AFTER_SECONDS are picked,
    so the immediate publish_order_event has a chance to run first. Events
    that reached ORDER_EVENT_MAX_PUBLISH_ATTEMPTS are skipped.

    Returns:
        Number of events delivered in this run
    """
    from orders.events import deliver_event
    from orders.models import OrderEvent

    cutoff = timezone.now() - timedelta(seconds=settings.ORDER_EVENT_REPUBLISH_AFTER_SECONDS)

    pending_ids = list(
        OrderEvent.objects.filter(
            published_at__isnull=True,
            timestamp__lte=cutoff,
            publish_attempts__lt=settings.ORDER_EVENT_MAX_PUBLISH_ATTEMPTS,
        ).order_by('id').values_list('id', flat=True)[:500]
    )

    delivered = 0
    for event_id in pending_ids:
        if deliver_event(event_id):
            delivered += 1

    if pending_ids:
        logger.info(f"[TASK] Re-sent {delivered}/{len(pending_ids)} pending order events")

    return delivered
