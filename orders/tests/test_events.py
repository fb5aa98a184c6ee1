"""
Tests for the notification hook and the event outbox.

- ChannelsNotificationHook fan-out (feed group + personal groups)
- deliver_event bookkeeping (published_at, publish_attempts)
- Celery tasks: immediate publish and periodic re-send
- Hook failures never touch order state
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, call, patch

from django.test import TestCase, override_settings
from django.utils import timezone

from core.models import User, UserRole
from orders.events import (
    ORDERS_FEED_GROUP, ChannelsNotificationHook, deliver_event, enqueue_event,
)
from orders.models import OrderEvent, OrderStatus
from orders.services import AssignmentCoordinator
from orders.tasks import publish_order_event, republish_pending_events


class EventsTestBase(TestCase):

    def setUp(self):
        self.dispatcher = User.objects.create_user(
            phone_number='+79990003001', full_name='Dispatcher', role=UserRole.DISPATCHER
        )
        self.loader = User.objects.create_user(
            phone_number='+79990003002', full_name='Loader', role=UserRole.LOADER
        )

    def create_order(self):
        return AssignmentCoordinator.create(
            self.dispatcher,
            address='Main St 1',
            scheduled_at=timezone.now() + timedelta(hours=2),
            cargo_description='Fridge',
            price_per_hour=Decimal('600'),
        )


class TestEventPayload(EventsTestBase):

    def test_payload_shape(self):
        order = self.create_order()
        event = OrderEvent.objects.get(order=order)

        payload = event.as_payload()

        self.assertEqual(payload['event_id'], event.pk)
        self.assertEqual(payload['order_id'], order.pk)
        self.assertIsNone(payload['from_status'])
        self.assertEqual(payload['to_status'], OrderStatus.AVAILABLE)
        self.assertEqual(payload['actor_id'], str(self.dispatcher.pk))
        self.assertIsInstance(payload['timestamp'], str)


class TestChannelsNotificationHook(EventsTestBase):

    def setUp(self):
        super().setUp()
        self.hook = ChannelsNotificationHook()

    @patch('orders.events._send_group_event')
    def test_creation_goes_to_feed_and_creator(self, mock_send):
        order = self.create_order()
        payload = OrderEvent.objects.get(order=order).as_payload()

        self.hook.publish(payload)

        groups = [c.args[0] for c in mock_send.call_args_list]
        self.assertEqual(groups, [ORDERS_FEED_GROUP, self.dispatcher.notification_group])

    @patch('orders.events._send_group_event')
    def test_claim_also_notifies_assignee(self, mock_send):
        order = self.create_order()
        AssignmentCoordinator.claim(order.pk, self.loader)
        payload = OrderEvent.objects.filter(order=order).last().as_payload()

        self.hook.publish(payload)

        groups = [c.args[0] for c in mock_send.call_args_list]
        self.assertEqual(groups, [
            ORDERS_FEED_GROUP,
            self.dispatcher.notification_group,
            self.loader.notification_group,
        ])

    @patch('orders.events._send_group_event')
    def test_personal_message_carries_sound_and_vibration(self, mock_send):
        self.dispatcher.sound_enabled = False
        self.dispatcher.save()
        order = self.create_order()
        payload = OrderEvent.objects.get(order=order).as_payload()

        self.hook.publish(payload)

        mock_send.assert_any_call(self.dispatcher.notification_group, {
            'type': 'order_event',
            'event': payload,
            'sound': False,
            'vibration': True,
        })
        mock_send.assert_any_call(ORDERS_FEED_GROUP, {
            'type': 'order_event',
            'event': payload,
        })

    @patch('orders.events._send_group_event')
    def test_disabled_notifications_are_skipped(self, mock_send):
        self.dispatcher.notifications_enabled = False
        self.dispatcher.save()
        order = self.create_order()
        payload = OrderEvent.objects.get(order=order).as_payload()

        self.hook.publish(payload)

        mock_send.assert_called_once_with(ORDERS_FEED_GROUP, {
            'type': 'order_event',
            'event': payload,
        })

    def test_sends_through_channel_layer(self):
        order = self.create_order()
        payload = OrderEvent.objects.get(order=order).as_payload()
        layer = MagicMock()

        async def group_send(group, message):
            layer.sent.append((group, message))

        layer.sent = []
        layer.group_send = group_send

        with patch('orders.events.get_channel_layer', return_value=layer):
            self.hook.publish(payload)

        self.assertEqual([group for group, _ in layer.sent], [
            ORDERS_FEED_GROUP, self.dispatcher.notification_group,
        ])

    def test_missing_channel_layer_raises(self):
        order = self.create_order()
        payload = OrderEvent.objects.get(order=order).as_payload()

        with patch('orders.events.get_channel_layer', return_value=None):
            with self.assertRaises(RuntimeError):
                self.hook.publish(payload)


class TestDeliverEvent(EventsTestBase):

    def setUp(self):
        super().setUp()
        self.order = self.create_order()
        self.event = OrderEvent.objects.get(order=self.order)
        self.hook = MagicMock()
        patcher = patch('orders.events.get_notification_hook', return_value=self.hook)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_success_marks_published(self):
        self.assertTrue(deliver_event(self.event.pk))

        self.hook.publish.assert_called_once_with(self.event.as_payload())
        self.event.refresh_from_db()
        self.assertIsNotNone(self.event.published_at)
        self.assertEqual(self.event.publish_attempts, 1)

    def test_already_published_is_not_resent(self):
        deliver_event(self.event.pk)
        self.hook.publish.reset_mock()

        self.assertTrue(deliver_event(self.event.pk))
        self.hook.publish.assert_not_called()

    def test_hook_failure_leaves_event_pending(self):
        self.hook.publish.side_effect = ConnectionError('redis down')

        self.assertFalse(deliver_event(self.event.pk))

        self.event.refresh_from_db()
        self.assertIsNone(self.event.published_at)
        self.assertEqual(self.event.publish_attempts, 1)

    def test_unknown_event(self):
        self.assertFalse(deliver_event(987654))
        self.hook.publish.assert_not_called()


class TestOutboxTasks(EventsTestBase):

    def setUp(self):
        super().setUp()
        self.hook = MagicMock()
        patcher = patch('orders.events.get_notification_hook', return_value=self.hook)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_events_published_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            order = self.create_order()

        event = OrderEvent.objects.get(order=order)
        self.assertIsNotNone(event.published_at)
        self.hook.publish.assert_called_once_with(event.as_payload())

    def test_publish_task_retries_then_gives_up(self):
        self.hook.publish.side_effect = ConnectionError('redis down')

        with self.captureOnCommitCallbacks(execute=True):
            order = self.create_order()

        event = OrderEvent.objects.get(order=order)
        self.assertIsNone(event.published_at)
        self.assertGreaterEqual(event.publish_attempts, 1)
        self.assertLessEqual(event.publish_attempts, publish_order_event.max_retries + 1)

    def test_hook_failure_does_not_affect_transition(self):
        order = self.create_order()
        self.hook.publish.side_effect = RuntimeError('boom')

        with self.captureOnCommitCallbacks(execute=True):
            claimed = AssignmentCoordinator.claim(order.pk, self.loader)

        self.assertEqual(claimed.status, OrderStatus.TAKEN)
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.TAKEN)
        self.assertEqual(order.assignee, self.loader)

    def test_broker_failure_is_swallowed(self):
        order = self.create_order()
        event = OrderEvent.objects.get(order=order)

        with patch.object(publish_order_event, 'delay', side_effect=ConnectionError('no broker')):
            enqueue_event(event.pk)

        event.refresh_from_db()
        self.assertIsNone(event.published_at)

    @override_settings(ORDER_EVENT_REPUBLISH_AFTER_SECONDS=30)
    def test_republish_sends_old_pending_events(self):
        order = self.create_order()
        AssignmentCoordinator.claim(order.pk, self.loader)
        OrderEvent.objects.filter(order=order).update(
            timestamp=timezone.now() - timedelta(minutes=5)
        )

        self.assertEqual(republish_pending_events(), 2)

        self.assertFalse(OrderEvent.objects.filter(published_at__isnull=True).exists())
        published = [c.args[0]['to_status'] for c in self.hook.publish.call_args_list]
        self.assertEqual(published, [OrderStatus.AVAILABLE, OrderStatus.TAKEN])

    @override_settings(ORDER_EVENT_REPUBLISH_AFTER_SECONDS=30)
    def test_republish_skips_recent_events(self):
        self.create_order()

        self.assertEqual(republish_pending_events(), 0)
        self.hook.publish.assert_not_called()

    @override_settings(ORDER_EVENT_REPUBLISH_AFTER_SECONDS=30, ORDER_EVENT_MAX_PUBLISH_ATTEMPTS=3)
    def test_republish_skips_exhausted_events(self):
        order = self.create_order()
        OrderEvent.objects.filter(order=order).update(
            timestamp=timezone.now() - timedelta(minutes=5),
            publish_attempts=3,
        )

        self.assertEqual(republish_pending_events(), 0)
        self.hook.publish.assert_not_called()

    @override_settings(ORDER_EVENT_REPUBLISH_AFTER_SECONDS=30)
    def test_republish_counts_only_successes(self):
        first = self.create_order()
        second = self.create_order()
        OrderEvent.objects.update(timestamp=timezone.now() - timedelta(minutes=5))
        first_event = OrderEvent.objects.get(order=first)

        def publish(payload):
            if payload['event_id'] == first_event.pk:
                raise ConnectionError('redis down')

        self.hook.publish.side_effect = publish

        self.assertEqual(republish_pending_events(), 1)
        self.assertIsNotNone(OrderEvent.objects.get(order=second).published_at)
        self.assertIsNone(OrderEvent.objects.get(order=first).published_at)
        self.assertEqual(self.hook.publish.call_count, 2)
        self.hook.publish.assert_has_calls([
            call(OrderEvent.objects.get(order=first).as_payload()),
            call(OrderEvent.objects.get(order=second).as_payload()),
        ])
