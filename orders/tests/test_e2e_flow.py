"""
E2E Tests for the Loader Dispatch order flow

Runs the full lifecycle through the API with real commits, so the event
outbox publishes through Celery (eager) to the notification hook.
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

from django.test import TransactionTestCase
from django.utils import timezone
from rest_framework.test import APIClient

from core.models import User, UserRole
from orders.models import OrderEvent, OrderStatus
from orders.serializers import EPOCH


class E2EOrderFlowTest(TransactionTestCase):
    """
    End-to-end tests for the order lifecycle.
    """

    def setUp(self):
        """Set up actors and a stub notification hook."""
        self.dispatcher = User.objects.create_user(
            phone_number='+79990006001', full_name='D1', role=UserRole.DISPATCHER
        )
        self.loader_1 = User.objects.create_user(
            phone_number='+79990006002', full_name='L1', role=UserRole.LOADER
        )
        self.loader_2 = User.objects.create_user(
            phone_number='+79990006003', full_name='L2', role=UserRole.LOADER
        )

        self.hook = MagicMock()
        patcher = patch('orders.events.get_notification_hook', return_value=self.hook)
        patcher.start()
        self.addCleanup(patcher.stop)

    def api(self, user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    def create_order(self, address):
        scheduled = timezone.now() + timedelta(hours=6)
        response = self.api(self.dispatcher).post('/api/orders/', {
            'address': address,
            'date_time': (scheduled - EPOCH) // timedelta(milliseconds=1),
            'cargo_description': 'Boxes and a sofa',
            'price_per_hour': '500',
        }, format='json')
        self.assertEqual(response.status_code, 201)
        return response.data['id']

    def published_statuses(self, order_id):
        return [
            c.args[0]['to_status'] for c in self.hook.publish.call_args_list
            if c.args[0]['order_id'] == order_id
        ]

    def test_claim_race_and_completion(self):
        """
        O1: L1 claims, L2 gets a conflict, L1 completes.

        Flow: Create -> Claim (L1) -> Claim (L2, 409) -> Complete -> History
        """
        # 1. CREATE
        o1 = self.create_order('Main St 1')

        available = self.api(self.loader_1).get('/api/orders/available/').data
        self.assertIn(o1, [o['id'] for o in available])

        # 2. L1 CLAIMS
        response = self.api(self.loader_1).post(f'/api/orders/{o1}/claim/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], OrderStatus.TAKEN)

        # 3. L2 LOSES
        response = self.api(self.loader_2).post(f'/api/orders/{o1}/claim/')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['code'], 'conflict')

        # 4. L1 COMPLETES
        response = self.api(self.loader_1).post(f'/api/orders/{o1}/complete/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], OrderStatus.COMPLETED)

        # 5. VIEWS
        history = self.api(self.loader_1).get('/api/orders/history/').data
        self.assertIn(o1, [o['id'] for o in history])

        available = self.api(self.loader_2).get('/api/orders/available/').data
        self.assertNotIn(o1, [o['id'] for o in available])

        # 6. EVENTS published once per transition, in order
        self.assertEqual(
            self.published_statuses(o1),
            [OrderStatus.AVAILABLE, OrderStatus.TAKEN, OrderStatus.COMPLETED]
        )
        self.assertFalse(OrderEvent.objects.filter(published_at__isnull=True).exists())

    def test_cancel_then_claim_is_invalid(self):
        """
        O2: creator cancels while AVAILABLE; later claims are invalid.
        """
        o2 = self.create_order('Second St 2')

        response = self.api(self.dispatcher).post(f'/api/orders/{o2}/cancel/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], OrderStatus.CANCELLED)

        response = self.api(self.loader_1).post(f'/api/orders/{o2}/claim/')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['code'], 'invalid_transition')

        history = self.api(self.dispatcher).get('/api/orders/history/').data
        self.assertEqual([o['id'] for o in history], [o2])
        self.assertEqual(
            self.published_statuses(o2),
            [OrderStatus.AVAILABLE, OrderStatus.CANCELLED]
        )

    def test_notification_outage_does_not_block_orders(self):
        """The lifecycle proceeds while the hook is down; the sweep catches up."""
        from orders.tasks import republish_pending_events

        self.hook.publish.side_effect = ConnectionError('channel layer down')

        o3 = self.create_order('Third St 3')
        response = self.api(self.loader_1).post(f'/api/orders/{o3}/claim/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            OrderEvent.objects.filter(order_id=o3, published_at__isnull=True).count(), 2
        )

        # Hook is back, events are old enough for the sweep
        self.hook.publish.side_effect = None
        OrderEvent.objects.update(timestamp=timezone.now() - timedelta(minutes=10))

        self.assertEqual(republish_pending_events(), 2)
        self.assertFalse(OrderEvent.objects.filter(published_at__isnull=True).exists())
