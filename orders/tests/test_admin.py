"""
Admin site tests.

Orders change only through the coordinator, so the admin may list and
inspect them but every write is refused.
"""

from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from core.models import User, UserRole
from orders.models import Order, OrderEvent, OrderStatus
from orders.services import AssignmentCoordinator


class TestOrderAdminIsReadOnly(TestCase):

    def setUp(self):
        self.superuser = User.objects.create_superuser(
            phone_number='+79990008001', password='testpass123'
        )
        self.dispatcher = User.objects.create_user(
            phone_number='+79990008002', full_name='Dispatcher', role=UserRole.DISPATCHER
        )
        self.order = AssignmentCoordinator.create(
            self.dispatcher,
            address='Main St 1',
            scheduled_at=timezone.now() + timedelta(hours=4),
            cargo_description='Wardrobe',
            price_per_hour=Decimal('500'),
        )
        self.client.force_login(self.superuser)

    def test_changelist_is_viewable(self):
        response = self.client.get('/admin/orders/order/')
        self.assertEqual(response.status_code, 200)

    def test_add_is_refused(self):
        response = self.client.post('/admin/orders/order/add/', {
            'address': 'Back Door 9',
            'scheduled_at_0': '2000-01-01',
            'scheduled_at_1': '10:00:00',
            'cargo_description': 'Piano',
            'price_per_hour': '-100',
            'created_by': str(self.dispatcher.pk),
        })

        self.assertEqual(response.status_code, 403)
        self.assertEqual(Order.objects.count(), 1)

    def test_change_is_refused(self):
        response = self.client.post(f'/admin/orders/order/{self.order.pk}/change/', {
            'address': 'Somewhere Else',
            'price_per_hour': '0',
        })

        self.assertEqual(response.status_code, 403)
        self.order.refresh_from_db()
        self.assertEqual(self.order.address, 'Main St 1')
        self.assertEqual(self.order.price_per_hour, Decimal('500'))
        self.assertEqual(self.order.status, OrderStatus.AVAILABLE)
        self.assertEqual(self.order.version, 1)
        self.assertEqual(self.order.events.count(), 1)

    def test_delete_is_refused(self):
        response = self.client.post(
            f'/admin/orders/order/{self.order.pk}/delete/', {'post': 'yes'}
        )

        self.assertEqual(response.status_code, 403)
        self.assertTrue(Order.objects.filter(pk=self.order.pk).exists())

    def test_event_log_cannot_be_edited(self):
        event = self.order.events.get()

        change = self.client.post(f'/admin/orders/orderevent/{event.pk}/change/', {
            'to_status': OrderStatus.CANCELLED,
        })
        delete = self.client.post(
            f'/admin/orders/orderevent/{event.pk}/delete/', {'post': 'yes'}
        )

        self.assertEqual(change.status_code, 403)
        self.assertEqual(delete.status_code, 403)
        event.refresh_from_db()
        self.assertEqual(event.to_status, OrderStatus.AVAILABLE)
        self.assertEqual(OrderEvent.objects.count(), 1)
