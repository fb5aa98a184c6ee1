"""
Loader Dispatch Core Tests
===========================

Tests for:
1. Custom User Model (creation, roles, role switching)
2. Accounts API (registration, profile settings, switch_role, JWT)
3. Health check endpoints
"""

from unittest.mock import patch

import pytest
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from core.models import User, UserRole


class TestUserModel(TestCase):
    """Tests for the custom User model."""

    def setUp(self):
        """Create test users for each role."""
        self.admin = User.objects.create_user(
            phone_number='+79991000001',
            password='testpass123',
            role=UserRole.ADMIN,
            full_name='Admin Test',
        )
        self.dispatcher = User.objects.create_user(
            phone_number='+79991000002',
            password='testpass123',
            role=UserRole.DISPATCHER,
            full_name='Dispatcher Test',
        )
        self.loader = User.objects.create_user(
            phone_number='+79991000003',
            password='testpass123',
            full_name='Loader Test',
        )

    # ==========================================
    # User Creation Tests
    # ==========================================

    def test_user_creation_with_phone(self):
        """User should be created with phone number as identifier."""
        self.assertEqual(self.dispatcher.phone_number, '+79991000002')
        self.assertTrue(self.dispatcher.check_password('testpass123'))

    def test_default_role_is_loader(self):
        self.assertEqual(self.loader.role, UserRole.LOADER)
        self.assertTrue(self.loader.is_loader)
        self.assertFalse(self.loader.is_dispatcher)

    def test_notifications_enabled_by_default(self):
        self.assertTrue(self.loader.notifications_enabled)
        self.assertTrue(self.loader.sound_enabled)
        self.assertTrue(self.loader.vibration_enabled)

    def test_user_without_password_cannot_log_in(self):
        user = User.objects.create_user(phone_number='+79991000004')
        self.assertFalse(user.has_usable_password())

    def test_phone_number_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(phone_number='')

    def test_superuser_is_admin(self):
        superuser = User.objects.create_superuser(
            phone_number='+79991000005', password='testpass123'
        )
        self.assertEqual(superuser.role, UserRole.ADMIN)
        self.assertTrue(superuser.is_staff)
        self.assertTrue(superuser.is_superuser)

    def test_notification_group(self):
        self.assertEqual(self.loader.notification_group, f'actor_{self.loader.pk}')

    def test_str_representation(self):
        self.assertEqual(str(self.loader), 'Loader Test (LOADER)')

    # ==========================================
    # Role Switching Tests
    # ==========================================

    def test_switch_loader_to_dispatcher(self):
        self.assertEqual(self.loader.switch_role(), UserRole.DISPATCHER)
        self.loader.refresh_from_db()
        self.assertTrue(self.loader.is_dispatcher)

    def test_switch_dispatcher_to_loader(self):
        self.assertEqual(self.dispatcher.switch_role(), UserRole.LOADER)

    def test_admin_cannot_switch(self):
        with self.assertRaises(ValueError):
            self.admin.switch_role()
        self.admin.refresh_from_db()
        self.assertEqual(self.admin.role, UserRole.ADMIN)


class TestAccountsAPI(TestCase):
    """Tests for registration, profile and role switching endpoints."""

    def setUp(self):
        self.client = APIClient()
        self.loader = User.objects.create_user(
            phone_number='+79992000001',
            password='S3cure-pass-42',
            full_name='Loader',
        )

    def test_register(self):
        response = self.client.post('/api/users/', {
            'phone_number': '+79992000002',
            'password': 'S3cure-pass-42',
            'full_name': 'New Dispatcher',
            'role': UserRole.DISPATCHER,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('password', response.data)
        user = User.objects.get(phone_number='+79992000002')
        self.assertEqual(user.role, UserRole.DISPATCHER)
        self.assertTrue(user.check_password('S3cure-pass-42'))

    def test_register_cannot_choose_admin(self):
        response = self.client.post('/api/users/', {
            'phone_number': '+79992000003',
            'password': 'S3cure-pass-42',
            'role': UserRole.ADMIN,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('role', response.data)

    def test_register_rejects_bad_phone(self):
        response = self.client.post('/api/users/', {
            'phone_number': '12345',
            'password': 'S3cure-pass-42',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('phone_number', response.data)

    def test_list_users_is_admin_only(self):
        self.client.force_authenticate(user=self.loader)
        response = self.client.get('/api/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_me(self):
        self.client.force_authenticate(user=self.loader)

        response = self.client.get('/api/users/me/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['phone_number'], '+79992000001')
        self.assertEqual(response.data['role'], UserRole.LOADER)
        self.assertTrue(response.data['notifications_enabled'])

    def test_update_settings(self):
        self.client.force_authenticate(user=self.loader)

        response = self.client.patch('/api/users/me/', {
            'full_name': 'Renamed',
            'sound_enabled': False,
            'role': UserRole.ADMIN,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.loader.refresh_from_db()
        self.assertEqual(self.loader.full_name, 'Renamed')
        self.assertFalse(self.loader.sound_enabled)
        self.assertTrue(self.loader.vibration_enabled)
        # role is read-only here
        self.assertEqual(self.loader.role, UserRole.LOADER)

    def test_switch_role(self):
        self.client.force_authenticate(user=self.loader)

        response = self.client.post('/api/users/switch_role/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], UserRole.DISPATCHER)

    def test_switch_role_notifies_open_connections(self):
        self.client.force_authenticate(user=self.loader)

        with patch('orders.events._send_group_event') as send:
            self.client.post('/api/users/switch_role/')

        send.assert_called_once_with(self.loader.notification_group, {
            'type': 'role_changed',
            'role': UserRole.DISPATCHER,
        })

    def test_switch_role_succeeds_without_channel_layer(self):
        self.client.force_authenticate(user=self.loader)

        with patch('orders.events._send_group_event', side_effect=RuntimeError('No channel layer configured')):
            response = self.client.post('/api/users/switch_role/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.loader.refresh_from_db()
        self.assertEqual(self.loader.role, UserRole.DISPATCHER)

    def test_admin_switch_role_rejected(self):
        admin = User.objects.create_superuser(phone_number='+79992000009', password='x')
        self.client.force_authenticate(user=admin)

        response = self.client.post('/api/users/switch_role/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'role_not_switchable')

    def test_obtain_jwt_and_use_it(self):
        response = self.client.post('/api/auth/token/', {
            'phone_number': '+79992000001',
            'password': 'S3cure-pass-42',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        me = client.get('/api/users/me/')
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data['full_name'], 'Loader')


@pytest.mark.django_db
class TestHealthEndpoints:
    """Liveness and readiness checks."""

    def test_liveness(self, client):
        response = client.get('/health/')
        assert response.status_code == 200
        assert response.json()['status'] == 'ok'

    def test_readiness(self, client):
        response = client.get('/health/ready/')
        body = response.json()
        assert response.status_code == 200
        assert body['status'] == 'healthy'
        assert body['checks']['database']['status'] == 'healthy'
        assert body['checks']['cache']['status'] == 'healthy'
        assert body['checks']['event_outbox']['pending_events'] == 0

    def test_api_root_is_public(self, client):
        response = client.get('/api/')
        assert response.status_code == 200
        assert 'orders' in response.json()['endpoints']

    def test_readiness_survives_unreadable_outbox(self, client):
        with patch('core.health._check_outbox', side_effect=RuntimeError('no such table: orders_orderevent')):
            response = client.get('/health/ready/')

        body = response.json()
        assert response.status_code == 200
        assert body['status'] == 'healthy'
        assert body['checks']['event_outbox']['status'] == 'unknown'
        assert 'orders_orderevent' in body['checks']['event_outbox']['error']
