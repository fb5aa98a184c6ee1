"""
Orders App Serializers
"""

from datetime import datetime, timedelta, timezone as dt_timezone

from rest_framework import serializers

from .models import Order, OrderEvent


EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)


class EpochMillisField(serializers.Field):
    """Aware datetime <-> epoch milliseconds, as the mobile app sends dates."""

    default_error_messages = {
        'invalid': 'Expected epoch milliseconds.',
    }

    def to_representation(self, value):
        return (value - EPOCH) // timedelta(milliseconds=1)

    def to_internal_value(self, data):
        if isinstance(data, bool):
            self.fail('invalid')
        try:
            millis = int(data)
            return EPOCH + timedelta(milliseconds=millis)
        except (TypeError, ValueError, OverflowError, OSError):
            self.fail('invalid')


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for Order snapshots."""

    date_time = EpochMillisField(source='scheduled_at', read_only=True)
    created_by = serializers.UUIDField(source='created_by_id', read_only=True)
    created_by_name = serializers.CharField(source='created_by.full_name', read_only=True)
    assignee = serializers.UUIDField(source='assignee_id', read_only=True, allow_null=True)
    assignee_name = serializers.CharField(
        source='assignee.full_name', read_only=True, default=None
    )

    class Meta:
        model = Order
        fields = [
            'id', 'address', 'date_time', 'cargo_description', 'price_per_hour',
            'status', 'created_by', 'created_by_name', 'assignee', 'assignee_name',
            'version', 'created_at', 'taken_at', 'completed_at', 'cancelled_at',
        ]
        read_only_fields = fields


class OrderCreateSerializer(serializers.Serializer):
    """
    Request shape for order creation.

    Only parses types; business validation (positive price, not in the
    past, non-empty text) lives in OrderStore so every caller gets it.
    """

    address = serializers.CharField(allow_blank=True, trim_whitespace=False)
    date_time = EpochMillisField()
    cargo_description = serializers.CharField(allow_blank=True, trim_whitespace=False)
    price_per_hour = serializers.DecimalField(max_digits=12, decimal_places=2)

    def to_store_kwargs(self) -> dict:
        data = self.validated_data
        return {
            'address': data['address'],
            'scheduled_at': data['date_time'],
            'cargo_description': data['cargo_description'],
            'price_per_hour': data['price_per_hour'],
        }


class OrderEventSerializer(serializers.ModelSerializer):
    """Serializer for the order event log."""

    order_id = serializers.IntegerField(read_only=True)
    actor_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = OrderEvent
        fields = ['id', 'order_id', 'from_status', 'to_status', 'actor_id', 'timestamp']
        read_only_fields = fields
