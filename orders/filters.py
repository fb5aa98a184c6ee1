"""
Orders App Filters - dispatcher order list
"""

import django_filters

from .models import Order, OrderStatus


class OrderFilter(django_filters.FilterSet):
    """?status=AVAILABLE&status=TAKEN&scheduled_after=...&scheduled_before=..."""

    status = django_filters.MultipleChoiceFilter(choices=OrderStatus.choices)
    scheduled_after = django_filters.IsoDateTimeFilter(field_name='scheduled_at', lookup_expr='gte')
    scheduled_before = django_filters.IsoDateTimeFilter(field_name='scheduled_at', lookup_expr='lte')

    class Meta:
        model = Order
        fields = ['status', 'scheduled_after', 'scheduled_before']
