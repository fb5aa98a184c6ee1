"""
Django Admin configuration for ORDERS app.
"""

from django.contrib import admin

from .models import Order, OrderEvent


class OrderEventInline(admin.TabularInline):
    model = OrderEvent
    extra = 0
    can_delete = False
    fields = ('timestamp', 'from_status', 'to_status', 'actor', 'published_at', 'publish_attempts')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Read-only view of orders.

    Orders are created and transitioned only through the order API so that
    every change is validated, versioned and written to the event log.
    """

    list_display = (
        'id', 'address', 'scheduled_at', 'price_per_hour', 'status',
        'created_by', 'assignee', 'version',
    )
    list_filter = ('status',)
    search_fields = ('address', 'cargo_description', 'created_by__phone_number', 'assignee__phone_number')
    date_hierarchy = 'scheduled_at'
    inlines = [OrderEventInline]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(OrderEvent)
class OrderEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'order', 'from_status', 'to_status', 'actor', 'timestamp', 'published_at', 'publish_attempts')
    list_filter = ('to_status',)
    search_fields = ('order__id', 'actor__phone_number')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
