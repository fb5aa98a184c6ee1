"""
ORDERS App - WebSocket Routing Configuration
"""

from django.urls import re_path
from . import consumers


websocket_urlpatterns = [
    # Live order feed for dispatchers and loaders
    # ws://localhost:8000/ws/orders/
    re_path(
        r'ws/orders/$',
        consumers.OrderFeedConsumer.as_asgi()
    ),
]
