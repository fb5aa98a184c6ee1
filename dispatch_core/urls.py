"""
Loader Dispatch Main URL Configuration
"""

from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.health import health_check, readiness_check


# ===========================================
# ADMIN SITE CUSTOMIZATION
# ===========================================
admin.site.site_header = "Loader Dispatch Control Tower"
admin.site.site_title = "Loader Dispatch Admin"
admin.site.index_title = "Order Supervision"


@api_view(['GET'])
@permission_classes([AllowAny])
def api_root(request):
    """API Root endpoint with available routes."""
    return Response({
        'name': 'Loader Dispatch API',
        'version': '1.0.0',
        'endpoints': {
            'auth': {
                'token': '/api/auth/token/',
                'refresh': '/api/auth/token/refresh/',
            },
            'users': {
                'register': '/api/users/',
                'me': '/api/users/me/',
                'switch_role': '/api/users/switch_role/',
            },
            'orders': {
                'create': '/api/orders/',
                'available': '/api/orders/available/',
                'mine': '/api/orders/mine/',
                'created': '/api/orders/created/',
                'history': '/api/orders/history/',
            },
            'schema': '/api/schema/',
            'websocket': '/ws/orders/',
        }
    })


urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # Monitoring
    path('health/', health_check, name='health'),
    path('health/ready/', readiness_check, name='health-ready'),

    # API Root
    path('api/', api_root, name='api-root'),
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),

    # App URLs
    path('api/', include('core.urls')),
    path('api/', include('orders.urls')),
]
