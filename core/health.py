"""
Loader Dispatch Monitoring & Health Check Endpoints
=====================================================

/health/        liveness, the process answers
/health/ready/  readiness, the database and cache answer

The channel layer and the event outbox are reported but never fail the
probe: notifications are best-effort and catch up through the periodic
re-send task.
"""

import logging
import time

from asgiref.sync import async_to_sync
from django.core.cache import cache
from django.db import connection
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET

logger = logging.getLogger('dispatch.monitoring')

SERVICE_NAME = 'loader-dispatch'


def _timed(check):
    """Run a check and return its result plus elapsed milliseconds."""
    started = time.perf_counter()
    result = check()
    return result, round((time.perf_counter() - started) * 1000, 2)


def _check_database():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()
    return connection.vendor


def _check_cache():
    cache.set('_healthcheck_ping', 'pong', 10)
    if cache.get('_healthcheck_ping') != 'pong':
        raise RuntimeError("Cache read/write mismatch")


def _check_channel_layer():
    from channels.layers import get_channel_layer

    layer = get_channel_layer()
    if layer is None:
        raise RuntimeError("No channel layer configured")
    async_to_sync(layer.group_send)('_healthcheck', {'type': 'healthcheck.ping'})
    return type(layer).__name__


def _check_outbox():
    from orders.models import OrderEvent
    return OrderEvent.objects.filter(published_at__isnull=True).count()


@csrf_exempt
@require_GET
def health_check(request):
    """Liveness probe for load balancers and Docker."""
    return JsonResponse({
        'status': 'ok',
        'service': SERVICE_NAME,
        'timestamp': timezone.now().isoformat(),
    })


@csrf_exempt
@require_GET
def readiness_check(request):
    """
    Readiness probe.

    Returns 503 when the database or the cache is down; a broken channel
    layer only marks the report as degraded.
    """
    checks = {}
    ready = True

    try:
        engine, elapsed = _timed(_check_database)
        checks['database'] = {'status': 'healthy', 'engine': engine, 'response_time_ms': elapsed}
    except Exception as e:
        logger.error(f"Health check - Database unhealthy: {e}")
        checks['database'] = {'status': 'unhealthy', 'error': str(e)}
        ready = False

    try:
        _, elapsed = _timed(_check_cache)
        checks['cache'] = {'status': 'healthy', 'response_time_ms': elapsed}
    except Exception as e:
        logger.error(f"Health check - Cache unhealthy: {e}")
        checks['cache'] = {'status': 'unhealthy', 'error': str(e)}
        ready = False

    try:
        backend, _ = _timed(_check_channel_layer)
        checks['channel_layer'] = {'status': 'healthy', 'backend': backend}
    except Exception as e:
        logger.warning(f"Health check - Channel layer degraded: {e}")
        checks['channel_layer'] = {'status': 'degraded', 'error': str(e)}

    if checks['database']['status'] == 'healthy':
        try:
            pending, _ = _timed(_check_outbox)
            checks['event_outbox'] = {'status': 'healthy', 'pending_events': pending}
        except Exception as e:
            logger.warning(f"Health check - Event outbox unreadable: {e}")
            checks['event_outbox'] = {'status': 'unknown', 'error': str(e)}

    return JsonResponse({
        'status': 'healthy' if ready else 'unhealthy',
        'service': SERVICE_NAME,
        'timestamp': timezone.now().isoformat(),
        'checks': checks,
    }, status=200 if ready else 503)
