import logging
import time

from django.conf import settings
from django.core.cache import cache
from django.db import connections
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny

from patients import responses

logger = logging.getLogger(__name__)

API_VERSION = '1.0.0'
_STARTED = time.monotonic()


def _database_ok() -> bool:
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        return bool(row and row[0] == 1)
    except Exception as e:
        logger.error('health check: database unavailable: %s', e)
        return False


def _cache_ok() -> bool:
    try:
        cache.set('healthz', 'ok', 5)
        return cache.get('healthz') == 'ok'
    except Exception as e:
        logger.warning('health check: cache unavailable: %s', e)
        return False


@api_view(['GET'])
@permission_classes([AllowAny])
def healthz(request):
    db_ok = _database_ok()
    data = {
        'status': 'healthy' if db_ok else 'unhealthy',
        'service': 'Patient Management API',
        'version': API_VERSION,
        'environment': settings.ENV,
        'uptime': round(time.monotonic() - _STARTED, 3),
        'checks': {'database': db_ok, 'cache': _cache_ok()},
    }
    if not db_ok:
        return responses.failure('API is unhealthy', 'DATABASE_CONNECTION_ERROR',
                                 status.HTTP_503_SERVICE_UNAVAILABLE, data)
    return responses.success(data, 'API is healthy')


@api_view(['GET'])
@permission_classes([AllowAny])
def api_info(request):
    """Index of the REST surface served under ``/api``."""
    return responses.success({
        'name': 'Patient Management API',
        'version': API_VERSION,
        'description': 'REST API for managing patient records',
        'endpoints': {
            'health': 'GET /api/health',
            'patients': {
                'list': 'GET /api/patients',
                'create': 'POST /api/patients',
                'detail': 'GET /api/patients/:id',
                'update': 'PUT|PATCH /api/patients/:id',
                'delete': 'DELETE /api/patients/:id',
                'search': 'GET /api/patients/search?q=',
                'ageRange': 'GET /api/patients/age-range?minAge=&maxAge=',
                'stats': 'GET /api/patients/stats',
                'export': 'GET /api/patients/export?format=json|csv',
                'bulk': 'POST /api/patients/bulk',
                'health': 'GET /api/patients/health',
            },
            'docs': ['/swagger/', '/redoc/'],
        },
    }, 'Patient Management API')
