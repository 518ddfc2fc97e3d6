import logging

from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthz(request):
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
    except DatabaseError as e:
        logger.error('health check: database unavailable: %s', e)
        return JsonResponse({'ok': False, 'db': False, 'error': str(e)}, status=503)
    try:
        cache.set('healthz', 1, 5)
        cache_ok = cache.get('healthz') == 1
    except Exception as e:  # redis client errors do not share a base class
        logger.warning('health check: cache unavailable: %s', e)
        cache_ok = False
    return JsonResponse({'ok': True, 'db': bool(row and row[0] == 1), 'cache': cache_ok})
