import logging

from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class ServiceError(APIException):
    """Business rule failure raised by the service layer.

    ``extra`` is merged into the response body, e.g. the id of the
    invoice a prescription was already converted to.
    """
    status_code = 400
    default_code = 'service_error'
    default_detail = 'Request could not be processed'

    def __init__(self, detail=None, code=None, **extra):
        super().__init__(detail, code)
        self.extra = extra


class BusinessRuleError(ServiceError):
    status_code = 400
    default_code = 'invalid'


class ConflictError(ServiceError):
    status_code = 409
    default_code = 'conflict'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view')
        logger.exception('unhandled error in %s', getattr(view, '__name__', view.__class__.__name__ if view else '?'))
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    if isinstance(exc, ServiceError):
        body = {'ok': False, 'error': {'code': exc.get_codes(), 'message': str(exc.detail)}}
        body.update(exc.extra)
        return Response(body, status=resp.status_code)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    code = getattr(exc, 'default_code', 'api_error')
    return Response({'ok': False, 'error': {'code': code, 'message': detail}}, status=resp.status_code, headers=_auth_headers(resp))


def _auth_headers(resp) -> dict:
    # keep WWW-Authenticate / Retry-After set by DRF
    return {k: v for k, v in resp.items() if k in ('WWW-Authenticate', 'Retry-After')}
