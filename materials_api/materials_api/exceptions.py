import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class DomainError(APIException):
    """
    Base for expected business outcomes. ``extra`` is merged into the error
    body so callers get structured context (e.g. remaining PIN attempts).
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with the current state.'
    default_code = 'state_conflict'

    def __init__(self, detail=None, code=None, **extra):
        super().__init__(detail=detail, code=code)
        self.extra = extra


class DomainValidationError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'invalid'


class NotOwner(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You are not allowed to act on this order.'
    default_code = 'not_owner'


def api_exception_handler(exc, context):
    """
    DRF exception handler that adds a stable ``code`` to every error body and
    reports datastore failures as retryable 503s instead of bare 500s.
    """
    if isinstance(exc, DatabaseError):
        view = context.get('view')
        logger.error(f"Datastore failure in {view.__class__.__name__ if view else 'unknown view'}: {exc}")
        return Response(
            {
                'detail': 'Temporary storage failure, please retry.',
                'code': 'service_unavailable',
                'retryable': True,
            },
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    response = exception_handler(exc, context)
    if response is None:
        return None

    if not isinstance(response.data, dict):
        response.data = {'detail': response.data}

    if 'code' not in response.data:
        codes = exc.get_codes() if hasattr(exc, 'get_codes') else None
        if isinstance(codes, str):
            response.data['code'] = codes
        else:
            response.data['code'] = getattr(exc, 'default_code', 'error')

    if isinstance(exc, DomainError):
        response.data.update(exc.extra)
    return response
