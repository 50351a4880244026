from django.db import OperationalError
from rest_framework import status
from rest_framework.exceptions import NotFound, ValidationError

from deliveries.exceptions import AttemptsExceeded, WrongPin
from materials_api.exceptions import NotOwner, api_exception_handler


def handle(exc):
    return api_exception_handler(exc, {'view': None})


def test_wrong_pin_carries_remaining_attempts():
    response = handle(WrongPin(1))

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.data['code'] == 'wrong_pin'
    assert response.data['remaining_attempts'] == 1


def test_attempts_exceeded_is_locked():
    response = handle(AttemptsExceeded())

    assert response.status_code == status.HTTP_423_LOCKED
    assert response.data == {
        'detail': AttemptsExceeded.default_detail,
        'code': 'attempts_exceeded',
        'remaining_attempts': 0,
    }


def test_not_owner_is_forbidden():
    response = handle(NotOwner())
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.data['code'] == 'not_owner'


def test_datastore_failure_is_retryable():
    response = handle(OperationalError("could not obtain lock"))

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.data['code'] == 'service_unavailable'
    assert response.data['retryable'] is True


def test_framework_errors_get_a_code():
    assert handle(NotFound()).data['code'] == 'not_found'

    response = handle(ValidationError({'pin': ['This field is required.']}))
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.data['code'] == 'invalid'
    assert 'pin' in response.data


def test_unhandled_exceptions_are_left_to_django():
    assert handle(RuntimeError("boom")) is None
