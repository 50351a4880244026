from rest_framework import status

from materials_api.exceptions import DomainError, DomainValidationError


class AlreadyConfirmed(DomainError):
    default_detail = 'This delivery has already been confirmed.'
    default_code = 'already_confirmed'


class WrongMethod(DomainError):
    default_detail = 'This delivery uses a different confirmation method.'
    default_code = 'wrong_method'


class InvalidUrl(DomainValidationError):
    default_detail = 'The photo URL is not valid.'
    default_code = 'invalid_url'


class InvalidPin(DomainValidationError):
    default_detail = 'The PIN must be exactly 4 digits.'
    default_code = 'invalid_pin'


class WrongPin(DomainValidationError):
    default_detail = 'Incorrect PIN.'
    default_code = 'wrong_pin'

    def __init__(self, remaining_attempts, detail=None):
        super().__init__(
            detail=detail or f'Incorrect PIN. {remaining_attempts} attempt(s) remaining.',
            remaining_attempts=remaining_attempts,
        )
        self.remaining_attempts = remaining_attempts


class AttemptsExceeded(DomainError):
    status_code = status.HTTP_423_LOCKED
    default_detail = 'Maximum PIN attempts exceeded. Contact support to unlock this delivery.'
    default_code = 'attempts_exceeded'

    def __init__(self, detail=None):
        super().__init__(detail=detail, remaining_attempts=0)


class SupplierNotConfirmed(DomainError):
    default_detail = 'The supplier has not confirmed this delivery yet.'
    default_code = 'supplier_not_confirmed'
