from materials_api.exceptions import DomainError


class NotBothConfirmed(DomainError):
    default_detail = 'Both the supplier and the contractor must confirm the delivery before release.'
    default_code = 'not_both_confirmed'


class PaymentNotHeld(DomainError):
    default_detail = 'The payment is not held in escrow.'
    default_code = 'payment_not_held'


class PaymentNotFrozen(DomainError):
    default_detail = 'The payment is not frozen.'
    default_code = 'payment_not_frozen'


class DisputeOpen(DomainError):
    default_detail = 'The payment cannot be released while a dispute is open.'
    default_code = 'dispute_open'


class AlreadyReleased(DomainError):
    default_detail = 'The payment has already been released to the supplier.'
    default_code = 'already_released'
