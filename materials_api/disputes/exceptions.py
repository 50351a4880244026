from materials_api.exceptions import DomainError, DomainValidationError


class AlreadyDisputed(DomainError):
    default_detail = 'A dispute is already open for this order.'
    default_code = 'already_disputed'


class OrderRejected(DomainError):
    default_detail = 'A rejected order cannot be disputed.'
    default_code = 'order_rejected'


class PaymentAlreadyReleased(DomainError):
    default_detail = 'The payment for this order has already been released.'
    default_code = 'payment_already_released'


class DisputeNotOpen(DomainError):
    default_detail = 'This dispute is no longer open.'
    default_code = 'dispute_not_open'


class InvalidReason(DomainValidationError):
    default_detail = 'Please describe the problem in at least 10 characters.'
    default_code = 'invalid_reason'


class InvalidOutcome(DomainValidationError):
    default_detail = "Outcome must be 'release' or 'refund'."
    default_code = 'invalid_outcome'
