from materials_api.exceptions import DomainError


class InvalidOrderStatus(DomainError):
    default_detail = 'The order is not in a state that allows this action.'
    default_code = 'invalid_order_status'
