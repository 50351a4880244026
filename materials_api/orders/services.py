from rest_framework.exceptions import NotFound

from .models import Order


def lock_order(order_id):
    """
    Take the per-order write lock. Every mutation of an order's delivery,
    payment or dispute runs after this call inside the same atomic block.
    """
    try:
        return (
            Order.objects.select_for_update()
            .select_related('supplier', 'supplier__owner', 'contractor')
            .get(pk=order_id)
        )
    except Order.DoesNotExist:
        raise NotFound("Order not found.")


def is_participant(order, user):
    return user.id in (order.contractor_id, order.supplier.owner_id)
