from rest_framework.permissions import BasePermission

from .services import is_participant


class IsOrderParticipant(BasePermission):
    """
    Allows access only to the order's contractor, its supplier, or the driver
    assigned to its delivery.
    """
    def has_object_permission(self, request, view, obj):
        if is_participant(obj, request.user):
            return True
        delivery = getattr(obj, 'delivery', None)
        return bool(delivery and delivery.driver_id == request.user.id)
