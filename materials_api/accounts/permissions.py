from rest_framework.permissions import BasePermission

from .models import CustomUser


class IsContractor(BasePermission):
    message = "Only contractors can perform this action."

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated
                    and request.user.user_type == CustomUser.CONTRACTOR)


class IsSupplier(BasePermission):
    message = "Only suppliers can perform this action."

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated
                    and request.user.user_type == CustomUser.SUPPLIER)


class IsSupplierOrDriver(BasePermission):
    """Suppliers and the drivers delivering for them."""
    message = "Only suppliers or drivers can perform this action."

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated
                    and request.user.user_type in (CustomUser.SUPPLIER, CustomUser.DRIVER))
