from rest_framework import generics, permissions
from rest_framework_simplejwt.authentication import JWTAuthentication
from drf_yasg.utils import swagger_auto_schema

from . import serializers as my_serializers
from .models import Order
from .permissions import IsOrderParticipant


class OrderDetailAPIView(generics.RetrieveAPIView):
    """
    Order with its delivery confirmation state and escrow payment summary.
    Visible to the contractor, the supplier and the assigned driver.
    """
    serializer_class = my_serializers.OrderDetailSerializer
    authentication_classes = [JWTAuthentication]
    permission_classes = [permissions.IsAuthenticated, IsOrderParticipant]
    queryset = Order.objects.select_related('contractor', 'supplier', 'supplier__owner', 'delivery', 'payment')
    lookup_url_kwarg = 'order_id'

    @swagger_auto_schema(
        operation_summary="Retrieve an order with delivery and payment state",
        responses={200: my_serializers.OrderDetailSerializer(), 404: "Not found"}
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)
