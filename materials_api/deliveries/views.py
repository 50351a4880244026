from rest_framework import views as drf_views, permissions, status
from rest_framework.response import Response
from rest_framework_simplejwt.authentication import JWTAuthentication
from drf_yasg.utils import swagger_auto_schema

from accounts import permissions as account_permissions
from . import serializers as my_serializers
from . import services
from .throttles import DeliveryPinRateThrottle


class StartDeliveryAPIView(drf_views.APIView):
    """
    Dispatches a confirmed order.

    Only the supplier that owns the order can start delivery. For orders at or
    above the PIN threshold a 4-digit PIN is generated and sent to the
    contractor; the driver asks for it on site.
    """
    authentication_classes = [JWTAuthentication]
    permission_classes = [permissions.IsAuthenticated, account_permissions.IsSupplier]

    @swagger_auto_schema(
        operation_summary="Start delivery of a confirmed order",
        request_body=my_serializers.StartDeliverySerializer,
        responses={
            201: my_serializers.DeliverySerializer,
            403: "Not the order's supplier",
            409: "Order is not confirmed or delivery already started",
        }
    )
    def post(self, request, order_id, *args, **kwargs):
        serializer = my_serializers.StartDeliverySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        delivery = services.start_delivery(
            order_id,
            request.user,
            driver=serializer.validated_data.get('driver'),
        )
        return Response({
            'detail': "Delivery started.",
            'delivery': my_serializers.DeliverySerializer(delivery).data,
        }, status=status.HTTP_201_CREATED)


class VerifyPinAPIView(drf_views.APIView):
    """
    Supplier-side PIN check for high-value orders.

    A wrong PIN returns 400 with ``remaining_attempts``; the third wrong PIN
    locks the delivery and every later call returns 423.
    """
    authentication_classes = [JWTAuthentication]
    permission_classes = [permissions.IsAuthenticated, account_permissions.IsSupplierOrDriver]
    throttle_classes = [DeliveryPinRateThrottle]

    @swagger_auto_schema(
        operation_summary="Verify the delivery PIN",
        request_body=my_serializers.PinAttemptSerializer,
        responses={
            200: "PIN verified, awaiting contractor confirmation",
            400: "Malformed or wrong PIN",
            403: "Not the supplier or assigned driver",
            409: "Already confirmed or wrong verification method",
            423: "Maximum PIN attempts exceeded",
        }
    )
    def post(self, request, pk, *args, **kwargs):
        serializer = my_serializers.PinAttemptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = services.submit_pin_attempt(pk, serializer.validated_data['pin'], request.user)
        return Response(result, status=status.HTTP_200_OK)


class PhotoProofAPIView(drf_views.APIView):
    """Supplier-side photo proof for orders below the PIN threshold."""
    authentication_classes = [JWTAuthentication]
    permission_classes = [permissions.IsAuthenticated, account_permissions.IsSupplier]

    @swagger_auto_schema(
        operation_summary="Submit delivery photo proof",
        request_body=my_serializers.PhotoProofSerializer,
        responses={
            200: "Photo accepted, awaiting contractor confirmation",
            400: "Invalid photo URL",
            403: "Not the order's supplier",
            409: "Already confirmed or wrong verification method",
        }
    )
    def post(self, request, pk, *args, **kwargs):
        serializer = my_serializers.PhotoProofSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = services.submit_photo_proof(pk, serializer.validated_data['photo_url'], request.user)
        return Response(result, status=status.HTTP_200_OK)


class ConfirmDeliveryAPIView(drf_views.APIView):
    """
    Contractor confirms receipt.

    The confirmation succeeds on its own; ``payment_released`` tells whether
    the escrow was released in the same request or is left for retry.
    """
    authentication_classes = [JWTAuthentication]
    permission_classes = [permissions.IsAuthenticated, account_permissions.IsContractor]

    @swagger_auto_schema(
        operation_summary="Confirm receipt of a delivery",
        responses={
            200: "Receipt confirmed",
            403: "Not the order's contractor",
            409: "Supplier has not confirmed, or already confirmed",
        }
    )
    def post(self, request, order_id, *args, **kwargs):
        result = services.confirm_delivery_by_contractor(order_id, request.user)
        return Response(result, status=status.HTTP_200_OK)
