from rest_framework import generics, permissions, status, filters, views as drf_views
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.response import Response
from rest_framework_simplejwt.authentication import JWTAuthentication
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from orders.models import Order
from orders.services import is_participant
from . import serializers as my_serializers
from .models import Dispute
from .permissions import IsModerator, is_moderator
from .services import DisputeService


class OrderDisputeAPIView(drf_views.APIView):
    """
    POST: the contractor opens a dispute on the order, freezing its escrow.
    GET: the order's latest dispute, for the contractor, the supplier or a moderator.
    """
    authentication_classes = [JWTAuthentication]
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Open a dispute for an order",
        request_body=my_serializers.DisputeCreateSerializer,
        responses={
            201: my_serializers.DisputeDetailSerializer(),
            400: "Reason shorter than 10 characters",
            403: "Not the order's contractor",
            409: "Already disputed, order rejected, or payment already released",
        }
    )
    def post(self, request, order_id, *args, **kwargs):
        serializer = my_serializers.DisputeCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        dispute = DisputeService().open_dispute(order_id, serializer.validated_data['reason'], request.user)

        return Response({
            "detail": "Dispute opened. The payment is frozen until it is resolved.",
            "dispute": my_serializers.DisputeDetailSerializer(dispute).data,
        }, status=status.HTTP_201_CREATED)

    @swagger_auto_schema(
        operation_summary="Retrieve the dispute status of an order",
        responses={200: my_serializers.DisputeDetailSerializer(), 404: "No dispute for this order"}
    )
    def get(self, request, order_id, *args, **kwargs):
        order = get_object_or_404(Order.objects.select_related('supplier'), pk=order_id)
        if not (is_participant(order, request.user) or is_moderator(request.user)):
            raise PermissionDenied("You are not a party to this order.")

        dispute = order.disputes.select_related('order', 'raised_by').first()
        if dispute is None:
            raise NotFound("No dispute has been opened for this order.")
        return Response(my_serializers.DisputeDetailSerializer(dispute).data)


class ListDisputesAPIView(generics.ListAPIView):
    """
    List disputes.
    - Moderators/Admins see all disputes.
    - Contractors/Suppliers see only disputes on their own orders.
    """
    serializer_class = my_serializers.DisputeDetailSerializer
    permission_classes = [permissions.IsAuthenticated]
    authentication_classes = [JWTAuthentication]
    filter_backends = [filters.OrderingFilter, DjangoFilterBackend]
    filterset_fields = ['status', 'outcome']
    ordering_fields = ['opened_at', 'updated_at']
    ordering = ['-updated_at']

    @swagger_auto_schema(
        operation_summary="List disputes with optional filtering",
        manual_parameters=[
            openapi.Parameter(
                'status',
                openapi.IN_QUERY,
                description="Filter disputes by status",
                type=openapi.TYPE_STRING
            ),
            openapi.Parameter(
                'outcome',
                openapi.IN_QUERY,
                description="Filter disputes by resolution outcome",
                type=openapi.TYPE_STRING
            ),
            openapi.Parameter(
                'ordering',
                openapi.IN_QUERY,
                description="Order results by one of: opened_at, updated_at",
                type=openapi.TYPE_STRING
            ),
        ],
        responses={200: my_serializers.DisputeDetailSerializer(many=True)}
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        user = self.request.user
        queryset = Dispute.objects.select_related('order', 'raised_by')
        if is_moderator(user):
            return queryset

        return queryset.filter(
            Q(order__contractor=user) | Q(order__supplier__owner=user)
        )


class ResolveDisputeAPIView(drf_views.APIView):
    """
    Moderator closes an open dispute.

    ``release`` unfreezes the payment and releases it if both parties have
    confirmed; ``refund`` refunds the contractor and cancels the order.
    """
    authentication_classes = [JWTAuthentication]
    permission_classes = [permissions.IsAuthenticated, IsModerator]

    @swagger_auto_schema(
        operation_summary="Resolve a dispute as moderator",
        request_body=my_serializers.DisputeResolveSerializer,
        responses={200: "Dispute resolved", 400: "Validation error", 409: "Dispute is not open"}
    )
    def post(self, request, id, *args, **kwargs):
        serializer = my_serializers.DisputeResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = DisputeService().resolve_dispute(
            id,
            serializer.validated_data['outcome'],
            serializer.validated_data.get('resolution', ''),
        )
        return Response(result, status=status.HTTP_200_OK)
