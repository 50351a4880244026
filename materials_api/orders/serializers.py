from rest_framework import serializers

from deliveries.serializers import DeliverySerializer
from payments.serializers import PaymentSummarySerializer
from .models import Order


class OrderDetailSerializer(serializers.ModelSerializer):
    contractor = serializers.StringRelatedField()
    supplier = serializers.StringRelatedField()
    delivery = serializers.SerializerMethodField()
    payment = serializers.SerializerMethodField()
    open_dispute_id = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = (
            'id',
            'order_number',
            'contractor',
            'supplier',
            'total_amount',
            'status',
            'delivery',
            'payment',
            'open_dispute_id',
            'created_at',
            'updated_at',
            'completed_at',
        )
        read_only_fields = fields

    def get_delivery(self, obj):
        delivery = getattr(obj, 'delivery', None)
        return DeliverySerializer(delivery, context=self.context).data if delivery else None

    def get_payment(self, obj):
        payment = getattr(obj, 'payment', None)
        return PaymentSummarySerializer(payment).data if payment else None

    def get_open_dispute_id(self, obj):
        dispute = obj.disputes.open().first()
        return dispute.id if dispute else None
