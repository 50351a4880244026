from rest_framework import serializers

from .models import Payment


class PaymentSummarySerializer(serializers.ModelSerializer):
    gateway_acknowledged = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = (
            "id",
            "amount",
            "status",
            "provider",
            "supplier_amount",
            "commission_amount",
            "release_committed_at",
            "gateway_acknowledged",
            "frozen_at",
            "refunded_at",
        )
        read_only_fields = fields

    def get_gateway_acknowledged(self, obj):
        return obj.gateway_acknowledged_at is not None
