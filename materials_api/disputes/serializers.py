from rest_framework import serializers

from .models import Dispute


class DisputeCreateSerializer(serializers.Serializer):
    # Length is enforced by the service so short reasons get the invalid_reason code
    reason = serializers.CharField(max_length=2000, trim_whitespace=True, allow_blank=True)


class DisputeResolveSerializer(serializers.Serializer):
    outcome = serializers.ChoiceField(choices=Dispute.OUTCOME_CHOICES)
    resolution = serializers.CharField(max_length=2000, required=False, allow_blank=True, default='')


class DisputeDetailSerializer(serializers.ModelSerializer):
    """
    Serializer for retrieving a dispute with the state of the order it froze.
    """
    order_number = serializers.CharField(source='order.order_number', read_only=True)
    order_status = serializers.CharField(source='order.status', read_only=True)
    raised_by = serializers.StringRelatedField()
    is_open = serializers.BooleanField(read_only=True)

    class Meta:
        model = Dispute
        fields = [
            'id', 'order', 'order_number', 'order_status', 'raised_by', 'reason', 'status', 'is_open',
            'order_status_at_open', 'outcome', 'resolution', 'opened_at', 'resolved_at', 'updated_at',
        ]
        read_only_fields = fields
