from django.contrib.auth import get_user_model
from rest_framework import serializers

from accounts.models import CustomUser
from .models import Delivery, DeliveryAttempt
from .rules import PIN

User = get_user_model()


class StartDeliverySerializer(serializers.Serializer):
    driver_id = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(user_type=CustomUser.DRIVER),
        source='driver',
        required=False,
        allow_null=True,
    )


class PinAttemptSerializer(serializers.Serializer):
    # Format is checked by the service so malformed PINs get the invalid_pin code
    pin = serializers.CharField(max_length=16, trim_whitespace=True)


class PhotoProofSerializer(serializers.Serializer):
    photo_url = serializers.CharField(max_length=1000, trim_whitespace=True)


class DeliveryAttemptSerializer(serializers.ModelSerializer):
    submitted_by = serializers.StringRelatedField()

    class Meta:
        model = DeliveryAttempt
        fields = ('id', 'method', 'outcome', 'submitted_by', 'created_at')
        read_only_fields = fields


class DeliverySerializer(serializers.ModelSerializer):
    """Delivery state as both parties see it. The confirmation PIN is never exposed."""
    verification_method = serializers.SerializerMethodField()
    remaining_attempts = serializers.SerializerMethodField()
    driver = serializers.StringRelatedField()

    class Meta:
        model = Delivery
        fields = (
            'id',
            'driver',
            'verification_method',
            'pin_verified',
            'pin_attempts',
            'remaining_attempts',
            'photo_url',
            'supplier_confirmed',
            'supplier_confirmed_at',
            'contractor_confirmed',
            'contractor_confirmed_at',
            'started_at',
            'completed_at',
        )
        read_only_fields = fields

    def get_verification_method(self, obj):
        return obj.verification_method(self.context.get('rules'))

    def get_remaining_attempts(self, obj):
        if obj.verification_method(self.context.get('rules')) != PIN:
            return None
        return obj.remaining_attempts(self.context.get('rules'))
