from django.contrib import admin
from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('id', 'order', 'amount', 'provider', 'status', 'release_committed_at', 'gateway_acknowledged_at', 'gateway_attempts')
    list_filter = ('provider', 'status')
    search_fields = ('provider_transaction_id', 'gateway_reference', 'order__order_number')
    readonly_fields = (
        'order', 'amount', 'status', 'supplier_amount', 'commission_amount',
        'release_committed_at', 'gateway_acknowledged_at', 'gateway_reference',
        'gateway_attempts', 'last_gateway_error', 'frozen_at', 'refunded_at',
    )
