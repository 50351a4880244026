from django.contrib import admin

from .models import OutboxEvent


@admin.register(OutboxEvent)
class OutboxEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'event_type', 'recipient', 'order', 'status', 'attempts', 'created_at', 'dispatched_at')
    list_filter = ('event_type', 'status')
    search_fields = ('dedupe_key', 'recipient__email', 'order__order_number')
    # Payloads can carry the delivery PIN
    exclude = ('payload',)
