from django.contrib import admin

from .models import Delivery, DeliveryAttempt


class DeliveryAttemptInline(admin.TabularInline):
    model = DeliveryAttempt
    extra = 0
    can_delete = False
    readonly_fields = ('submitted_by', 'method', 'outcome', 'created_at')

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    list_display = ('id', 'order', 'driver', 'pin_attempts', 'supplier_confirmed', 'contractor_confirmed', 'started_at')
    list_filter = ('supplier_confirmed', 'contractor_confirmed', 'pin_verified')
    search_fields = ('order__order_number',)
    # Confirmation state only changes through the confirmation endpoints
    exclude = ('confirmation_pin',)
    readonly_fields = (
        'order', 'pin_attempts', 'pin_verified', 'pin_verified_at', 'photo_url',
        'supplier_confirmed', 'supplier_confirmed_at', 'contractor_confirmed',
        'contractor_confirmed_at', 'started_at', 'completed_at',
    )
    inlines = [DeliveryAttemptInline]
