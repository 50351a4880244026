from django.contrib import admin

from .models import Order, Supplier


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ('id', 'business_name', 'owner', 'payout_account_id', 'created_at')
    search_fields = ('business_name', 'owner__email')


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('order_number', 'contractor', 'supplier', 'total_amount', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('order_number', 'contractor__email', 'supplier__business_name')

    def get_readonly_fields(self, request, obj=None):
        # total_amount and status only move through the services once the order exists
        if obj is not None:
            return ('order_number', 'total_amount', 'status')
        return ()
