from django.contrib import admin, messages
from rest_framework.exceptions import APIException

from .models import Dispute
from .services import DisputeService


@admin.register(Dispute)
class DisputeAdmin(admin.ModelAdmin):
    list_display = ('id', 'order', 'raised_by', 'status', 'outcome', 'opened_at', 'resolved_at')
    list_filter = ('status', 'outcome')
    search_fields = ('order__order_number', 'raised_by__email', 'reason')
    readonly_fields = ('order', 'raised_by', 'reason', 'order_status_at_open', 'outcome', 'opened_at', 'resolved_at')
    actions = ['resolve_with_release', 'resolve_with_refund']

    def _resolve(self, request, queryset, outcome):
        service = DisputeService()
        for dispute in queryset:
            try:
                service.resolve_dispute(dispute.id, outcome, resolution=f"Resolved from admin by {request.user}")
            except APIException as e:
                self.message_user(request, f"Dispute {dispute.id}: {e.detail}", level=messages.ERROR)
            else:
                self.message_user(request, f"Dispute {dispute.id} resolved ({outcome}).", level=messages.SUCCESS)

    @admin.action(description="Resolve: release payment to supplier")
    def resolve_with_release(self, request, queryset):
        self._resolve(request, queryset, Dispute.OUTCOME_RELEASE)

    @admin.action(description="Resolve: refund contractor")
    def resolve_with_refund(self, request, queryset):
        self._resolve(request, queryset, Dispute.OUTCOME_REFUND)
