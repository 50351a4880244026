from django.db import models
from auditlog.registry import auditlog

from orders.models import Order


class Payment(models.Model):
    """
    Escrowed payment for one order. ``status`` is the escrow state; the
    release_committed_at / gateway_acknowledged_at pair tracks whether the
    committed release has actually reached the payment gateway.
    """
    PENDING = 'pending'
    HELD = 'held'
    RELEASED = 'released'
    REFUNDED = 'refunded'
    FROZEN = 'frozen'

    STATUS_CHOICES = (
        (PENDING, 'Pending'),
        (HELD, 'Held in escrow'),
        (RELEASED, 'Released'),
        (REFUNDED, 'Refunded'),
        (FROZEN, 'Frozen'),
    )

    order = models.OneToOneField(Order, on_delete=models.PROTECT, related_name='payment')
    amount = models.DecimalField(max_digits=12, decimal_places=3)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    provider = models.CharField(max_length=50, blank=True) # e.g., 'hyperpay', 'manual'
    provider_transaction_id = models.CharField(max_length=255, blank=True)

    supplier_amount = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    commission_amount = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)

    release_committed_at = models.DateTimeField(null=True, blank=True)
    gateway_acknowledged_at = models.DateTimeField(null=True, blank=True)
    gateway_reference = models.CharField(max_length=255, blank=True)
    gateway_attempts = models.PositiveIntegerField(default=0)
    last_gateway_error = models.TextField(blank=True)

    frozen_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['status', 'gateway_acknowledged_at'], name='payment_release_pending_idx'),
        ]

    def __str__(self):
        return f"Payment {self.amount} JOD for {self.order.order_number} ({self.status})"

    @property
    def awaiting_gateway(self):
        return self.status == self.RELEASED and self.gateway_acknowledged_at is None

    @property
    def release_idempotency_key(self):
        return f"order-{self.order_id}-release"


auditlog.register(Payment)
