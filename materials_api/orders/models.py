import uuid

from django.db import models
from django.conf import settings
from django.utils import timezone
from auditlog.registry import auditlog

from .exceptions import InvalidOrderStatus


class Supplier(models.Model):
    business_name = models.CharField(max_length=255)
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, related_name='suppliers', on_delete=models.PROTECT)
    # Gateway-side account the escrow is released to
    payout_account_id = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.business_name


def generate_order_number():
    return f"ORD-{timezone.now():%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


class Order(models.Model):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    IN_DELIVERY = 'in_delivery'
    AWAITING_CONTRACTOR_CONFIRMATION = 'awaiting_contractor_confirmation'
    DELIVERED = 'delivered'
    COMPLETED = 'completed'
    DISPUTED = 'disputed'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'

    STATUS_CHOICES = (
        (PENDING, 'Pending'),
        (CONFIRMED, 'Confirmed'),
        (IN_DELIVERY, 'In Delivery'),
        (AWAITING_CONTRACTOR_CONFIRMATION, 'Awaiting Contractor Confirmation'),
        (DELIVERED, 'Delivered'),
        (COMPLETED, 'Completed'),
        (DISPUTED, 'Disputed'),
        (REJECTED, 'Rejected'),
        (CANCELLED, 'Cancelled'),
    )

    # disputed -> * edges are only taken by dispute resolution
    ALLOWED_TRANSITIONS = {
        PENDING: {CONFIRMED, REJECTED, CANCELLED, DISPUTED},
        CONFIRMED: {IN_DELIVERY, CANCELLED, DISPUTED},
        IN_DELIVERY: {AWAITING_CONTRACTOR_CONFIRMATION, DISPUTED},
        AWAITING_CONTRACTOR_CONFIRMATION: {DELIVERED, DISPUTED},
        DELIVERED: {COMPLETED, DISPUTED},
        DISPUTED: {CONFIRMED, IN_DELIVERY, AWAITING_CONTRACTOR_CONFIRMATION, DELIVERED, COMPLETED, CANCELLED},
        COMPLETED: set(),
        REJECTED: set(),
        CANCELLED: set(),
    }

    order_number = models.CharField(max_length=32, unique=True, default=generate_order_number)
    contractor = models.ForeignKey(settings.AUTH_USER_MODEL, related_name='contractor_orders', on_delete=models.PROTECT)
    supplier = models.ForeignKey(Supplier, related_name='orders', on_delete=models.PROTECT)
    total_amount = models.DecimalField(max_digits=12, decimal_places=3)
    status = models.CharField(max_length=40, choices=STATUS_CHOICES, default=PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"{self.order_number} ({self.total_amount} JOD, {self.status})"

    def save(self, *args, **kwargs):
        update_fields = kwargs.get('update_fields')
        if self.pk and (update_fields is None or 'total_amount' in update_fields):
            stored = Order.objects.filter(pk=self.pk).values_list('total_amount', flat=True).first()
            if stored is not None and stored != self.total_amount:
                raise ValueError("Order total_amount is immutable once the order is placed.")
        super().save(*args, **kwargs)

    def can_transition_to(self, target):
        return target in self.ALLOWED_TRANSITIONS.get(self.status, set())

    def transition_to(self, target, *, save=True):
        """Move the order along the status graph; raises InvalidOrderStatus on an illegal edge."""
        if target == self.status:
            return self
        if not self.can_transition_to(target):
            raise InvalidOrderStatus(f"Cannot move order from '{self.status}' to '{target}'.")
        self.status = target
        fields = ['status', 'updated_at']
        if target == self.COMPLETED:
            self.completed_at = timezone.now()
            fields.append('completed_at')
        if save:
            self.save(update_fields=fields)
        return self


auditlog.register(Order)
