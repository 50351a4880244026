from django.db import models
from django.conf import settings
from auditlog.registry import auditlog

from orders.models import Order
from .rules import DeliveryRules, determine_method


class Delivery(models.Model):
    order = models.OneToOneField(Order, on_delete=models.PROTECT, related_name='delivery')
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='driven_deliveries',
    )

    confirmation_pin = models.CharField(max_length=4, blank=True)
    pin_attempts = models.PositiveSmallIntegerField(default=0)
    pin_verified = models.BooleanField(default=False)
    pin_verified_at = models.DateTimeField(null=True, blank=True)
    photo_url = models.URLField(max_length=1000, null=True, blank=True)

    supplier_confirmed = models.BooleanField(default=False)
    supplier_confirmed_at = models.DateTimeField(null=True, blank=True)
    contractor_confirmed = models.BooleanField(default=False)
    contractor_confirmed_at = models.DateTimeField(null=True, blank=True)

    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Deliveries"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(supplier_confirmed=False) | models.Q(pin_verified=True) | models.Q(photo_url__isnull=False),
                name='delivery_supplier_confirmation_has_proof',
            ),
        ]

    def __str__(self):
        return f"Delivery for {self.order.order_number}"

    def verification_method(self, rules=None):
        """Derived from the order value on every call; never stored."""
        rules = rules or DeliveryRules.from_settings()
        return determine_method(self.order.total_amount, rules.pin_threshold)

    def is_locked_out(self, rules=None):
        rules = rules or DeliveryRules.from_settings()
        return self.pin_attempts >= rules.max_pin_attempts

    def remaining_attempts(self, rules=None):
        rules = rules or DeliveryRules.from_settings()
        return max(rules.max_pin_attempts - self.pin_attempts, 0)


class DeliveryAttempt(models.Model):
    """Append-only log of proof submissions. Never updated or deleted."""
    VERIFIED = 'verified'
    WRONG_PIN = 'wrong_pin'
    ATTEMPTS_EXCEEDED = 'attempts_exceeded'
    PHOTO_ACCEPTED = 'photo_accepted'

    OUTCOME_CHOICES = (
        (VERIFIED, 'PIN verified'),
        (WRONG_PIN, 'Wrong PIN'),
        (ATTEMPTS_EXCEEDED, 'Attempts exceeded'),
        (PHOTO_ACCEPTED, 'Photo accepted'),
    )

    delivery = models.ForeignKey(Delivery, on_delete=models.PROTECT, related_name='attempts')
    submitted_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='delivery_attempts')
    method = models.CharField(max_length=10)
    outcome = models.CharField(max_length=20, choices=OUTCOME_CHOICES)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.method} attempt on delivery {self.delivery_id}: {self.outcome}"

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValueError("Delivery attempts are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Delivery attempts are append-only.")


auditlog.register(Delivery, exclude_fields=['confirmation_pin'])
