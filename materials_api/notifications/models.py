from django.db import models
from django.conf import settings


class OutboxEvent(models.Model):
    """
    Notification waiting to be delivered. Rows are written in the same
    transaction as the state change they describe and dispatched afterwards,
    so a delivery failure can never undo that state change.
    """
    PENDING = 'pending'
    DISPATCHED = 'dispatched'
    FAILED = 'failed'

    STATUS_CHOICES = (
        (PENDING, 'Pending'),
        (DISPATCHED, 'Dispatched'),
        (FAILED, 'Failed'),
    )

    event_type = models.CharField(max_length=80)
    recipient = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='outbox_events')
    order = models.ForeignKey('orders.Order', on_delete=models.CASCADE, null=True, blank=True, related_name='outbox_events')
    payload = models.JSONField(default=dict, blank=True)
    dedupe_key = models.CharField(max_length=180, unique=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    dispatched_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='outbox_pending_idx'),
        ]

    def __str__(self):
        return f"{self.event_type} -> {self.recipient} ({self.status})"
