from django.db import models
from django.conf import settings
from auditlog.registry import auditlog
from auditlog.models import AuditlogHistoryField

from orders.models import Order


class DisputeQuerySet(models.QuerySet):
    def open(self):
        return self.filter(status__in=Dispute.OPEN_STATUSES)


class Dispute(models.Model):
    OPEN = 'open'
    INVESTIGATING = 'investigating'
    ESCALATED = 'escalated'
    RESOLVED = 'resolved'
    CLOSED = 'closed'

    STATUS_CHOICES = (
        (OPEN, 'Open'),
        (INVESTIGATING, 'Investigating'),
        (ESCALATED, 'Escalated'),
        (RESOLVED, 'Resolved'),
        (CLOSED, 'Closed'),
    )
    OPEN_STATUSES = (OPEN, INVESTIGATING, ESCALATED)

    OUTCOME_RELEASE = 'release'
    OUTCOME_REFUND = 'refund'
    OUTCOME_CHOICES = (
        (OUTCOME_RELEASE, 'Release to supplier'),
        (OUTCOME_REFUND, 'Refund to contractor'),
    )

    MIN_REASON_LENGTH = 10

    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name='disputes')
    raised_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='disputes')
    reason = models.TextField()

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=OPEN)
    # Restored when the dispute is resolved in the supplier's favour
    order_status_at_open = models.CharField(max_length=40, choices=Order.STATUS_CHOICES)
    resolution = models.TextField(blank=True)
    outcome = models.CharField(max_length=10, choices=OUTCOME_CHOICES, blank=True)

    opened_at = models.DateTimeField(auto_now_add=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    history = AuditlogHistoryField()

    objects = DisputeQuerySet.as_manager()

    class Meta:
        ordering = ['-opened_at']
        constraints = [
            models.UniqueConstraint(
                fields=['order'],
                condition=models.Q(status__in=['open', 'investigating', 'escalated']),
                name='one_open_dispute_per_order',
            ),
        ]

    def __str__(self):
        return f"Dispute on {self.order.order_number} by {self.raised_by}"

    @property
    def is_open(self):
        return self.status in self.OPEN_STATUSES


auditlog.register(Dispute)
