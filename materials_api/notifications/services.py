import uuid
import logging

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.utils import timezone

from .models import OutboxEvent

logger = logging.getLogger(__name__)

DELIVERY_STARTED = 'delivery.started'
SUPPLIER_CONFIRMED = 'delivery.supplier_confirmed'
PIN_LOCKED = 'delivery.pin_locked'
CONTRACTOR_CONFIRMED = 'delivery.contractor_confirmed'
PAYMENT_RELEASED = 'payment.released'
PAYMENT_REFUNDED = 'payment.refunded'
DISPUTE_OPENED = 'dispute.opened'
DISPUTE_RESOLVED = 'dispute.resolved'

SUBJECTS = {
    DELIVERY_STARTED: "Your order {order_number} is on its way",
    SUPPLIER_CONFIRMED: "Please confirm receipt of order {order_number}",
    PIN_LOCKED: "Delivery PIN locked for order {order_number}",
    CONTRACTOR_CONFIRMED: "Order {order_number} receipt confirmed",
    PAYMENT_RELEASED: "Payment released for order {order_number}",
    PAYMENT_REFUNDED: "Payment refunded for order {order_number}",
    DISPUTE_OPENED: "A dispute was opened on order {order_number}",
    DISPUTE_RESOLVED: "Dispute on order {order_number} resolved",
}


def notify(recipient, event_type, payload=None, *, order=None, dedupe_key=None):
    """
    Queue a notification. Call inside the transaction that commits the state
    change; a repeated ``dedupe_key`` returns the existing event instead of
    queueing a second one.
    """
    key = (dedupe_key or f"{event_type}:{uuid.uuid4().hex}")[:180]
    event, created = OutboxEvent.objects.get_or_create(
        dedupe_key=key,
        defaults={
            'event_type': event_type,
            'recipient': recipient,
            'order': order,
            'payload': payload or {},
        },
    )
    if created:
        logger.info(f"Queued {event_type} for user {recipient.id} (event {event.id})")
    return event


def _render(event):
    context = {'order_number': event.payload.get('order_number', '')}
    subject = SUBJECTS.get(event.event_type, event.event_type).format(**context)
    lines = [f"{key.replace('_', ' ').capitalize()}: {value}" for key, value in sorted(event.payload.items())]
    message = "\n".join(lines + ["", f"The {settings.SITE_NAME} Team"])
    return subject, message


def dispatch_event(event):
    """Deliver one event by email. Failures are logged and left for retry."""
    if not event.recipient.email:
        event.status = OutboxEvent.FAILED
        event.last_error = "Recipient has no email address"
        event.save(update_fields=['status', 'last_error'])
        return False

    subject, message = _render(event)
    try:
        send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[event.recipient.email],
            fail_silently=False,
        )
    except Exception as e:
        event.attempts += 1
        event.last_error = str(e)
        if event.attempts >= settings.OUTBOX_MAX_ATTEMPTS:
            event.status = OutboxEvent.FAILED
        event.save(update_fields=['attempts', 'last_error', 'status'])
        logger.error(f"Notification {event.id} ({event.event_type}) failed: {str(e)}")
        return False

    event.attempts += 1
    event.status = OutboxEvent.DISPATCHED
    event.dispatched_at = timezone.now()
    event.save(update_fields=['attempts', 'status', 'dispatched_at'])
    return True


def dispatch_pending(limit=100):
    """
    Deliver pending events, oldest first. Returns the number delivered.

    Each event is claimed and marked in its own transaction, so a failure on
    one event never undoes the marks of events already emailed.
    """
    delivered = 0
    pending_ids = list(
        OutboxEvent.objects.filter(status=OutboxEvent.PENDING)
        .order_by('created_at', 'id')
        .values_list('id', flat=True)[:limit]
    )
    for event_id in pending_ids:
        with transaction.atomic():
            event = (
                OutboxEvent.objects.select_for_update(skip_locked=True)
                .select_related('recipient')
                .filter(pk=event_id, status=OutboxEvent.PENDING)
                .first()
            )
            if event is not None and dispatch_event(event):
                delivered += 1
    return delivered
