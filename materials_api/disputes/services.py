import logging

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound

from deliveries.models import Delivery
from escrow.services import EscrowService
from materials_api.exceptions import NotOwner
from notifications import services as notifications
from orders.models import Order
from orders.services import lock_order
from payments.models import Payment
from .exceptions import (
    AlreadyDisputed,
    DisputeNotOpen,
    InvalidOutcome,
    InvalidReason,
    OrderRejected,
    PaymentAlreadyReleased,
)
from .models import Dispute

logger = logging.getLogger(__name__)


class DisputeService:
    def __init__(self, escrow_service=None):
        self.escrow = escrow_service or EscrowService()

    def open_dispute(self, order_id, reason, user):
        """
        Open a dispute for the contractor and freeze the escrow, all or nothing.
        Every refusal is raised; nothing is written unless the payment froze.
        """
        reason = (reason or '').strip()

        with transaction.atomic():
            order = lock_order(order_id)

            if order.contractor_id != user.id:
                raise NotOwner("Only the contractor who placed the order can open a dispute.")
            if len(reason) < Dispute.MIN_REASON_LENGTH:
                raise InvalidReason()
            if order.status == Order.DISPUTED or Dispute.objects.open().filter(order=order).exists():
                raise AlreadyDisputed()
            if order.status == Order.REJECTED:
                raise OrderRejected()
            if Payment.objects.filter(order=order, status=Payment.RELEASED).exists():
                raise PaymentAlreadyReleased()

            status_at_open = order.status
            try:
                with transaction.atomic():
                    dispute = Dispute.objects.create(
                        order=order,
                        raised_by=user,
                        reason=reason,
                        order_status_at_open=status_at_open,
                    )
            except IntegrityError:
                raise AlreadyDisputed()

            order.transition_to(Order.DISPUTED)
            self.escrow.freeze_for_dispute(order.id)

            notifications.notify(
                order.supplier.owner,
                notifications.DISPUTE_OPENED,
                {'order_number': order.order_number, 'reason': reason},
                order=order,
                dedupe_key=f"dispute-opened-{dispute.id}",
            )
            logger.info(f"Dispute {dispute.id} opened on order {order.id} (was '{status_at_open}'), payment frozen")

        return dispute

    @staticmethod
    def _status_after_release(order, dispute):
        delivery = Delivery.objects.filter(order=order).first()
        if delivery and delivery.contractor_confirmed:
            return Order.DELIVERED
        if delivery and delivery.supplier_confirmed:
            return Order.AWAITING_CONTRACTOR_CONFIRMATION
        return dispute.order_status_at_open

    def resolve_dispute(self, dispute_id, outcome, resolution=''):
        """
        Close an open dispute.

        ``release``: the order goes back to where the protocol left it, the
        payment is unfrozen and released if both sides have confirmed.
        ``refund``: the payment is refunded and the order cancelled.
        """
        if outcome not in (Dispute.OUTCOME_RELEASE, Dispute.OUTCOME_REFUND):
            raise InvalidOutcome()

        order_id = Dispute.objects.filter(pk=dispute_id).values_list('order_id', flat=True).first()
        if order_id is None:
            raise NotFound("Dispute not found.")

        release_result = None
        with transaction.atomic():
            order = lock_order(order_id)
            dispute = Dispute.objects.select_for_update().get(pk=dispute_id)
            if not dispute.is_open:
                raise DisputeNotOpen()

            dispute.status = Dispute.RESOLVED
            dispute.outcome = outcome
            dispute.resolution = resolution or ''
            dispute.resolved_at = timezone.now()
            dispute.save(update_fields=['status', 'outcome', 'resolution', 'resolved_at', 'updated_at'])

            if outcome == Dispute.OUTCOME_RELEASE:
                if order.status == Order.DISPUTED:
                    order.transition_to(self._status_after_release(order, dispute))
                payment = self.escrow.unfreeze(order.id)
                if order.status == Order.DELIVERED:
                    release_result = self.escrow.attempt_release(order.id)
                    payment.refresh_from_db()
            else:
                payment = self.escrow.refund_frozen(order.id)
                order.transition_to(Order.CANCELLED)

            for recipient in (order.contractor, order.supplier.owner):
                notifications.notify(
                    recipient,
                    notifications.DISPUTE_RESOLVED,
                    {'order_number': order.order_number, 'outcome': outcome, 'resolution': dispute.resolution},
                    order=order,
                    dedupe_key=f"dispute-resolved-{dispute.id}-{recipient.id}",
                )
            logger.info(f"Dispute {dispute.id} on order {order.id} resolved with outcome '{outcome}'")

        order.refresh_from_db()
        return {
            'dispute_id': dispute.id,
            'outcome': outcome,
            'order_status': order.status,
            'payment_status': payment.status,
            'payment_released': bool(release_result and release_result['status'] == 'success'),
        }
