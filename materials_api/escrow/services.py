from decimal import Decimal
import logging

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from deliveries.models import Delivery
from disputes.models import Dispute
from materials_api.exceptions import DomainError
from notifications import services as notifications
from orders.models import Order
from orders.services import lock_order
from payments.models import Payment
from payments.services import PaymentService
from .exceptions import (
    AlreadyReleased,
    DisputeOpen,
    NotBothConfirmed,
    PaymentNotFrozen,
    PaymentNotHeld,
)

logger = logging.getLogger(__name__)

AMOUNT_QUANTUM = Decimal('0.001')


class EscrowService:
    """
    Moves an order's payment in lockstep with delivery confirmation and
    dispute state. Every transition runs under the order lock and is written
    with a compare-and-swap on ``Payment.status``.
    """
    def __init__(self, payment_service=None):
        self.payment_service = payment_service or PaymentService()

    @staticmethod
    def _locked_payment(order):
        try:
            return Payment.objects.select_for_update().get(order=order)
        except Payment.DoesNotExist:
            raise PaymentNotHeld("No escrow payment exists for this order.")

    @staticmethod
    def _swap_status(payment, from_status, **changes):
        """Compare-and-swap on status; False if another writer got there first."""
        changes['updated_at'] = timezone.now()
        updated = Payment.objects.filter(pk=payment.pk, status=from_status).update(**changes)
        if updated:
            payment.refresh_from_db()
        return bool(updated)

    def hold_for_order(self, order, *, provider='', provider_transaction_id=''):
        """Create the escrow payment when an order is placed."""
        payment, created = Payment.objects.get_or_create(
            order=order,
            defaults={
                'amount': order.total_amount,
                'status': Payment.HELD,
                'provider': provider or settings.PAYMENT_GATEWAY_PROVIDER,
                'provider_transaction_id': provider_transaction_id,
            },
        )
        if created:
            logger.info(f"Holding {payment.amount} JOD in escrow for order {order.id}")
        return payment

    def release_on_dual_confirmation(self, order_id):
        """
        Release the escrow once both sides confirmed and no dispute is open.
        The gateway call happens after commit (see dispatch_release).
        """
        with transaction.atomic():
            order = lock_order(order_id)
            payment = self._locked_payment(order)
            delivery = Delivery.objects.filter(order=order).first()

            if not (delivery and delivery.supplier_confirmed and delivery.contractor_confirmed):
                raise NotBothConfirmed()
            if Dispute.objects.open().filter(order=order).exists():
                raise DisputeOpen()
            if payment.status != Payment.HELD:
                raise PaymentNotHeld(f"Payment is '{payment.status}', not held.")

            rate = Decimal(str(settings.PLATFORM_COMMISSION_RATE))
            commission = (payment.amount * rate).quantize(AMOUNT_QUANTUM)
            if not self._swap_status(
                payment,
                Payment.HELD,
                status=Payment.RELEASED,
                release_committed_at=timezone.now(),
                commission_amount=commission,
                supplier_amount=payment.amount - commission,
            ):
                raise PaymentNotHeld()

            if order.can_transition_to(Order.COMPLETED):
                order.transition_to(Order.COMPLETED)

            notifications.notify(
                order.supplier.owner,
                notifications.PAYMENT_RELEASED,
                {
                    'order_number': order.order_number,
                    'amount': str(payment.supplier_amount),
                    'commission': str(payment.commission_amount),
                },
                order=order,
                dedupe_key=f"payment-released-{payment.id}",
            )
            logger.info(f"Released payment {payment.id} for order {order.id} ({payment.supplier_amount} JOD to supplier)")

            payment_id = payment.id
            transaction.on_commit(lambda: _enqueue_release_dispatch(payment_id), robust=True)

        return payment

    def attempt_release(self, order_id):
        """
        Release if possible without failing the caller. Used right after a
        confirmation, where a refused or failed release is retried out-of-band.
        """
        try:
            with transaction.atomic():
                payment = self.release_on_dual_confirmation(order_id)
        except DomainError as e:
            logger.warning(f"Release for order {order_id} not performed: {e.default_code}: {e.detail}")
            return {'status': 'error', 'code': e.default_code, 'message': str(e.detail)}
        except DatabaseError as e:
            logger.error(f"Release for order {order_id} failed on the datastore: {str(e)}")
            return {'status': 'error', 'code': 'service_unavailable', 'message': str(e)}

        return {'status': 'success', 'payment_id': payment.id, 'payment_status': payment.status}

    def freeze_for_dispute(self, order_id):
        """held -> frozen. Idempotent on an already-frozen payment."""
        with transaction.atomic():
            order = lock_order(order_id)
            payment = self._locked_payment(order)

            if payment.status == Payment.FROZEN:
                return payment
            if payment.status == Payment.RELEASED:
                raise AlreadyReleased()
            if payment.status != Payment.HELD:
                raise PaymentNotHeld(f"Payment is '{payment.status}', only held payments can be frozen.")

            if not self._swap_status(payment, Payment.HELD, status=Payment.FROZEN, frozen_at=timezone.now()):
                raise PaymentNotHeld()
            logger.info(f"Froze payment {payment.id} for order {order.id}")
        return payment

    def unfreeze(self, order_id):
        """frozen -> held, only once no dispute on the order is open."""
        with transaction.atomic():
            order = lock_order(order_id)
            payment = self._locked_payment(order)

            if payment.status != Payment.FROZEN:
                raise PaymentNotFrozen()
            if Dispute.objects.open().filter(order=order).exists():
                raise DisputeOpen("Resolve the open dispute before unfreezing the payment.")

            if not self._swap_status(payment, Payment.FROZEN, status=Payment.HELD, frozen_at=None):
                raise PaymentNotFrozen()
            logger.info(f"Unfroze payment {payment.id} for order {order.id}")
        return payment

    def refund_frozen(self, order_id):
        """
        frozen -> refunded. Only the local state moves here; the money itself
        goes back through the gateway's refund path.
        """
        with transaction.atomic():
            order = lock_order(order_id)
            payment = self._locked_payment(order)

            if payment.status != Payment.FROZEN:
                raise PaymentNotFrozen()

            if not self._swap_status(payment, Payment.FROZEN, status=Payment.REFUNDED, refunded_at=timezone.now()):
                raise PaymentNotFrozen()

            notifications.notify(
                order.contractor,
                notifications.PAYMENT_REFUNDED,
                {'order_number': order.order_number, 'amount': str(payment.amount)},
                order=order,
                dedupe_key=f"payment-refunded-{payment.id}",
            )
            logger.info(f"Marked payment {payment.id} for order {order.id} refunded")
        return payment

    def dispatch_release(self, payment_id):
        """
        Send a committed release to the gateway. Safe to call any number of
        times: acknowledged payments are skipped and the gateway receives a
        stable idempotency key.
        """
        with transaction.atomic():
            payment = (
                Payment.objects.select_for_update(skip_locked=True)
                .select_related('order', 'order__supplier')
                .filter(pk=payment_id)
                .first()
            )
            if payment is None:
                return {'status': 'skipped', 'message': 'Payment missing or being dispatched elsewhere'}
            if payment.status != Payment.RELEASED:
                return {'status': 'error', 'message': f"Payment is '{payment.status}', not released"}
            if payment.gateway_acknowledged_at:
                return {
                    'status': 'success',
                    'message': 'Release already acknowledged',
                    'reference': payment.gateway_reference,
                }

            result = self.payment_service.release_to_supplier(payment=payment)

            payment.gateway_attempts += 1
            if result.get('status') == 'success':
                payment.gateway_acknowledged_at = timezone.now()
                payment.gateway_reference = result.get('reference') or ''
                payment.last_gateway_error = ''
                logger.info(f"Gateway acknowledged release of payment {payment.id} ({payment.gateway_reference})")
            else:
                payment.last_gateway_error = result.get('message') or 'Gateway release failed'
                logger.error(
                    f"Gateway release failed for payment {payment.id} "
                    f"(attempt {payment.gateway_attempts}): {payment.last_gateway_error}"
                )
            payment.save(update_fields=[
                'gateway_attempts',
                'gateway_acknowledged_at',
                'gateway_reference',
                'last_gateway_error',
                'updated_at',
            ])

        return result

    def dispatch_pending_releases(self, limit=50):
        """Retry every released payment the gateway has not acknowledged yet."""
        payment_ids = list(
            Payment.objects.filter(status=Payment.RELEASED, gateway_acknowledged_at__isnull=True)
            .order_by('release_committed_at')
            .values_list('id', flat=True)[:limit]
        )
        acknowledged = 0
        for payment_id in payment_ids:
            if self.dispatch_release(payment_id).get('status') == 'success':
                acknowledged += 1
        return acknowledged


def _enqueue_release_dispatch(payment_id):
    from .tasks import task_dispatch_release

    task_dispatch_release.delay(payment_id)
