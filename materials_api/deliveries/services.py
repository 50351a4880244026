import re
import logging
from urllib.parse import urlsplit

from django.core.exceptions import ValidationError
from django.core.validators import URLValidator
from django.db import transaction
from django.utils import timezone
from django.utils.crypto import constant_time_compare, get_random_string
from rest_framework.exceptions import NotFound

from escrow.services import EscrowService
from materials_api.exceptions import NotOwner
from notifications import services as notifications
from orders.exceptions import InvalidOrderStatus
from orders.models import Order
from orders.services import lock_order
from .exceptions import (
    AlreadyConfirmed,
    AttemptsExceeded,
    InvalidPin,
    InvalidUrl,
    SupplierNotConfirmed,
    WrongMethod,
    WrongPin,
)
from .models import Delivery, DeliveryAttempt
from .rules import PHOTO, PIN, DeliveryRules, determine_method

logger = logging.getLogger(__name__)

PIN_PATTERN = re.compile(r'^\d{4}$')
PROOF_ORDER_STATUSES = (Order.IN_DELIVERY, Order.DISPUTED)
photo_url_validator = URLValidator(schemes=['http', 'https'])


def generate_pin():
    return get_random_string(4, allowed_chars='0123456789')


def _order_id_for_delivery(delivery_id):
    order_id = Delivery.objects.filter(pk=delivery_id).values_list('order_id', flat=True).first()
    if order_id is None:
        raise NotFound("Delivery not found.")
    return order_id


def _lock_delivery(delivery_id):
    """Order lock first, then the delivery row; always in that order."""
    order = lock_order(_order_id_for_delivery(delivery_id))
    delivery = Delivery.objects.select_for_update().get(pk=delivery_id)
    delivery.order = order
    return order, delivery


def _result(delivery, order, rules, replayed=False):
    return {
        'status': 'success',
        'delivery_id': delivery.id,
        'order_id': order.id,
        'order_status': order.status,
        'verification_method': delivery.verification_method(rules),
        'supplier_confirmed': delivery.supplier_confirmed,
        'contractor_confirmed': delivery.contractor_confirmed,
        'replayed': replayed,
    }


def _mark_supplier_confirmed(delivery, order, user, method, now):
    delivery.supplier_confirmed = True
    delivery.supplier_confirmed_at = now

    # Proof may still arrive while a dispute is open; the order then stays disputed
    if order.status != Order.DISPUTED:
        order.transition_to(Order.AWAITING_CONTRACTOR_CONFIRMATION)

    notifications.notify(
        order.contractor,
        notifications.SUPPLIER_CONFIRMED,
        {'order_number': order.order_number, 'method': method},
        order=order,
        dedupe_key=f"supplier-confirmed-{delivery.id}",
    )
    logger.info(f"Supplier confirmed delivery {delivery.id} for order {order.id} by {method}")


def _increment_pin_attempts(delivery, max_attempts):
    """
    Compare-and-swap increment of the failure counter. A lost race re-reads the
    row and retries, so concurrent failures are each counted exactly once and
    the counter never passes ``max_attempts``.
    """
    while True:
        current = delivery.pin_attempts
        if current >= max_attempts:
            raise AttemptsExceeded()
        updated = Delivery.objects.filter(
            pk=delivery.pk,
            pin_attempts=current,
            supplier_confirmed=False,
        ).update(
            pin_attempts=current + 1,
            updated_at=timezone.now(),
        )
        if updated:
            delivery.pin_attempts = current + 1
            return delivery.pin_attempts
        delivery.refresh_from_db(fields=['pin_attempts', 'supplier_confirmed'])
        if delivery.supplier_confirmed:
            raise AlreadyConfirmed()


def _claim_pin_verification(delivery, max_attempts, now):
    """
    Mark the PIN verified only while the delivery is unconfirmed and not locked
    out. Returns False when a concurrent correct PIN got there first.
    """
    updated = Delivery.objects.filter(
        pk=delivery.pk,
        supplier_confirmed=False,
        pin_attempts__lt=max_attempts,
    ).update(
        pin_verified=True,
        pin_verified_at=now,
        supplier_confirmed=True,
        supplier_confirmed_at=now,
        updated_at=now,
    )
    if updated:
        delivery.pin_verified = True
        delivery.pin_verified_at = now
        return True

    delivery.refresh_from_db(fields=['pin_attempts', 'pin_verified', 'supplier_confirmed'])
    if delivery.pin_verified:
        return False
    if delivery.supplier_confirmed:
        raise AlreadyConfirmed()
    raise AttemptsExceeded()


def _validate_photo_url(photo_url, rules):
    photo_url = (photo_url or '').strip()
    try:
        photo_url_validator(photo_url)
    except ValidationError:
        raise InvalidUrl()
    if rules.photo_allowed_hosts:
        host = (urlsplit(photo_url).hostname or '').lower()
        if host not in {h.lower() for h in rules.photo_allowed_hosts}:
            raise InvalidUrl("Photos must be uploaded to the platform's storage.")
    return photo_url


def start_delivery(order_id, user, driver=None, rules=None):
    """
    Dispatch a confirmed order: create its Delivery, with a confirmation PIN
    when the order value calls for one, and put the order in delivery.
    """
    rules = rules or DeliveryRules.from_settings()

    with transaction.atomic():
        order = lock_order(order_id)

        if order.supplier.owner_id != user.id:
            raise NotOwner("Only the supplier can start this delivery.")
        if Delivery.objects.filter(order=order).exists():
            raise InvalidOrderStatus("Delivery has already been started for this order.")
        if order.status != Order.CONFIRMED:
            raise InvalidOrderStatus(f"Only confirmed orders can be dispatched; order is '{order.status}'.")

        method = determine_method(order.total_amount, rules.pin_threshold)
        now = timezone.now()
        delivery = Delivery.objects.create(
            order=order,
            driver=driver,
            confirmation_pin=generate_pin() if method == PIN else '',
            started_at=now,
        )
        order.transition_to(Order.IN_DELIVERY)

        payload = {'order_number': order.order_number, 'method': method}
        if method == PIN:
            payload['confirmation_pin'] = delivery.confirmation_pin
        notifications.notify(
            order.contractor,
            notifications.DELIVERY_STARTED,
            payload,
            order=order,
            dedupe_key=f"delivery-started-{delivery.id}",
        )
        logger.info(f"Delivery {delivery.id} started for order {order.id} ({method} confirmation)")

    return delivery


def submit_pin_attempt(delivery_id, pin, user, rules=None):
    """
    Verify the PIN the contractor hands the driver on site.

    A wrong PIN is counted and committed before WrongPin is raised, so the
    counter survives the failed request. Reaching the ceiling locks the
    delivery for good: every later call, correct PIN included, fails with
    AttemptsExceeded and changes nothing.
    """
    rules = rules or DeliveryRules.from_settings()
    pin = '' if pin is None else str(pin).strip()
    if not PIN_PATTERN.match(pin):
        raise InvalidPin()

    failure = None
    with transaction.atomic():
        order, delivery = _lock_delivery(delivery_id)

        if user.id not in (order.supplier.owner_id, delivery.driver_id):
            raise NotOwner("Only the supplier or the assigned driver can submit the PIN.")
        if delivery.verification_method(rules) != PIN:
            raise WrongMethod("This delivery is confirmed with a photo, not a PIN.")

        pin_matches = constant_time_compare(pin, delivery.confirmation_pin)
        if delivery.supplier_confirmed:
            if delivery.pin_verified and pin_matches:
                return _result(delivery, order, rules, replayed=True)
            raise AlreadyConfirmed()
        if delivery.is_locked_out(rules):
            raise AttemptsExceeded()
        if order.status not in PROOF_ORDER_STATUSES:
            raise InvalidOrderStatus(f"PIN cannot be verified while the order is '{order.status}'.")

        if not pin_matches:
            attempts = _increment_pin_attempts(delivery, rules.max_pin_attempts)
            remaining = max(rules.max_pin_attempts - attempts, 0)
            if remaining:
                DeliveryAttempt.objects.create(
                    delivery=delivery, submitted_by=user, method=PIN, outcome=DeliveryAttempt.WRONG_PIN,
                )
                logger.warning(f"Wrong PIN for delivery {delivery.id} ({remaining} attempt(s) left)")
                failure = WrongPin(remaining)
            else:
                DeliveryAttempt.objects.create(
                    delivery=delivery, submitted_by=user, method=PIN, outcome=DeliveryAttempt.ATTEMPTS_EXCEEDED,
                )
                notifications.notify(
                    order.supplier.owner,
                    notifications.PIN_LOCKED,
                    {'order_number': order.order_number, 'attempts': attempts},
                    order=order,
                    dedupe_key=f"pin-locked-{delivery.id}",
                )
                logger.warning(f"Delivery {delivery.id} locked after {attempts} wrong PIN attempts")
                failure = AttemptsExceeded()
        else:
            now = timezone.now()
            if not _claim_pin_verification(delivery, rules.max_pin_attempts, now):
                return _result(delivery, order, rules, replayed=True)
            _mark_supplier_confirmed(delivery, order, user, PIN, now)
            DeliveryAttempt.objects.create(
                delivery=delivery, submitted_by=user, method=PIN, outcome=DeliveryAttempt.VERIFIED,
            )

    if failure is not None:
        raise failure
    return _result(delivery, order, rules)


def submit_photo_proof(delivery_id, photo_url, user, rules=None):
    """Accept a delivery photo as the supplier's proof on lower-value orders."""
    rules = rules or DeliveryRules.from_settings()
    photo_url = _validate_photo_url(photo_url, rules)

    with transaction.atomic():
        order, delivery = _lock_delivery(delivery_id)

        if order.supplier.owner_id != user.id:
            raise NotOwner("Only the supplier can submit delivery proof.")
        if delivery.verification_method(rules) != PHOTO:
            raise WrongMethod("This delivery must be confirmed with the contractor's PIN.")
        if delivery.supplier_confirmed:
            if delivery.photo_url == photo_url:
                return _result(delivery, order, rules, replayed=True)
            raise AlreadyConfirmed()
        if order.status not in PROOF_ORDER_STATUSES:
            raise InvalidOrderStatus(f"Proof cannot be submitted while the order is '{order.status}'.")

        now = timezone.now()
        delivery.photo_url = photo_url
        _mark_supplier_confirmed(delivery, order, user, PHOTO, now)
        delivery.save(update_fields=['photo_url', 'supplier_confirmed', 'supplier_confirmed_at', 'updated_at'])
        DeliveryAttempt.objects.create(
            delivery=delivery, submitted_by=user, method=PHOTO, outcome=DeliveryAttempt.PHOTO_ACCEPTED,
        )

    return _result(delivery, order, rules)


def confirm_delivery_by_contractor(order_id, user):
    """
    Record the contractor's receipt and try to release the escrow.

    The confirmation stands on its own: a refused or failed release is logged
    and reported as ``payment_released: False`` for out-of-band retry.
    """
    with transaction.atomic():
        order = lock_order(order_id)

        if order.contractor_id != user.id:
            raise NotOwner("Only the contractor who placed the order can confirm receipt.")
        delivery = Delivery.objects.select_for_update().filter(order=order).first()
        if delivery is None or not delivery.supplier_confirmed:
            raise SupplierNotConfirmed()
        if delivery.contractor_confirmed:
            raise AlreadyConfirmed("You have already confirmed receipt of this order.")
        if order.status not in (Order.AWAITING_CONTRACTOR_CONFIRMATION, Order.DISPUTED):
            raise InvalidOrderStatus(f"Receipt cannot be confirmed while the order is '{order.status}'.")

        now = timezone.now()
        delivery.contractor_confirmed = True
        delivery.contractor_confirmed_at = now
        delivery.completed_at = now
        delivery.save(update_fields=['contractor_confirmed', 'contractor_confirmed_at', 'completed_at', 'updated_at'])

        if order.status != Order.DISPUTED:
            order.transition_to(Order.DELIVERED)

        notifications.notify(
            order.supplier.owner,
            notifications.CONTRACTOR_CONFIRMED,
            {'order_number': order.order_number},
            order=order,
            dedupe_key=f"contractor-confirmed-{delivery.id}",
        )
        logger.info(f"Contractor confirmed receipt of order {order.id}")

        release = EscrowService().attempt_release(order.id)

    order.refresh_from_db()
    return {
        'status': 'success',
        'order_id': order.id,
        'order_status': order.status,
        'delivery_id': delivery.id,
        'contractor_confirmed': True,
        'payment_released': release['status'] == 'success',
        'release_message': release.get('message', ''),
    }
