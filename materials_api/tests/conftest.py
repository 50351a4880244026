"""
Shared fixtures for the delivery confirmation, escrow and dispute tests.

Orders are built through small factory fixtures so each test states only the
parts of the state it cares about (order value, status, delivery progress).
"""
import itertools
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from accounts.models import CustomUser
from deliveries.models import Delivery
from deliveries.rules import DeliveryRules
from escrow.services import EscrowService
from orders.models import Order, Supplier

HIGH_VALUE = Decimal('500.000')
LOW_VALUE = Decimal('80.000')
KNOWN_PIN = '4821'

_emails = itertools.count(1)


@pytest.fixture
def rules():
    return DeliveryRules(pin_threshold=Decimal('120'), max_pin_attempts=3)


@pytest.fixture
def make_user(db):
    def _make(user_type=CustomUser.CONTRACTOR, **extra):
        n = next(_emails)
        return CustomUser.objects.create_user(
            email=f"{user_type}{n}@example.com",
            password="s3cret-pass",
            user_type=user_type,
            first_name=user_type.capitalize(),
            last_name=str(n),
            **extra,
        )
    return _make


@pytest.fixture
def contractor(make_user):
    return make_user(CustomUser.CONTRACTOR)


@pytest.fixture
def supplier_owner(make_user):
    return make_user(CustomUser.SUPPLIER)


@pytest.fixture
def driver(make_user):
    return make_user(CustomUser.DRIVER)


@pytest.fixture
def stranger(make_user):
    return make_user(CustomUser.SUPPLIER)


@pytest.fixture
def moderator(make_user):
    return make_user(CustomUser.CONTRACTOR, is_staff=True)


@pytest.fixture
def supplier(supplier_owner):
    return Supplier.objects.create(
        business_name="Amman Cement Co.",
        owner=supplier_owner,
        payout_account_id="acct_amman_cement",
    )


@pytest.fixture
def make_order(contractor, supplier):
    """Order with its escrow payment held, as at checkout."""
    def _make(total_amount=HIGH_VALUE, status=Order.CONFIRMED):
        order = Order.objects.create(
            contractor=contractor,
            supplier=supplier,
            total_amount=total_amount,
            status=status,
        )
        EscrowService().hold_for_order(order, provider='manual', provider_transaction_id=f"txn-{order.id}")
        return order
    return _make


@pytest.fixture
def make_delivery(make_order, driver):
    """Order already in delivery, with a known PIN for high-value orders."""
    def _make(total_amount=HIGH_VALUE, driver_user=driver, **fields):
        order = make_order(total_amount=total_amount, status=Order.IN_DELIVERY)
        pin = KNOWN_PIN if total_amount >= Decimal('120') else ''
        return Delivery.objects.create(order=order, driver=driver_user, confirmation_pin=pin, **fields)
    return _make


@pytest.fixture
def pin_delivery(make_delivery):
    return make_delivery(HIGH_VALUE)


@pytest.fixture
def photo_delivery(make_delivery):
    return make_delivery(LOW_VALUE)


@pytest.fixture
def supplier_confirmed_delivery(make_delivery):
    """High-value delivery whose PIN was verified; awaiting the contractor."""
    def _make(total_amount=HIGH_VALUE):
        delivery = make_delivery(total_amount, pin_verified=True, supplier_confirmed=True)
        order = delivery.order
        order.status = Order.AWAITING_CONTRACTOR_CONFIRMATION
        order.save(update_fields=['status'])
        return delivery
    return _make


@pytest.fixture
def api_client():
    return APIClient()
