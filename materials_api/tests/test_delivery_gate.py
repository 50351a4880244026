from decimal import Decimal

import pytest

from deliveries import services
from deliveries.exceptions import (
    AlreadyConfirmed,
    AttemptsExceeded,
    InvalidPin,
    InvalidUrl,
    WrongMethod,
    WrongPin,
)
from deliveries.models import Delivery, DeliveryAttempt
from deliveries.rules import PHOTO, PIN, DeliveryRules, determine_method
from materials_api.exceptions import NotOwner
from notifications import services as notifications
from notifications.models import OutboxEvent
from orders.models import Order

PHOTO_URL = "https://storage.example.com/deliveries/1.jpg"


def wrong_pin_for(delivery):
    return '0000' if delivery.confirmation_pin != '0000' else '1111'


@pytest.mark.parametrize("amount, expected", [
    (Decimal('119.999'), PHOTO),
    (Decimal('120'), PIN),
    (Decimal('120.000'), PIN),
    (Decimal('5000'), PIN),
    (Decimal('0'), PHOTO),
])
def test_determine_method_threshold_is_inclusive(amount, expected):
    assert determine_method(amount, Decimal('120')) == expected


def test_rules_are_read_from_settings_at_call_time(settings):
    settings.PIN_THRESHOLD_JOD = Decimal('250')
    settings.MAX_PIN_ATTEMPTS = 5
    rules = DeliveryRules.from_settings()
    assert rules.pin_threshold == Decimal('250')
    assert rules.max_pin_attempts == 5


def test_verification_method_follows_injected_rules(pin_delivery):
    assert pin_delivery.verification_method(DeliveryRules(pin_threshold=Decimal('120'))) == PIN
    assert pin_delivery.verification_method(DeliveryRules(pin_threshold=Decimal('1000'))) == PHOTO


class TestPinAttempts:

    def test_correct_pin_confirms_supplier_side(self, pin_delivery, supplier_owner, rules):
        result = services.submit_pin_attempt(pin_delivery.id, pin_delivery.confirmation_pin, supplier_owner, rules)

        pin_delivery.refresh_from_db()
        assert result['status'] == 'success'
        assert result['replayed'] is False
        assert pin_delivery.pin_verified is True
        assert pin_delivery.pin_verified_at is not None
        assert pin_delivery.supplier_confirmed is True
        assert pin_delivery.pin_attempts == 0
        assert pin_delivery.order.status == Order.AWAITING_CONTRACTOR_CONFIRMATION
        assert OutboxEvent.objects.filter(
            event_type=notifications.SUPPLIER_CONFIRMED, recipient=pin_delivery.order.contractor,
        ).count() == 1

    def test_assigned_driver_may_submit_pin(self, pin_delivery, driver, rules):
        result = services.submit_pin_attempt(pin_delivery.id, pin_delivery.confirmation_pin, driver, rules)
        assert result['supplier_confirmed'] is True

    def test_three_wrong_pins_lock_the_delivery(self, pin_delivery, supplier_owner, rules):
        wrong = wrong_pin_for(pin_delivery)

        with pytest.raises(WrongPin) as first:
            services.submit_pin_attempt(pin_delivery.id, wrong, supplier_owner, rules)
        assert first.value.remaining_attempts == 2

        with pytest.raises(WrongPin) as second:
            services.submit_pin_attempt(pin_delivery.id, wrong, supplier_owner, rules)
        assert second.value.remaining_attempts == 1

        with pytest.raises(AttemptsExceeded):
            services.submit_pin_attempt(pin_delivery.id, wrong, supplier_owner, rules)

        pin_delivery.refresh_from_db()
        assert pin_delivery.pin_attempts == 3
        assert pin_delivery.supplier_confirmed is False
        assert pin_delivery.order.status == Order.IN_DELIVERY

        # Locked for good: the right PIN no longer helps and nothing moves
        with pytest.raises(AttemptsExceeded):
            services.submit_pin_attempt(pin_delivery.id, pin_delivery.confirmation_pin, supplier_owner, rules)
        pin_delivery.refresh_from_db()
        assert pin_delivery.pin_attempts == 3
        assert pin_delivery.pin_verified is False

    def test_lockout_notifies_supplier_once(self, pin_delivery, supplier_owner, rules):
        wrong = wrong_pin_for(pin_delivery)
        for _ in range(2):
            with pytest.raises(WrongPin):
                services.submit_pin_attempt(pin_delivery.id, wrong, supplier_owner, rules)
        for _ in range(2):
            with pytest.raises(AttemptsExceeded):
                services.submit_pin_attempt(pin_delivery.id, wrong, supplier_owner, rules)

        assert OutboxEvent.objects.filter(event_type=notifications.PIN_LOCKED, recipient=supplier_owner).count() == 1

    def test_wrong_pin_counter_persists_through_the_error(self, pin_delivery, supplier_owner, rules):
        with pytest.raises(WrongPin):
            services.submit_pin_attempt(pin_delivery.id, wrong_pin_for(pin_delivery), supplier_owner, rules)

        assert Delivery.objects.get(pk=pin_delivery.pk).pin_attempts == 1
        assert list(
            DeliveryAttempt.objects.filter(delivery=pin_delivery).values_list('outcome', flat=True)
        ) == [DeliveryAttempt.WRONG_PIN]

    def test_correct_pin_after_two_failures_still_succeeds(self, pin_delivery, supplier_owner, rules):
        wrong = wrong_pin_for(pin_delivery)
        for _ in range(2):
            with pytest.raises(WrongPin):
                services.submit_pin_attempt(pin_delivery.id, wrong, supplier_owner, rules)

        result = services.submit_pin_attempt(pin_delivery.id, pin_delivery.confirmation_pin, supplier_owner, rules)
        pin_delivery.refresh_from_db()
        assert result['supplier_confirmed'] is True
        assert pin_delivery.pin_attempts == 2

    def test_replaying_correct_pin_returns_prior_result(self, pin_delivery, supplier_owner, rules):
        services.submit_pin_attempt(pin_delivery.id, pin_delivery.confirmation_pin, supplier_owner, rules)
        events_before = OutboxEvent.objects.count()
        attempts_before = DeliveryAttempt.objects.count()

        result = services.submit_pin_attempt(pin_delivery.id, pin_delivery.confirmation_pin, supplier_owner, rules)

        pin_delivery.refresh_from_db()
        assert result['replayed'] is True
        assert result['supplier_confirmed'] is True
        assert pin_delivery.pin_attempts == 0
        assert OutboxEvent.objects.count() == events_before
        assert DeliveryAttempt.objects.count() == attempts_before

    def test_wrong_pin_after_confirmation_is_already_confirmed(self, pin_delivery, supplier_owner, rules):
        services.submit_pin_attempt(pin_delivery.id, pin_delivery.confirmation_pin, supplier_owner, rules)

        with pytest.raises(AlreadyConfirmed):
            services.submit_pin_attempt(pin_delivery.id, wrong_pin_for(pin_delivery), supplier_owner, rules)
        pin_delivery.refresh_from_db()
        assert pin_delivery.pin_attempts == 0

    @pytest.mark.parametrize("pin", ['', '123', '12345', 'abcd', '12a4', None, ' 12 '])
    def test_malformed_pin_is_rejected_without_counting(self, pin_delivery, supplier_owner, rules, pin):
        with pytest.raises(InvalidPin):
            services.submit_pin_attempt(pin_delivery.id, pin, supplier_owner, rules)

        pin_delivery.refresh_from_db()
        assert pin_delivery.pin_attempts == 0
        assert not DeliveryAttempt.objects.filter(delivery=pin_delivery).exists()

    def test_outsider_cannot_submit_pin(self, pin_delivery, stranger, rules):
        with pytest.raises(NotOwner):
            services.submit_pin_attempt(pin_delivery.id, pin_delivery.confirmation_pin, stranger, rules)
        pin_delivery.refresh_from_db()
        assert pin_delivery.supplier_confirmed is False

    def test_contractor_cannot_submit_pin(self, pin_delivery, contractor, rules):
        with pytest.raises(NotOwner):
            services.submit_pin_attempt(pin_delivery.id, pin_delivery.confirmation_pin, contractor, rules)

    def test_pin_on_photo_delivery_is_wrong_method(self, photo_delivery, supplier_owner, rules):
        with pytest.raises(WrongMethod):
            services.submit_pin_attempt(photo_delivery.id, '1234', supplier_owner, rules)
        photo_delivery.refresh_from_db()
        assert photo_delivery.pin_attempts == 0

    def test_ceiling_comes_from_injected_rules(self, pin_delivery, supplier_owner):
        strict = DeliveryRules(pin_threshold=Decimal('120'), max_pin_attempts=1)
        with pytest.raises(AttemptsExceeded):
            services.submit_pin_attempt(pin_delivery.id, wrong_pin_for(pin_delivery), supplier_owner, strict)
        pin_delivery.refresh_from_db()
        assert pin_delivery.pin_attempts == 1

    def test_pin_accepted_while_order_disputed_keeps_dispute(self, pin_delivery, supplier_owner, rules):
        order = pin_delivery.order
        order.status = Order.DISPUTED
        order.save(update_fields=['status'])

        services.submit_pin_attempt(pin_delivery.id, pin_delivery.confirmation_pin, supplier_owner, rules)

        order.refresh_from_db()
        pin_delivery.refresh_from_db()
        assert pin_delivery.supplier_confirmed is True
        assert order.status == Order.DISPUTED


class TestPhotoProof:

    def test_photo_confirms_supplier_side(self, photo_delivery, supplier_owner, rules):
        result = services.submit_photo_proof(photo_delivery.id, PHOTO_URL, supplier_owner, rules)

        photo_delivery.refresh_from_db()
        assert result['verification_method'] == PHOTO
        assert photo_delivery.photo_url == PHOTO_URL
        assert photo_delivery.supplier_confirmed is True
        assert photo_delivery.supplier_confirmed_at is not None
        assert photo_delivery.pin_attempts == 0
        assert photo_delivery.order.status == Order.AWAITING_CONTRACTOR_CONFIRMATION
        assert DeliveryAttempt.objects.get(delivery=photo_delivery).outcome == DeliveryAttempt.PHOTO_ACCEPTED

    def test_same_photo_replay_has_no_side_effects(self, photo_delivery, supplier_owner, rules):
        services.submit_photo_proof(photo_delivery.id, PHOTO_URL, supplier_owner, rules)
        events_before = OutboxEvent.objects.count()

        result = services.submit_photo_proof(photo_delivery.id, PHOTO_URL, supplier_owner, rules)

        assert result['replayed'] is True
        assert OutboxEvent.objects.count() == events_before
        assert DeliveryAttempt.objects.filter(delivery=photo_delivery).count() == 1

    def test_different_photo_after_confirmation_fails(self, photo_delivery, supplier_owner, rules):
        services.submit_photo_proof(photo_delivery.id, PHOTO_URL, supplier_owner, rules)

        with pytest.raises(AlreadyConfirmed):
            services.submit_photo_proof(photo_delivery.id, PHOTO_URL + "?v=2", supplier_owner, rules)
        photo_delivery.refresh_from_db()
        assert photo_delivery.photo_url == PHOTO_URL

    @pytest.mark.parametrize("url", [
        '',
        'not a url',
        'ftp://storage.example.com/a.jpg',
        'javascript:alert(1)',
        None,
    ])
    def test_invalid_url_is_rejected_without_mutation(self, photo_delivery, supplier_owner, rules, url):
        with pytest.raises(InvalidUrl):
            services.submit_photo_proof(photo_delivery.id, url, supplier_owner, rules)
        photo_delivery.refresh_from_db()
        assert photo_delivery.photo_url is None
        assert photo_delivery.supplier_confirmed is False

    def test_host_allow_list(self, photo_delivery, supplier_owner):
        rules = DeliveryRules(pin_threshold=Decimal('120'), photo_allowed_hosts=('storage.example.com',))

        with pytest.raises(InvalidUrl):
            services.submit_photo_proof(photo_delivery.id, "https://evil.example.net/x.jpg", supplier_owner, rules)

        result = services.submit_photo_proof(photo_delivery.id, PHOTO_URL, supplier_owner, rules)
        assert result['supplier_confirmed'] is True

    def test_photo_on_pin_delivery_is_wrong_method(self, pin_delivery, supplier_owner, rules):
        with pytest.raises(WrongMethod):
            services.submit_photo_proof(pin_delivery.id, PHOTO_URL, supplier_owner, rules)
        pin_delivery.refresh_from_db()
        assert pin_delivery.photo_url is None

    def test_driver_cannot_submit_photo(self, photo_delivery, driver, rules):
        with pytest.raises(NotOwner):
            services.submit_photo_proof(photo_delivery.id, PHOTO_URL, driver, rules)


class TestStartDelivery:

    def test_high_value_order_gets_a_pin(self, make_order, supplier_owner, driver, rules):
        order = make_order()

        delivery = services.start_delivery(order.id, supplier_owner, driver=driver, rules=rules)

        order.refresh_from_db()
        assert order.status == Order.IN_DELIVERY
        assert len(delivery.confirmation_pin) == 4
        assert delivery.confirmation_pin.isdigit()
        assert delivery.started_at is not None
        event = OutboxEvent.objects.get(event_type=notifications.DELIVERY_STARTED)
        assert event.recipient == order.contractor
        assert event.payload['confirmation_pin'] == delivery.confirmation_pin

    def test_low_value_order_has_no_pin(self, make_order, supplier_owner, rules):
        order = make_order(total_amount=Decimal('45.500'))

        delivery = services.start_delivery(order.id, supplier_owner, rules=rules)

        assert delivery.confirmation_pin == ''
        assert 'confirmation_pin' not in OutboxEvent.objects.get(event_type=notifications.DELIVERY_STARTED).payload

    def test_only_confirmed_orders_can_start(self, make_order, supplier_owner, rules):
        from orders.exceptions import InvalidOrderStatus

        order = make_order(status=Order.PENDING)
        with pytest.raises(InvalidOrderStatus):
            services.start_delivery(order.id, supplier_owner, rules=rules)
        assert not Delivery.objects.filter(order=order).exists()

    def test_other_supplier_cannot_start(self, make_order, stranger, rules):
        order = make_order()
        with pytest.raises(NotOwner):
            services.start_delivery(order.id, stranger, rules=rules)
