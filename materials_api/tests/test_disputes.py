import pytest
from django.db import IntegrityError, transaction

from deliveries import services as deliveries
from disputes.exceptions import (
    AlreadyDisputed,
    DisputeNotOpen,
    InvalidOutcome,
    InvalidReason,
    OrderRejected,
    PaymentAlreadyReleased,
)
from disputes.models import Dispute
from disputes.services import DisputeService
from escrow.exceptions import DisputeOpen, PaymentNotHeld
from escrow.services import EscrowService
from materials_api.exceptions import NotOwner
from notifications import services as notifications
from notifications.models import OutboxEvent
from orders.exceptions import InvalidOrderStatus
from orders.models import Order
from payments.models import Payment

REASON = "Half of the cement bags arrived torn"


def status_of(order):
    return Order.objects.get(pk=order.pk).status


def payment_status(order):
    return Payment.objects.get(order=order).status


class TestOpenDispute:

    def test_open_dispute_freezes_payment(self, pin_delivery, contractor, supplier_owner):
        order = pin_delivery.order

        dispute = DisputeService().open_dispute(order.id, REASON, contractor)

        assert dispute.is_open
        assert dispute.order_status_at_open == Order.IN_DELIVERY
        assert status_of(order) == Order.DISPUTED
        assert payment_status(order) == Payment.FROZEN
        assert OutboxEvent.objects.filter(event_type=notifications.DISPUTE_OPENED, recipient=supplier_owner).exists()

    def test_dispute_on_released_payment_is_refused(self, supplier_confirmed_delivery, contractor):
        delivery = supplier_confirmed_delivery()
        deliveries.confirm_delivery_by_contractor(delivery.order_id, contractor)
        assert payment_status(delivery.order) == Payment.RELEASED

        with pytest.raises(PaymentAlreadyReleased):
            DisputeService().open_dispute(delivery.order_id, REASON, contractor)

        assert status_of(delivery.order) == Order.COMPLETED
        assert payment_status(delivery.order) == Payment.RELEASED
        assert not Dispute.objects.filter(order=delivery.order).exists()

    @pytest.mark.parametrize("reason", ["", "too short", "   bad    ", None])
    def test_short_reason_is_rejected(self, pin_delivery, contractor, reason):
        with pytest.raises(InvalidReason):
            DisputeService().open_dispute(pin_delivery.order_id, reason, contractor)
        assert status_of(pin_delivery.order) == Order.IN_DELIVERY
        assert payment_status(pin_delivery.order) == Payment.HELD

    def test_second_dispute_is_refused(self, pin_delivery, contractor):
        service = DisputeService()
        service.open_dispute(pin_delivery.order_id, REASON, contractor)

        with pytest.raises(AlreadyDisputed):
            service.open_dispute(pin_delivery.order_id, "Another problem with the delivery", contractor)
        assert Dispute.objects.filter(order=pin_delivery.order).count() == 1

    def test_rejected_order_cannot_be_disputed(self, make_order, contractor):
        order = make_order(status=Order.REJECTED)
        with pytest.raises(OrderRejected):
            DisputeService().open_dispute(order.id, REASON, contractor)

    def test_only_contractor_may_dispute(self, pin_delivery, supplier_owner):
        with pytest.raises(NotOwner):
            DisputeService().open_dispute(pin_delivery.order_id, REASON, supplier_owner)
        assert payment_status(pin_delivery.order) == Payment.HELD

    def test_failed_freeze_rolls_back_the_dispute(self, pin_delivery, contractor):
        Payment.objects.filter(order=pin_delivery.order).update(status=Payment.PENDING)

        with pytest.raises(PaymentNotHeld):
            DisputeService().open_dispute(pin_delivery.order_id, REASON, contractor)

        assert not Dispute.objects.filter(order=pin_delivery.order).exists()
        assert status_of(pin_delivery.order) == Order.IN_DELIVERY

    def test_cancelled_order_cannot_be_disputed(self, make_order, contractor):
        order = make_order(status=Order.CANCELLED)
        with pytest.raises(InvalidOrderStatus):
            DisputeService().open_dispute(order.id, REASON, contractor)
        assert payment_status(order) == Payment.HELD

    def test_database_allows_one_open_dispute_per_order(self, pin_delivery, contractor):
        Dispute.objects.create(
            order=pin_delivery.order, raised_by=contractor, reason=REASON, order_status_at_open=Order.IN_DELIVERY,
        )
        with pytest.raises(IntegrityError), transaction.atomic():
            Dispute.objects.create(
                order=pin_delivery.order, raised_by=contractor, reason=REASON, order_status_at_open=Order.IN_DELIVERY,
            )


class TestDisputeOrderings:

    def test_dispute_then_contractor_confirms(self, supplier_confirmed_delivery, contractor):
        delivery = supplier_confirmed_delivery()
        order = delivery.order
        DisputeService().open_dispute(order.id, REASON, contractor)

        result = deliveries.confirm_delivery_by_contractor(order.id, contractor)

        delivery.refresh_from_db()
        assert delivery.contractor_confirmed is True
        assert result['payment_released'] is False
        assert status_of(order) == Order.DISPUTED
        assert payment_status(order) == Payment.FROZEN
        with pytest.raises(DisputeOpen):
            EscrowService().release_on_dual_confirmation(order.id)

    def test_confirm_then_dispute_is_too_late(self, supplier_confirmed_delivery, contractor):
        delivery = supplier_confirmed_delivery()
        deliveries.confirm_delivery_by_contractor(delivery.order_id, contractor)

        with pytest.raises(PaymentAlreadyReleased):
            DisputeService().open_dispute(delivery.order_id, REASON, contractor)

    def test_dispute_before_supplier_proof(self, pin_delivery, contractor, supplier_owner, rules):
        DisputeService().open_dispute(pin_delivery.order_id, REASON, contractor)

        deliveries.submit_pin_attempt(pin_delivery.id, pin_delivery.confirmation_pin, supplier_owner, rules)
        deliveries.confirm_delivery_by_contractor(pin_delivery.order_id, contractor)

        pin_delivery.refresh_from_db()
        assert pin_delivery.supplier_confirmed and pin_delivery.contractor_confirmed
        assert payment_status(pin_delivery.order) == Payment.FROZEN
        assert status_of(pin_delivery.order) == Order.DISPUTED


class TestResolveDispute:

    def test_release_outcome_restores_and_releases(self, supplier_confirmed_delivery, contractor):
        delivery = supplier_confirmed_delivery()
        dispute = DisputeService().open_dispute(delivery.order_id, REASON, contractor)
        deliveries.confirm_delivery_by_contractor(delivery.order_id, contractor)

        result = DisputeService().resolve_dispute(dispute.id, Dispute.OUTCOME_RELEASE, "Photos show intact bags")

        dispute.refresh_from_db()
        assert dispute.status == Dispute.RESOLVED
        assert dispute.outcome == Dispute.OUTCOME_RELEASE
        assert dispute.resolved_at is not None
        assert result['payment_released'] is True
        assert payment_status(delivery.order) == Payment.RELEASED
        assert status_of(delivery.order) == Order.COMPLETED

    def test_release_outcome_before_contractor_confirms(self, supplier_confirmed_delivery, contractor):
        delivery = supplier_confirmed_delivery()
        dispute = DisputeService().open_dispute(delivery.order_id, REASON, contractor)

        result = DisputeService().resolve_dispute(dispute.id, Dispute.OUTCOME_RELEASE)

        assert result['payment_released'] is False
        assert payment_status(delivery.order) == Payment.HELD
        assert status_of(delivery.order) == Order.AWAITING_CONTRACTOR_CONFIRMATION

        # The protocol carries on as if the dispute never happened
        deliveries.confirm_delivery_by_contractor(delivery.order_id, contractor)
        assert payment_status(delivery.order) == Payment.RELEASED

    def test_release_outcome_restores_pre_dispute_status(self, pin_delivery, contractor):
        dispute = DisputeService().open_dispute(pin_delivery.order_id, REASON, contractor)

        DisputeService().resolve_dispute(dispute.id, Dispute.OUTCOME_RELEASE)

        assert status_of(pin_delivery.order) == Order.IN_DELIVERY
        assert payment_status(pin_delivery.order) == Payment.HELD

    def test_refund_outcome_cancels_order(self, pin_delivery, contractor):
        dispute = DisputeService().open_dispute(pin_delivery.order_id, REASON, contractor)

        result = DisputeService().resolve_dispute(dispute.id, Dispute.OUTCOME_REFUND, "Materials never arrived")

        assert result['payment_status'] == Payment.REFUNDED
        assert status_of(pin_delivery.order) == Order.CANCELLED
        assert OutboxEvent.objects.filter(event_type=notifications.PAYMENT_REFUNDED, recipient=contractor).exists()

    def test_resolved_dispute_cannot_be_resolved_again(self, pin_delivery, contractor):
        dispute = DisputeService().open_dispute(pin_delivery.order_id, REASON, contractor)
        DisputeService().resolve_dispute(dispute.id, Dispute.OUTCOME_REFUND)

        with pytest.raises(DisputeNotOpen):
            DisputeService().resolve_dispute(dispute.id, Dispute.OUTCOME_RELEASE)
        assert payment_status(pin_delivery.order) == Payment.REFUNDED

    def test_unknown_outcome(self, pin_delivery, contractor):
        dispute = DisputeService().open_dispute(pin_delivery.order_id, REASON, contractor)
        with pytest.raises(InvalidOutcome):
            DisputeService().resolve_dispute(dispute.id, 'split')

    def test_new_dispute_allowed_after_resolution(self, pin_delivery, contractor):
        service = DisputeService()
        first = service.open_dispute(pin_delivery.order_id, REASON, contractor)
        service.resolve_dispute(first.id, Dispute.OUTCOME_RELEASE)

        second = service.open_dispute(pin_delivery.order_id, "The driver left the rebar on the street", contractor)

        assert second.is_open
        assert payment_status(pin_delivery.order) == Payment.FROZEN
