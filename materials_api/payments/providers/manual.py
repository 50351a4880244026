import logging

from .base import BasePaymentProvider

logger = logging.getLogger(__name__)


class ManualPayoutProvider(BasePaymentProvider):
    """
    Records the payout for the back-office team to transfer by hand.
    Acknowledges immediately; the idempotency key doubles as the reference.
    """

    def release(self, transaction_id, supplier_id, amount=None, idempotency_key=None, **kwargs):
        reference = f"manual-{idempotency_key or transaction_id}"
        logger.info(
            "Manual payout recorded",
            extra={
                'transaction_id': transaction_id,
                'supplier_id': supplier_id,
                'amount': str(amount) if amount is not None else None,
                'reference': reference,
            }
        )
        return {'status': 'success', 'reference': reference, 'provider': 'manual'}
