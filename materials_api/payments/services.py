from django.conf import settings
from .providers import get_payment_provider
import logging

logger = logging.getLogger(__name__)

class PaymentService:
    """
    Provider adapter. This class should NOT create or update Payment records.
    It only calls the configured payment gateway.
    """
    def __init__(self, provider_name = None):
        self.default_provider_name = provider_name

    def _get_provider(self, provider_name):
        name = provider_name or self.default_provider_name or settings.PAYMENT_GATEWAY_PROVIDER
        if not name:
            raise ValueError("provider_name is required (no default configured).")
        return get_payment_provider(name), name

    def release_to_supplier(self, *, payment):
        """
        Ask the gateway to release an escrowed payment to the order's supplier.
        Never raises; gateway failures come back as {'status': 'error', ...}.
        """
        try:
            provider, resolved_name = self._get_provider(payment.provider or None)
            supplier = payment.order.supplier
            return provider.release(
                transaction_id=payment.provider_transaction_id or payment.release_idempotency_key,
                supplier_id=supplier.payout_account_id or str(supplier.id),
                amount=payment.supplier_amount if payment.supplier_amount is not None else payment.amount,
                idempotency_key=payment.release_idempotency_key,
            )
        except Exception as e:
            logger.error(f"Release to supplier failed for payment {payment.id}: {str(e)}")
            return {
                'status': 'error',
                'message': f'Release failed: {str(e)}'
            }
