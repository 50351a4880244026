import re
import logging
from decimal import Decimal

import requests
from django.conf import settings

from .base import BasePaymentProvider

logger = logging.getLogger(__name__)

# Result codes HyperPay reports for successfully processed transactions
SUCCESS_CODE = re.compile(r'^(000\.000\.|000\.100\.1|000\.[36])')
SUCCESS_REVIEW_CODE = re.compile(r'^(000\.400\.0[^3]|000\.400\.100)')


class HyperPayProvider(BasePaymentProvider):
    """
    HyperPay holds escrow as an authorised, uncaptured payment; releasing to
    the supplier is the final capture of that authorisation.
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.base_url = kwargs.get('base_url') or settings.HYPERPAY_BASE_URL
        self.entity_id = kwargs.get('entity_id') or settings.HYPERPAY_ENTITY_ID
        self.access_token = kwargs.get('access_token') or settings.HYPERPAY_ACCESS_TOKEN
        self.timeout = kwargs.get('timeout') or settings.HYPERPAY_TIMEOUT

    def _headers(self):
        return {
            'Authorization': f'Bearer {self.access_token}',
            'Content-Type': 'application/x-www-form-urlencoded',
        }

    @staticmethod
    def is_success_code(code):
        return bool(code) and bool(SUCCESS_CODE.match(code) or SUCCESS_REVIEW_CODE.match(code))

    def release(self, transaction_id, supplier_id, amount=None, idempotency_key=None, **kwargs):
        """
        Capture the held authorisation for the supplier.

        Args:
            transaction_id: HyperPay payment id of the pre-authorisation
            supplier_id: Supplier account reference, sent as the descriptor
            amount: Amount to capture in JOD
            idempotency_key: Sent as merchantTransactionId

        Returns:
            Dict containing capture result
        """
        url = f"{self.base_url}/v1/payments/{transaction_id}"
        payload = {
            'entityId': self.entity_id,
            'paymentType': 'CP',
            'currency': 'JOD',
            'merchantTransactionId': idempotency_key or transaction_id,
            'customParameters[supplier_id]': str(supplier_id),
        }
        if amount is not None:
            payload['amount'] = str(Decimal(amount).quantize(Decimal('0.001')))

        try:
            logger.info(f"Capturing HyperPay payment {transaction_id} for supplier {supplier_id}")

            response = requests.post(url, data=payload, headers=self._headers(), timeout=self.timeout)
            data = response.json()
            result = data.get('result') or {}
            code = result.get('code', '')

            if response.ok and self.is_success_code(code):
                logger.info(f"HyperPay capture succeeded. Payment: {transaction_id}, ref: {data.get('id')}")
                return {
                    'status': 'success',
                    'reference': data.get('id') or transaction_id,
                    'provider': 'hyperpay',
                    'code': code,
                }

            logger.error(f"HyperPay capture rejected for {transaction_id}: {code} {result.get('description')}")
            return {
                'status': 'error',
                'message': result.get('description') or 'Capture rejected',
                'code': code,
            }

        except requests.exceptions.RequestException as e:
            logger.error(f"HyperPay API request failed: {str(e)}")
            return {
                'status': 'error',
                'message': 'Gateway request failed',
                'error': str(e),
            }
        except ValueError as e:
            logger.error(f"HyperPay returned an unreadable response: {str(e)}")
            return {
                'status': 'error',
                'message': 'Unreadable gateway response',
                'error': str(e),
            }
