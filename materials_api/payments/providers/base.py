from abc import ABC, abstractmethod

class BasePaymentProvider(ABC):
    """
    Abstract base class for all payment gateways.
    Defines the contract the escrow controller needs from a gateway: releasing
    held funds to a supplier.
    """

    def __init__(self, **kwargs):
        """Initialize the payment provider with configuration."""
        self.config = kwargs

    @abstractmethod
    def release(self, transaction_id, supplier_id, amount=None, idempotency_key=None, **kwargs):
        """
        Release escrowed funds of a captured transaction to the supplier.

        Args:
            transaction_id: Gateway transaction holding the funds
            supplier_id: Gateway-side account of the supplier
            amount: Amount to release (Decimal, JOD); full amount if None
            idempotency_key: Stable key so a retried call is not paid twice

        Returns:
            Dict with 'status' ('success' or 'error'), and 'reference' or 'message'
        """
        pass
