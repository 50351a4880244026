from rest_framework.throttling import SimpleRateThrottle


class DeliveryPinRateThrottle(SimpleRateThrottle):
    """Rate-limits PIN guesses per delivery, whoever submits them."""
    scope = 'delivery_pin'

    def get_cache_key(self, request, view):
        delivery_id = view.kwargs.get('pk')

        if not delivery_id:
            return None

        return self.cache_format % {
            'scope': self.scope,
            'ident': str(delivery_id)
        }
