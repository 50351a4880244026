from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings

PIN = 'pin'
PHOTO = 'photo'


@dataclass(frozen=True)
class DeliveryRules:
    """
    Confirmation thresholds in force for one call. Built per request from
    settings so tests can pass their own values instead of patching globals.
    """
    pin_threshold: Decimal = Decimal('120')
    max_pin_attempts: int = 3
    photo_allowed_hosts: tuple = ()

    @classmethod
    def from_settings(cls):
        return cls(
            pin_threshold=Decimal(str(settings.PIN_THRESHOLD_JOD)),
            max_pin_attempts=int(settings.MAX_PIN_ATTEMPTS),
            photo_allowed_hosts=tuple(getattr(settings, 'DELIVERY_PHOTO_ALLOWED_HOSTS', ()) or ()),
        )


def determine_method(total_amount, threshold):
    """PIN for orders at or above the threshold, photo below it."""
    return PIN if Decimal(str(total_amount)) >= Decimal(str(threshold)) else PHOTO
