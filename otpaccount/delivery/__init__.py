"""Delivery channels for the OTP Account Service."""

from .base import DeliveryChannel, ConsoleDeliveryChannel
from .smtp import SMTPDeliveryChannel

__all__ = [
    'DeliveryChannel',
    'ConsoleDeliveryChannel',
    'SMTPDeliveryChannel'
]
