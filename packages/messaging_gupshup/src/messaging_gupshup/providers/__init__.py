"""
Gupshup Providers

Delivery client implementations: the Gupshup API client (production)
and a stub client (development).
"""

from messaging_gupshup.providers.base import DeliveryClient, SendResponse

__all__ = [
    "DeliveryClient",
    "SendResponse",
]
