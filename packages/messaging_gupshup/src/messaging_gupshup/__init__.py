"""
Gupshup WhatsApp Channel

Channel adapter between the gateway's message envelopes and the Gupshup
WhatsApp Business API.
"""

from messaging_gupshup.contracts.config import GupshupConfig
from messaging_gupshup.contracts.envelope import MessageEnvelope
from messaging_gupshup.errors import GupshupError
from messaging_gupshup.service.channel import ChannelEvents, GupshupChannel

__version__ = "0.1.0"

__all__ = [
    "GupshupChannel",
    "ChannelEvents",
    "GupshupConfig",
    "GupshupError",
    "MessageEnvelope",
]
