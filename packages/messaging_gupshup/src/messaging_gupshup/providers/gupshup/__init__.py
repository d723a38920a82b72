"""Gupshup WhatsApp Business API provider."""

from messaging_gupshup.providers.gupshup.client import GupshupClient
from messaging_gupshup.providers.gupshup.transformer import create_text_envelope, to_envelope, to_wire_message
from messaging_gupshup.providers.gupshup.webhook import WebhookHandler, WebhookResponse, validate_signature

__all__ = [
    "GupshupClient",
    "WebhookHandler",
    "WebhookResponse",
    "validate_signature",
    "to_envelope",
    "to_wire_message",
    "create_text_envelope",
]
