"""
Gupshup Channel Contracts

Envelope, configuration and webhook event definitions.
"""

from messaging_gupshup.contracts.config import GupshupAccountConfig, GupshupConfig, TemplateConfig
from messaging_gupshup.contracts.envelope import (
    AudioContent,
    ContactContent,
    ContentType,
    Direction,
    DocumentContent,
    ImageContent,
    LocationContent,
    MessageContent,
    MessageEnvelope,
    Participant,
    StickerContent,
    TextContent,
    VideoContent,
)
from messaging_gupshup.contracts.events import (
    DeliveryStatus,
    DeliveryStatusEvent,
    DmPolicy,
    SendResult,
    UserEvent,
    UserEventType,
    WebhookType,
)

__all__ = [
    "GupshupConfig",
    "GupshupAccountConfig",
    "TemplateConfig",
    "MessageEnvelope",
    "MessageContent",
    "Participant",
    "Direction",
    "ContentType",
    "TextContent",
    "ImageContent",
    "DocumentContent",
    "AudioContent",
    "VideoContent",
    "LocationContent",
    "ContactContent",
    "StickerContent",
    "DeliveryStatus",
    "DeliveryStatusEvent",
    "DmPolicy",
    "SendResult",
    "UserEvent",
    "UserEventType",
    "WebhookType",
]
