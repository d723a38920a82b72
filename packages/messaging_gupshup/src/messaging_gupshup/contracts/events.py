"""
Gupshup Webhook Payloads and Channel Events

Pydantic models for the webhook wire format, plus the events the channel
hands to the hosting gateway.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from messaging_gupshup.contracts.envelope import now_ms


class WebhookType(str, Enum):
    """Top-level webhook payload types."""

    MESSAGE = "message"
    MESSAGE_EVENT = "message-event"
    USER_EVENT = "user-event"


class DeliveryStatus(str, Enum):
    """Delivery status reported in message-event webhooks."""

    ENQUEUED = "enqueued"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"

    @classmethod
    def normalize(cls, value: str | None) -> "DeliveryStatus | None":
        """Map a raw status string to a DeliveryStatus, None if unknown."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class UserEventType(str, Enum):
    """User lifecycle events."""

    OPTED_IN = "opted-in"
    OPTED_OUT = "opted-out"
    SANDBOX_START = "sandbox-start"


class DmPolicy(str, Enum):
    """Access policy for inbound direct messages."""

    OPEN = "open"
    ALLOWLIST = "allowlist"
    PAIRING = "pairing"


class WebhookPayload(BaseModel):
    """Outer webhook body: {app, timestamp, version, type, payload}."""

    model_config = ConfigDict(extra="allow")

    app: str | None = None
    timestamp: int | None = None
    version: int | None = None
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)


class SenderInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    phone: str
    name: str | None = None
    country_code: str | None = None
    dial_code: str | None = None


class MessageContext(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = None
    gs_id: str | None = Field(None, alias="gsId")


class InboundMessagePayload(BaseModel):
    """
    Payload of a "message" webhook.

    The inner ``payload`` stays a dict; its shape depends on ``type`` and is
    mapped by the wire transformer.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    source: str | None = None
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    sender: SenderInfo
    context: MessageContext | None = None


class MessageEventPayload(BaseModel):
    """Payload of a "message-event" webhook."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    gs_id: str | None = Field(None, alias="gsId")
    type: str
    destination: str
    payload: dict[str, Any] | None = None


class UserEventPayload(BaseModel):
    """Payload of a "user-event" webhook."""

    model_config = ConfigDict(extra="allow")

    phone: str
    type: UserEventType


@dataclass
class DeliveryStatusEvent:
    """Delivery status update handed to the gateway."""

    message_id: str
    destination: str
    status: DeliveryStatus
    gupshup_id: str | None = None
    error_code: str | None = None
    error_reason: str | None = None
    timestamp: int = 0

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = now_ms()


@dataclass
class UserEvent:
    """Opt-in / opt-out notification handed to the gateway."""

    phone: str
    type: UserEventType
    timestamp: int = 0

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = now_ms()


@dataclass
class SendResult:
    """Outcome of an outbound send as reported to the gateway."""

    success: bool
    message_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.message_id is not None:
            data["messageId"] = self.message_id
        if self.error is not None:
            data["error"] = self.error
        return data
