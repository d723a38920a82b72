"""
Message Envelope

Provider-agnostic message representation exchanged with the hosting gateway.
Content is a closed set of variants, one dataclass per content type.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union
from uuid import uuid4

CHANNEL_ID = "gupshup"


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class Direction(str, Enum):
    """Message direction relative to the channel."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class ContentType(str, Enum):
    """Envelope content types."""

    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"
    LOCATION = "location"
    CONTACT = "contact"
    STICKER = "sticker"


@dataclass(frozen=True)
class TextContent:
    type: ClassVar[ContentType] = ContentType.TEXT

    text: str


@dataclass(frozen=True)
class ImageContent:
    type: ClassVar[ContentType] = ContentType.IMAGE

    media_url: str
    mime_type: str | None = None
    caption: str | None = None


@dataclass(frozen=True)
class DocumentContent:
    type: ClassVar[ContentType] = ContentType.DOCUMENT

    media_url: str
    mime_type: str | None = None
    filename: str | None = None
    caption: str | None = None


@dataclass(frozen=True)
class AudioContent:
    type: ClassVar[ContentType] = ContentType.AUDIO

    media_url: str
    mime_type: str | None = None


@dataclass(frozen=True)
class VideoContent:
    type: ClassVar[ContentType] = ContentType.VIDEO

    media_url: str
    mime_type: str | None = None
    caption: str | None = None


@dataclass(frozen=True)
class LocationContent:
    """Coordinates are optional here; outbound sends require both."""

    type: ClassVar[ContentType] = ContentType.LOCATION

    latitude: float | None = None
    longitude: float | None = None
    name: str | None = None
    address: str | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class ContactContent:
    type: ClassVar[ContentType] = ContentType.CONTACT

    name: str
    phone: str | None = None


@dataclass(frozen=True)
class StickerContent:
    type: ClassVar[ContentType] = ContentType.STICKER

    media_url: str
    mime_type: str | None = None


MessageContent = Union[
    TextContent,
    ImageContent,
    DocumentContent,
    AudioContent,
    VideoContent,
    LocationContent,
    ContactContent,
    StickerContent,
]


def content_text(content: MessageContent) -> str | None:
    """Best-effort text of a content variant (text body or media caption)."""
    if isinstance(content, TextContent):
        return content.text
    return getattr(content, "caption", None)


def content_to_dict(content: MessageContent) -> dict[str, Any]:
    """Serialize content to the gateway's camelCase shape."""
    data: dict[str, Any] = {"type": content.type.value}

    if isinstance(content, TextContent):
        data["text"] = content.text
    elif isinstance(content, LocationContent):
        data["location"] = _drop_none({
            "latitude": content.latitude,
            "longitude": content.longitude,
            "name": content.name,
            "address": content.address,
        })
    elif isinstance(content, ContactContent):
        data["contact"] = _drop_none({"name": content.name, "phone": content.phone})
    else:
        data["mediaUrl"] = content.media_url
        data["mimeType"] = content.mime_type
        data["filename"] = getattr(content, "filename", None)
        data["caption"] = getattr(content, "caption", None)

    return _drop_none(data)


def content_from_dict(data: dict[str, Any]) -> MessageContent:
    """
    Parse content from the gateway's camelCase shape.

    Raises:
        ValueError: if the content type is not one of ContentType
    """
    content_type = ContentType(data.get("type", ContentType.TEXT.value))

    if content_type == ContentType.TEXT:
        return TextContent(text=data.get("text") or "")

    if content_type == ContentType.LOCATION:
        location = data.get("location") or {}
        return LocationContent(
            latitude=location.get("latitude"),
            longitude=location.get("longitude"),
            name=location.get("name"),
            address=location.get("address"),
        )

    if content_type == ContentType.CONTACT:
        contact = data.get("contact") or {}
        return ContactContent(name=contact.get("name", ""), phone=contact.get("phone"))

    media_url = data.get("mediaUrl") or ""
    mime_type = data.get("mimeType")

    if content_type == ContentType.IMAGE:
        return ImageContent(media_url=media_url, mime_type=mime_type, caption=data.get("caption"))
    if content_type == ContentType.DOCUMENT:
        return DocumentContent(
            media_url=media_url,
            mime_type=mime_type,
            filename=data.get("filename"),
            caption=data.get("caption"),
        )
    if content_type == ContentType.AUDIO:
        return AudioContent(media_url=media_url, mime_type=mime_type)
    if content_type == ContentType.VIDEO:
        return VideoContent(media_url=media_url, mime_type=mime_type, caption=data.get("caption"))
    return StickerContent(media_url=media_url, mime_type=mime_type)


@dataclass(frozen=True)
class Participant:
    """Sender or recipient of a message."""

    id: str
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({"id": self.id, "name": self.name})


@dataclass
class MessageEnvelope:
    """
    Internal message envelope.

    Attributes:
        id: Message identifier (provider id for inbound messages)
        channel: Channel identifier, always "gupshup" for this adapter
        direction: inbound or outbound
        sender: Sender participant (phone digits for WhatsApp users)
        recipient: Recipient participant
        content: One of the content variants
        timestamp: Epoch milliseconds
        reply_to: Id of the message being replied to
        metadata: Free-form data; "account" selects the sending account
    """

    id: str
    sender: Participant
    recipient: Participant
    content: MessageContent
    direction: Direction = Direction.OUTBOUND
    channel: str = CHANNEL_ID
    timestamp: int = field(default_factory=now_ms)
    reply_to: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MessageEnvelope":
        """Create an envelope from the gateway's JSON shape."""
        sender = data.get("sender") or {}
        recipient = data.get("recipient") or {}
        return cls(
            id=data.get("id") or generate_message_id(),
            channel=data.get("channel", CHANNEL_ID),
            direction=Direction(data.get("direction", Direction.OUTBOUND.value)),
            sender=Participant(id=sender.get("id", ""), name=sender.get("name")),
            recipient=Participant(id=recipient.get("id", ""), name=recipient.get("name")),
            content=content_from_dict(data.get("content") or {}),
            timestamp=int(data.get("timestamp") or now_ms()),
            reply_to=data.get("replyTo"),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the gateway's JSON shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "channel": self.channel,
            "direction": self.direction.value,
            "sender": self.sender.to_dict(),
            "recipient": self.recipient.to_dict(),
            "content": content_to_dict(self.content),
            "timestamp": self.timestamp,
        }
        if self.reply_to:
            data["replyTo"] = self.reply_to
        if self.metadata:
            data["metadata"] = self.metadata
        return data


def generate_message_id() -> str:
    """Generate a local message id."""
    return f"gs_{now_ms()}_{uuid4().hex[:7]}"


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}
