"""
Gupshup Message Transformer

Converts between Gupshup webhook payloads and message envelopes.
Pure functions: no I/O, no state.
"""

from collections.abc import Callable
from typing import Any

from messaging_gupshup.contracts.envelope import (
    CHANNEL_ID,
    AudioContent,
    ContactContent,
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
    generate_message_id,
    now_ms,
)
from messaging_gupshup.contracts.events import InboundMessagePayload
from messaging_gupshup.contracts.wire import (
    AudioMessage,
    FileMessage,
    ImageMessage,
    LocationMessage,
    OutboundWireMessage,
    TextMessage,
    VideoMessage,
)
from messaging_gupshup.errors import ValidationError
from messaging_gupshup.phone import normalize_phone

DEFAULT_DOCUMENT_FILENAME = "document"


def to_envelope(
    payload: InboundMessagePayload | dict[str, Any],
    recipient_phone: str,
) -> MessageEnvelope:
    """
    Transform a Gupshup inbound message payload into an envelope.

    Unknown message types become a text placeholder naming the type.
    """
    if not isinstance(payload, InboundMessagePayload):
        payload = InboundMessagePayload.model_validate(payload)

    context = payload.context

    return MessageEnvelope(
        id=payload.id,
        channel=CHANNEL_ID,
        direction=Direction.INBOUND,
        sender=Participant(id=normalize_phone(payload.sender.phone), name=payload.sender.name),
        recipient=Participant(id=normalize_phone(recipient_phone)),
        content=parse_inbound_content(payload.type, payload.payload),
        timestamp=now_ms(),
        reply_to=context.id if context else None,
        metadata={
            "gupshupId": payload.id,
            "contextGsId": context.gs_id if context else None,
        },
    )


def parse_inbound_content(message_type: str, content: dict[str, Any]) -> MessageContent:
    """Map an inbound content payload to an envelope content variant."""
    parser = _INBOUND_PARSERS.get(message_type)
    if parser is None:
        return TextContent(text=f"[Received {message_type} message]")
    return parser(content or {})


def _parse_text(content: dict[str, Any]) -> MessageContent:
    return TextContent(text=content.get("text", ""))


def _parse_image(content: dict[str, Any]) -> MessageContent:
    return ImageContent(
        media_url=content.get("url", ""),
        mime_type=content.get("contentType"),
        caption=content.get("caption"),
    )


def _parse_document(content: dict[str, Any]) -> MessageContent:
    return DocumentContent(
        media_url=content.get("url", ""),
        mime_type=content.get("contentType"),
        filename=content.get("filename") or content.get("name"),
        caption=content.get("caption"),
    )


def _parse_audio(content: dict[str, Any]) -> MessageContent:
    return AudioContent(media_url=content.get("url", ""), mime_type=content.get("contentType"))


def _parse_video(content: dict[str, Any]) -> MessageContent:
    return VideoContent(
        media_url=content.get("url", ""),
        mime_type=content.get("contentType"),
        caption=content.get("caption"),
    )


def _parse_location(content: dict[str, Any]) -> MessageContent:
    return LocationContent(
        latitude=_as_float(content.get("latitude")),
        longitude=_as_float(content.get("longitude")),
        name=content.get("name"),
        address=content.get("address"),
    )


def _parse_contact(content: dict[str, Any]) -> MessageContent:
    # Gupshup may wrap contacts in a list under "contacts"
    contacts = content.get("contacts")
    if isinstance(contacts, list) and contacts:
        content = contacts[0]

    name = content.get("name") or {}
    if isinstance(name, str):
        display_name = name
    else:
        display_name = name.get("formattedName") or " ".join(
            part for part in (name.get("firstName"), name.get("lastName")) if part
        )

    phones = content.get("phones") or []
    phone = phones[0].get("phone") if phones and isinstance(phones[0], dict) else None

    return ContactContent(name=display_name, phone=phone)


def _parse_sticker(content: dict[str, Any]) -> MessageContent:
    return StickerContent(media_url=content.get("url", ""), mime_type=content.get("contentType"))


_INBOUND_PARSERS: dict[str, Callable[[dict[str, Any]], MessageContent]] = {
    "text": _parse_text,
    "image": _parse_image,
    "document": _parse_document,
    "file": _parse_document,
    "audio": _parse_audio,
    "voice": _parse_audio,
    "video": _parse_video,
    "location": _parse_location,
    "contact": _parse_contact,
    "sticker": _parse_sticker,
}


def to_wire_message(envelope: MessageEnvelope) -> OutboundWireMessage:
    """
    Transform an envelope into a Gupshup outbound message.

    Contacts and content without a wire equivalent are sent as text.

    Raises:
        ValidationError: location content without coordinates
    """
    content = envelope.content

    if isinstance(content, TextContent):
        return TextMessage(text=content.text or "")

    if isinstance(content, ImageContent):
        return ImageMessage(original_url=content.media_url, caption=content.caption)

    if isinstance(content, DocumentContent):
        return FileMessage(url=content.media_url, filename=content.filename or DEFAULT_DOCUMENT_FILENAME)

    if isinstance(content, AudioContent):
        return AudioMessage(url=content.media_url)

    if isinstance(content, VideoContent):
        return VideoMessage(url=content.media_url, caption=content.caption)

    if isinstance(content, LocationContent):
        if not content.has_coordinates:
            raise ValidationError("Location content is required for location messages")
        return LocationMessage(
            latitude=content.latitude,
            longitude=content.longitude,
            name=content.name,
            address=content.address,
        )

    if isinstance(content, StickerContent):
        # Stickers are sent as images
        return ImageMessage(original_url=content.media_url)

    if isinstance(content, ContactContent):
        return TextMessage(text=_contact_summary(content))

    return TextMessage(text=getattr(content, "text", None) or "[Unsupported message type]")


def _contact_summary(contact: ContactContent) -> str:
    if not contact.name:
        return "Contact shared"
    if contact.phone:
        return f"Contact: {contact.name} ({contact.phone})"
    return f"Contact: {contact.name}"


def create_text_envelope(
    sender_id: str,
    recipient_id: str,
    text: str,
    direction: Direction = Direction.INBOUND,
) -> MessageEnvelope:
    """Create a text-only envelope (error notices, tests, CLI)."""
    return MessageEnvelope(
        id=generate_message_id(),
        channel=CHANNEL_ID,
        direction=direction,
        sender=Participant(id=normalize_phone(sender_id)),
        recipient=Participant(id=normalize_phone(recipient_id)),
        content=TextContent(text=text),
        timestamp=now_ms(),
    )


def _as_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
