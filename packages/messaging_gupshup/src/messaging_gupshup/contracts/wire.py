"""
Gupshup Outbound Wire Messages

One dataclass per message variant accepted by the Gupshup send API.
``to_wire()`` produces the JSON object placed in the ``message`` form field;
unset optional fields are omitted.
"""

from dataclasses import dataclass
from typing import Any, Union


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class TextMessage:
    text: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ImageMessage:
    original_url: str
    preview_url: str | None = None
    caption: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return _compact({
            "type": "image",
            "originalUrl": self.original_url,
            "previewUrl": self.preview_url,
            "caption": self.caption,
        })


@dataclass(frozen=True)
class FileMessage:
    url: str
    filename: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": "file", "url": self.url, "filename": self.filename}


@dataclass(frozen=True)
class AudioMessage:
    url: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": "audio", "url": self.url}


@dataclass(frozen=True)
class VideoMessage:
    url: str
    caption: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return _compact({"type": "video", "url": self.url, "caption": self.caption})


@dataclass(frozen=True)
class LocationMessage:
    latitude: float
    longitude: float
    name: str | None = None
    address: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return _compact({
            "type": "location",
            "longitude": self.longitude,
            "latitude": self.latitude,
            "name": self.name,
            "address": self.address,
        })


@dataclass(frozen=True)
class TemplateMessage:
    """Template message, the only variant allowed outside the session window."""

    template_id: str
    params: list[str] | None = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "template",
            "template": _compact({"id": self.template_id, "params": self.params}),
        }


OutboundWireMessage = Union[
    TextMessage,
    ImageMessage,
    FileMessage,
    AudioMessage,
    VideoMessage,
    LocationMessage,
    TemplateMessage,
]
