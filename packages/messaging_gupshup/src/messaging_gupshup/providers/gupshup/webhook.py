"""
Gupshup Webhook Handler

Handles incoming Gupshup webhooks: inbound messages, delivery status
updates and user opt-in/opt-out events.

Responses are always 200 once the body parses, so Gupshup does not
retry-storm an already delivered webhook. The exceptions are malformed
JSON (400) and a signature mismatch (401).
"""

import hashlib
import hmac
import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from messaging_gupshup.contracts.envelope import MessageEnvelope
from messaging_gupshup.contracts.events import (
    DeliveryStatus,
    DeliveryStatusEvent,
    InboundMessagePayload,
    MessageEventPayload,
    UserEvent,
    UserEventPayload,
    WebhookPayload,
    WebhookType,
)
from messaging_gupshup.errors import WebhookValidationError
from messaging_gupshup.providers.gupshup.transformer import to_envelope

logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("x-gupshup-signature", "x-hub-signature")

MessageCallback = Callable[[MessageEnvelope], Awaitable[None] | None]
StatusCallback = Callable[[DeliveryStatusEvent], Awaitable[None] | None]
UserEventCallback = Callable[[UserEvent], Awaitable[None] | None]


async def invoke(callback: Callable[..., Any] | None, *args: Any) -> None:
    """Call a sync or async callback."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def compute_signature(body: bytes | str, secret: str) -> str:
    """HMAC-SHA256 of the raw body, hex encoded."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def validate_signature(body: bytes | str, signature: str | None, secret: str) -> bool:
    """
    Validate a webhook signature in constant time.

    A length mismatch is rejected without comparing.
    """
    if not signature:
        return False

    expected = compute_signature(body, secret)
    if len(signature) != len(expected):
        return False

    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))


def extract_signature(headers: dict[str, str]) -> str | None:
    """Find the signature header (case-insensitive)."""
    lowered = {key.lower(): value for key, value in headers.items()}
    for name in SIGNATURE_HEADERS:
        if lowered.get(name):
            return lowered[name]
    return None


@dataclass(frozen=True)
class WebhookResponse:
    """HTTP response to hand back to Gupshup."""

    status: int
    body: str

    @classmethod
    def json(cls, status: int, data: dict[str, Any]) -> "WebhookResponse":
        return cls(status=status, body=json.dumps(data))


class WebhookHandler:
    """
    Parses, validates and routes Gupshup webhooks.

    Bound to a single account's secret and phone number.
    """

    def __init__(
        self,
        source_phone: str,
        webhook_secret: str | None = None,
        on_message: MessageCallback | None = None,
        on_status_update: StatusCallback | None = None,
        on_user_event: UserEventCallback | None = None,
    ):
        self.source_phone = source_phone
        self.webhook_secret = webhook_secret
        self.on_message = on_message
        self.on_status_update = on_status_update
        self.on_user_event = on_user_event

    async def handle_webhook(self, body: bytes | str, signature: str | None = None) -> WebhookResponse:
        """
        Handle an incoming webhook request.

        Args:
            body: Raw request body
            signature: Signature header value, if any

        Returns:
            WebhookResponse (200 unless the JSON or the signature is invalid)
        """
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Invalid JSON payload")
            return WebhookResponse.json(400, {"error": "Invalid JSON"})

        try:
            self.verify(body, signature)
        except WebhookValidationError as e:
            logger.warning("Webhook signature validation failed")
            return WebhookResponse.json(e.status_code or 401, {"error": e.message})

        try:
            await self.route_payload(WebhookPayload.model_validate(data))
        except Exception as e:
            logger.error(f"Error processing webhook: {e}", exc_info=True)
            return WebhookResponse.json(200, {"status": "received", "warning": "Processing error"})

        return WebhookResponse.json(200, {"status": "received"})

    def verify(self, body: bytes | str, signature: str | None) -> None:
        """
        Check the signature when a secret is configured and a signature was sent.

        Unsigned requests are accepted.

        Raises:
            WebhookValidationError: signature does not match
        """
        if not self.webhook_secret or not signature:
            return
        if not validate_signature(body, signature, self.webhook_secret):
            raise WebhookValidationError()

    async def route_payload(self, payload: WebhookPayload) -> None:
        """Route a parsed webhook to the matching handler."""
        if payload.type == WebhookType.MESSAGE.value:
            await self.handle_message(InboundMessagePayload.model_validate(payload.payload))

        elif payload.type == WebhookType.MESSAGE_EVENT.value:
            await self.handle_message_event(MessageEventPayload.model_validate(payload.payload))

        elif payload.type == WebhookType.USER_EVENT.value:
            await self.handle_user_event(UserEventPayload.model_validate(payload.payload))

        else:
            logger.warning(f"Unknown webhook payload type: {payload.type}")

    async def handle_message(self, payload: InboundMessagePayload) -> None:
        if self.on_message is None:
            return

        envelope = to_envelope(payload, self.source_phone)

        logger.debug(
            "Received inbound message",
            extra={"message_id": envelope.id, "type": envelope.content.type.value},
        )

        await invoke(self.on_message, envelope)

    async def handle_message_event(self, payload: MessageEventPayload) -> None:
        if self.on_status_update is None:
            return

        status = DeliveryStatus.normalize(payload.type)
        if status is None:
            logger.warning(f"Unknown delivery status: {payload.type}")
            return

        details = payload.payload or {}
        event = DeliveryStatusEvent(
            message_id=payload.id,
            gupshup_id=payload.gs_id,
            destination=payload.destination,
            status=status,
            error_code=str(details["code"]) if details.get("code") is not None else None,
            error_reason=details.get("reason"),
        )

        await invoke(self.on_status_update, event)

    async def handle_user_event(self, payload: UserEventPayload) -> None:
        if self.on_user_event is None:
            return

        await invoke(self.on_user_event, UserEvent(phone=payload.phone, type=payload.type))
