"""
Gupshup WhatsApp API Client

Production client for the Gupshup WhatsApp Business API.
Sends form-encoded messages with retry on transient failures.
"""

import json
import logging
from typing import Any

import httpx

from messaging_gupshup.contracts.wire import (
    AudioMessage,
    FileMessage,
    ImageMessage,
    LocationMessage,
    OutboundWireMessage,
    TextMessage,
    VideoMessage,
)
from messaging_gupshup.errors import ApiError
from messaging_gupshup.phone import normalize_phone
from messaging_gupshup.providers.base import DeliveryClient, SendResponse
from messaging_gupshup.providers.gupshup.retry import (
    MAX_ATTEMPTS,
    RETRY_DELAY_SECONDS,
    classify_response,
    retry_async,
)

logger = logging.getLogger(__name__)

# Gupshup API configuration
GUPSHUP_API_BASE_URL = "https://api.gupshup.io/wa/api/v1"
DEFAULT_TIMEOUT = 30.0


class GupshupClient(DeliveryClient):
    """
    Gupshup API client for one account.

    Does not touch session or account health state; the channel does.
    """

    def __init__(
        self,
        api_key: str,
        source_phone: str,
        business_name: str = "Assistant",
        base_url: str = GUPSHUP_API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = RETRY_DELAY_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.source_phone = source_phone
        self.business_name = business_name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"apikey": self.api_key},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def build_form(self, destination: str, message: OutboundWireMessage) -> dict[str, str]:
        """Build the x-www-form-urlencoded fields for a send."""
        return {
            "channel": "whatsapp",
            "source": normalize_phone(self.source_phone),
            "destination": normalize_phone(destination),
            "message": json.dumps(message.to_wire()),
            "src.name": self.business_name,
        }

    async def _post_once(self, form: dict[str, str], timeout: float) -> SendResponse:
        """Single POST attempt. Raises a classified GupshupError on failure."""
        client = await self._get_client()

        try:
            response = await client.post(f"{self.base_url}/msg", data=form, timeout=timeout)
        except httpx.RequestError as e:
            logger.error(f"HTTP request failed: {e}")
            raise ApiError(
                f"HTTP request failed: {e}",
                code="NETWORK_ERROR",
                retryable=True,
            ) from e

        try:
            body: Any = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        error = classify_response(response.status_code, body)
        if error is not None:
            raise error

        return SendResponse.from_body(body)

    async def send_message(
        self,
        destination: str,
        message: OutboundWireMessage,
        retry: bool = True,
        timeout: float | None = None,
    ) -> SendResponse:
        """Send a wire message, retrying 429/5xx/network failures with linear backoff."""
        form = self.build_form(destination, message)
        effective_timeout = timeout if timeout is not None else self.timeout

        response = await retry_async(
            lambda attempt: self._post_once(form, effective_timeout),
            max_attempts=self.max_attempts if retry else 1,
            delay=self.retry_delay,
        )

        logger.info(
            "Sent message via Gupshup API",
            extra={
                "to": form["destination"],
                "type": message.to_wire()["type"],
                "message_id": response.message_id,
                "status": response.status,
            },
        )

        return response

    async def send_text(self, destination: str, text: str, **options: Any) -> SendResponse:
        return await self.send_message(destination, TextMessage(text=text), **options)

    async def send_image(
        self,
        destination: str,
        image_url: str,
        caption: str | None = None,
        **options: Any,
    ) -> SendResponse:
        return await self.send_message(destination, ImageMessage(original_url=image_url, caption=caption), **options)

    async def send_document(self, destination: str, document_url: str, filename: str, **options: Any) -> SendResponse:
        return await self.send_message(destination, FileMessage(url=document_url, filename=filename), **options)

    async def send_audio(self, destination: str, audio_url: str, **options: Any) -> SendResponse:
        return await self.send_message(destination, AudioMessage(url=audio_url), **options)

    async def send_video(
        self,
        destination: str,
        video_url: str,
        caption: str | None = None,
        **options: Any,
    ) -> SendResponse:
        return await self.send_message(destination, VideoMessage(url=video_url, caption=caption), **options)

    async def send_location(
        self,
        destination: str,
        latitude: float,
        longitude: float,
        name: str | None = None,
        address: str | None = None,
        **options: Any,
    ) -> SendResponse:
        message = LocationMessage(latitude=latitude, longitude=longitude, name=name, address=address)
        return await self.send_message(destination, message, **options)
