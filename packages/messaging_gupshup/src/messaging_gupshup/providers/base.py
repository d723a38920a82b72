"""
Delivery Client Base

Interface shared by the real Gupshup client and the stub client.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from messaging_gupshup.contracts.wire import OutboundWireMessage, TemplateMessage

SUBMITTED = "submitted"


@dataclass
class SendResponse:
    """
    Response body of a Gupshup send call.

    {"status": "submitted", "messageId": "..."} on success,
    {"status": "error", "error": {"code": "...", "message": "..."}} otherwise.
    """

    status: str
    message_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def submitted(self) -> bool:
        return self.status == SUBMITTED

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "SendResponse":
        error = body.get("error") if isinstance(body.get("error"), dict) else {}
        return cls(
            status=str(body.get("status", "")),
            message_id=body.get("messageId"),
            error_code=str(error["code"]) if error.get("code") is not None else None,
            error_message=error.get("message"),
            raw_response=body,
        )


class DeliveryClient(ABC):
    """
    Sends wire messages for one account.

    Implementations raise the channel's error taxonomy
    (AuthenticationError, SessionExpiredError, ApiError) on failure.
    """

    source_phone: str

    @abstractmethod
    async def send_message(
        self,
        destination: str,
        message: OutboundWireMessage,
        retry: bool = True,
        timeout: float | None = None,
    ) -> SendResponse:
        """
        Send a wire message.

        Args:
            destination: Recipient phone number (any representation)
            message: Outbound wire message
            retry: Retry transient failures
            timeout: Per-attempt timeout in seconds

        Returns:
            SendResponse from the provider
        """
        ...

    async def send_template(
        self,
        destination: str,
        template_id: str,
        params: list[str] | None = None,
        retry: bool = True,
        timeout: float | None = None,
    ) -> SendResponse:
        """Send a pre-approved template (required outside the 24h window)."""
        message = TemplateMessage(template_id=template_id, params=params)
        return await self.send_message(destination, message, retry=retry, timeout=timeout)

    async def close(self) -> None:
        """Release network resources."""
        return None
