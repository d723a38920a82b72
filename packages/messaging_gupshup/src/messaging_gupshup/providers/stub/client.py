"""
Stub Gupshup Client

Development client that logs all sends without making real API calls.
Useful for local development and testing.
"""

import logging
import random
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from messaging_gupshup.contracts.wire import OutboundWireMessage
from messaging_gupshup.errors import ApiError, GupshupError
from messaging_gupshup.phone import normalize_phone
from messaging_gupshup.providers.base import SUBMITTED, DeliveryClient, SendResponse

logger = logging.getLogger(__name__)


class StubGupshupClient(DeliveryClient):
    """
    Stub client for development and testing.

    - Records every outbound message
    - Generates fake message IDs
    - Can raise queued errors (fail_next) or simulate random failures
    """

    def __init__(
        self,
        source_phone: str = "",
        simulate_failures: bool = False,
        failure_rate: float = 0.1,
    ):
        self.source_phone = source_phone
        self.simulate_failures = simulate_failures
        self.failure_rate = failure_rate
        self.sent_messages: list[dict[str, Any]] = []
        self.closed = False
        self._queued_errors: list[GupshupError] = []

    def fail_next(self, *errors: GupshupError) -> None:
        """Raise these errors, in order, on the next sends."""
        self._queued_errors.extend(errors)

    async def send_message(
        self,
        destination: str,
        message: OutboundWireMessage,
        retry: bool = True,
        timeout: float | None = None,
    ) -> SendResponse:
        """Log and return a submitted response."""
        wire = message.to_wire()
        message_id = f"stub_msg_{uuid4().hex[:16]}"

        self.sent_messages.append({
            "source": normalize_phone(self.source_phone),
            "destination": normalize_phone(destination),
            "message": wire,
            "message_id": message_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

        logger.info(
            "[STUB] Sending message",
            extra={"to": normalize_phone(destination), "type": wire["type"], "message_id": message_id},
        )

        if self._queued_errors:
            raise self._queued_errors.pop(0)

        if self._should_fail():
            raise ApiError("Simulated failure for testing", code="STUB_SIMULATED_FAILURE")

        return SendResponse(
            status=SUBMITTED,
            message_id=message_id,
            raw_response={"status": SUBMITTED, "messageId": message_id, "stub": True},
        )

    async def close(self) -> None:
        self.closed = True

    def _should_fail(self) -> bool:
        if not self.simulate_failures:
            return False
        return random.random() < self.failure_rate

    def get_sent_messages(self) -> list[dict[str, Any]]:
        """Get all recorded messages."""
        return list(self.sent_messages)

    def clear_sent_messages(self) -> None:
        self.sent_messages.clear()
