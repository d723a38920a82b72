"""
Session Tracking

Tracks the WhatsApp 24-hour customer service window per phone number.
Free-form messages are only allowed while the window is open; outside it a
template message is required.

State per phone:
    NoSession -> (inbound) -> Active -> (24h without inbound) -> Expired
    Expired -> (inbound) -> Active

State is in-memory only and starts empty after a restart.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from messaging_gupshup.contracts.envelope import now_ms
from messaging_gupshup.phone import normalize_phone

logger = logging.getLogger(__name__)

SESSION_WINDOW_MS = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class SessionInfo:
    """Snapshot of a conversation session. is_active is computed at read time."""

    phone: str
    last_message_at: int
    is_active: bool


class SessionTracker:
    """
    Per-phone last-inbound timestamps.

    Only inbound messages open or refresh a session.
    """

    def __init__(
        self,
        clock: Callable[[], int] = now_ms,
        window_ms: int = SESSION_WINDOW_MS,
    ):
        self._clock = clock
        self._window_ms = window_ms
        self._sessions: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _is_fresh(self, last_message_at: int, now: int) -> bool:
        return now - last_message_at < self._window_ms

    def record_inbound(self, phone: str) -> SessionInfo:
        """Record an inbound message from phone, opening or refreshing its session."""
        normalized = normalize_phone(phone)
        timestamp = self._clock()
        self._sessions[normalized] = timestamp

        logger.debug("Session refreshed", extra={"phone": normalized})

        return SessionInfo(phone=normalized, last_message_at=timestamp, is_active=True)

    def get_status(self, phone: str) -> SessionInfo:
        """Get the session for phone. Unknown phones are inactive with last_message_at=0."""
        normalized = normalize_phone(phone)
        last_message_at = self._sessions.get(normalized)

        if last_message_at is None:
            return SessionInfo(phone=normalized, last_message_at=0, is_active=False)

        return SessionInfo(
            phone=normalized,
            last_message_at=last_message_at,
            is_active=self._is_fresh(last_message_at, self._clock()),
        )

    def is_active(self, phone: str) -> bool:
        return self.get_status(phone).is_active

    def has_session(self, phone: str) -> bool:
        """Whether phone has ever been recorded (active or expired, until purged)."""
        return normalize_phone(phone) in self._sessions

    def list_active(self) -> list[SessionInfo]:
        """All sessions currently inside the window."""
        now = self._clock()
        return [
            SessionInfo(phone=phone, last_message_at=last, is_active=True)
            for phone, last in self._sessions.items()
            if self._is_fresh(last, now)
        ]

    def purge_expired(self) -> int:
        """
        Remove sessions at or past the window boundary.

        Returns:
            Number of sessions removed
        """
        now = self._clock()
        expired = [phone for phone, last in self._sessions.items() if not self._is_fresh(last, now)]

        for phone in expired:
            del self._sessions[phone]

        if expired:
            logger.info("Purged expired sessions", extra={"count": len(expired)})

        return len(expired)
