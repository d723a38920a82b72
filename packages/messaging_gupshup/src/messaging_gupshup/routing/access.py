"""
Access Control

Applies the DM policy to inbound senders:
- open: anyone
- allowlist: only numbers in the allowlist
- pairing: allowlisted numbers, or numbers that already have a session

Pairing is a stand-in for a real approval workflow owned by the gateway.
"""

import logging
from collections.abc import Iterable

from messaging_gupshup.contracts.events import DmPolicy
from messaging_gupshup.errors import AccessDeniedError
from messaging_gupshup.phone import normalize_phone
from messaging_gupshup.routing.session import SessionTracker

logger = logging.getLogger(__name__)


def parse_policy(value: str | DmPolicy | None) -> DmPolicy:
    """Parse a policy name. Unset or unknown values fall back to open."""
    if isinstance(value, DmPolicy):
        return value
    if not value:
        return DmPolicy.OPEN
    try:
        return DmPolicy(value.strip().lower())
    except ValueError:
        logger.warning(f"Unknown DM policy '{value}', falling back to open")
        return DmPolicy.OPEN


class AccessController:
    """Allowlist and policy checks for inbound senders."""

    def __init__(
        self,
        policy: str | DmPolicy | None = None,
        allowlist: Iterable[str] = (),
        sessions: SessionTracker | None = None,
    ):
        self.policy = parse_policy(policy)
        self._sessions = sessions
        self._allowlist: set[str] = set()
        for phone in allowlist:
            self.add_to_allowlist(phone)

    def is_allowed(self, phone: str) -> bool:
        """Check whether phone may reach the gateway under the current policy."""
        normalized = normalize_phone(phone)

        if self.policy == DmPolicy.ALLOWLIST:
            return normalized in self._allowlist

        if self.policy == DmPolicy.PAIRING:
            if normalized in self._allowlist:
                return True
            return self._sessions is not None and self._sessions.has_session(normalized)

        return True

    def check(self, phone: str) -> None:
        """
        Raise AccessDeniedError when phone is not allowed.

        Raises:
            AccessDeniedError: sender rejected by the current policy
        """
        if not self.is_allowed(phone):
            raise AccessDeniedError(normalize_phone(phone), self.policy)

    def add_to_allowlist(self, phone: str) -> None:
        normalized = normalize_phone(phone)
        if normalized:
            self._allowlist.add(normalized)

    def remove_from_allowlist(self, phone: str) -> None:
        self._allowlist.discard(normalize_phone(phone))

    def get_allowlist(self) -> list[str]:
        return sorted(self._allowlist)
