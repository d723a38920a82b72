"""
Health Monitor

Tracks per-account liveness and, on demand, probes the Gupshup API with
each account's key.

An account is connected once it has had successful activity (or passed a
probe) and stays connected until a send or probe fails.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Any

import httpx

from messaging_gupshup.contracts.envelope import CHANNEL_ID, now_ms
from messaging_gupshup.routing.account_resolver import ResolvedAccount

logger = logging.getLogger(__name__)

GUPSHUP_HEALTH_URL = "https://api.gupshup.io/wa/api/v1/health"
PROBE_TIMEOUT = 10.0


@dataclass
class AccountHealth:
    """Health record for one account."""

    name: str
    phone_number: str
    connected: bool = False
    last_activity: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "phoneNumber": self.phone_number,
            "connected": self.connected,
        }
        if self.last_activity is not None:
            data["lastActivity"] = self.last_activity
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class HealthStatus:
    """Channel health snapshot. Healthy when any account is connected."""

    healthy: bool
    accounts: list[AccountHealth] = field(default_factory=list)
    channel: str = CHANNEL_ID
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "channel": self.channel,
            "accounts": [account.to_dict() for account in self.accounts],
            "timestamp": self.timestamp,
        }


@dataclass
class ProbeResult:
    status: HealthStatus
    details: str


class HealthMonitor:
    """
    Per-account health records plus optional API probes.

    Records start disconnected.
    """

    def __init__(
        self,
        accounts: Iterable[ResolvedAccount],
        clock: Callable[[], int] = now_ms,
        health_url: str = GUPSHUP_HEALTH_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._accounts = list(accounts)
        self._clock = clock
        self.health_url = health_url
        self._transport = transport
        self._statuses: dict[str, AccountHealth] = {
            account.name: AccountHealth(name=account.name, phone_number=account.phone_number)
            for account in self._accounts
        }

    def update_activity(self, account_name: str) -> None:
        """Mark an account connected and stamp its last activity."""
        status = self._statuses.get(account_name)
        if status is None:
            return
        status.connected = True
        status.last_activity = self._clock()
        status.error = None

    def mark_unhealthy(self, account_name: str, error: str) -> None:
        status = self._statuses.get(account_name)
        if status is None:
            return
        status.connected = False
        status.error = error

        logger.warning("Account marked unhealthy", extra={"account": account_name, "error": error})

    def get_status(self) -> HealthStatus:
        """Current snapshot, without any network calls."""
        accounts = [replace(status) for status in self._statuses.values()]
        return HealthStatus(
            healthy=any(account.connected for account in accounts),
            accounts=accounts,
            timestamp=self._clock(),
        )

    def get_account_status(self, account_name: str) -> AccountHealth | None:
        status = self._statuses.get(account_name)
        return replace(status) if status is not None else None

    async def check(self, check_api: bool = True, timeout: float = PROBE_TIMEOUT) -> ProbeResult:
        """
        Run a health check over all accounts.

        Args:
            check_api: Probe the Gupshup API with each account's key.
                When False the cached records are reported as-is.
            timeout: Probe timeout in seconds

        Returns:
            ProbeResult with the snapshot and a one-line summary
        """
        if check_api:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                for account in self._accounts:
                    self._statuses[account.name] = await self._probe_account(client, account)

        status = self.get_status()
        connected = [account.connected for account in status.accounts]

        if connected and all(connected):
            details = "All accounts healthy"
        elif any(connected):
            details = "Some accounts unhealthy"
        else:
            details = "All accounts unhealthy"

        return ProbeResult(status=status, details=details)

    async def _probe_account(self, client: httpx.AsyncClient, account: ResolvedAccount) -> AccountHealth:
        """
        Probe one account.

        Any response other than 401/403 counts as healthy; the endpoint
        is only used to verify the key.
        """
        existing = self._statuses.get(account.name)
        last_activity = existing.last_activity if existing else None

        try:
            response = await client.get(self.health_url, headers={"apikey": account.api_key})
        except httpx.HTTPError as e:
            logger.warning(f"Health probe failed: {e}", extra={"account": account.name})
            return AccountHealth(
                name=account.name,
                phone_number=account.phone_number,
                connected=False,
                last_activity=last_activity,
                error=str(e) or type(e).__name__,
            )

        healthy = response.status_code not in (401, 403)

        return AccountHealth(
            name=account.name,
            phone_number=account.phone_number,
            connected=healthy,
            last_activity=last_activity,
            error=None if healthy else "Authentication failed",
        )
