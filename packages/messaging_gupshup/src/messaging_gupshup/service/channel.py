"""
Gupshup Channel

Ties accounts, delivery clients, sessions, access control and health
together for the hosting gateway.

Inbound:
1. Webhook parsed and routed by the WebhookHandler
2. Sender checked against the DM policy
3. Session refreshed and message forwarded to on_message

Outbound:
1. Account picked from envelope metadata, the default account or the first one
2. Free-form send while the 24h session is open
3. Template send when the session is closed or the provider reports it expired
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from messaging_gupshup.contracts.config import DEFAULT_WEBHOOK_PATH, GupshupConfig
from messaging_gupshup.contracts.envelope import CHANNEL_ID, MessageEnvelope, content_text, now_ms
from messaging_gupshup.contracts.events import DeliveryStatusEvent, DmPolicy, SendResult, UserEvent
from messaging_gupshup.errors import (
    AccessDeniedError,
    AccountNotFoundError,
    ConfigurationError,
    SessionExpiredError,
)
from messaging_gupshup.providers.base import DeliveryClient, SendResponse
from messaging_gupshup.providers.gupshup.client import GupshupClient
from messaging_gupshup.providers.gupshup.transformer import to_wire_message
from messaging_gupshup.providers.gupshup.webhook import WebhookHandler, WebhookResponse, invoke
from messaging_gupshup.routing.access import AccessController
from messaging_gupshup.routing.account_resolver import ResolvedAccount, coerce_config, resolve_accounts
from messaging_gupshup.routing.session import SessionInfo, SessionTracker
from messaging_gupshup.service.health import HealthMonitor, HealthStatus

logger = logging.getLogger(__name__)

CHANNEL_NAME = "Gupshup WhatsApp"

TEMPLATE_PARAM_MAX_LENGTH = 1024
TEMPLATE_FALLBACK_TEXT = "[Message]"
NO_TEMPLATES_ERROR = "Session expired. No templates configured for out-of-session messaging."

ClientFactory = Callable[[ResolvedAccount], DeliveryClient]


@dataclass
class ChannelEvents:
    """
    Gateway callbacks. Each may be a plain function or a coroutine function.
    """

    on_message: Callable[[MessageEnvelope], Awaitable[None] | None] | None = None
    on_status_update: Callable[[DeliveryStatusEvent], Awaitable[None] | None] | None = None
    on_user_event: Callable[[UserEvent], Awaitable[None] | None] | None = None
    on_access_denied: Callable[[str, DmPolicy], Awaitable[None] | None] | None = None


@dataclass
class ChannelStatus:
    connected: bool
    last_activity: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"connected": self.connected, "lastActivity": self.last_activity}
        if self.error is not None:
            data["error"] = self.error
        return data


def default_client_factory(account: ResolvedAccount) -> DeliveryClient:
    """Build the production API client for an account."""
    return GupshupClient(
        api_key=account.api_key,
        source_phone=account.phone_number,
        business_name=account.business_name,
    )


class GupshupChannel:
    """
    Gupshup WhatsApp channel adapter.

    Lifecycle: initialize(config) -> start() -> ... -> stop().
    Public send and webhook entry points report failures in their
    return values and do not raise.
    """

    id = CHANNEL_ID
    name = CHANNEL_NAME

    def __init__(
        self,
        events: ChannelEvents | None = None,
        clock: Callable[[], int] = now_ms,
        client_factory: ClientFactory | None = None,
    ):
        self.events = events or ChannelEvents()
        self._clock = clock
        self._client_factory = client_factory or default_client_factory

        self.config: GupshupConfig | None = None
        self.accounts: list[ResolvedAccount] = []
        self.clients: dict[str, DeliveryClient] = {}
        self.sessions = SessionTracker(clock=clock)
        self.access = AccessController(sessions=self.sessions)
        self.health: HealthMonitor | None = None
        self.webhook_handler: WebhookHandler | None = None
        self.default_account: ResolvedAccount | None = None

        self.connected = False
        self.last_activity = 0
        self.last_error: str | None = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize(self, config: GupshupConfig | Mapping[str, Any]) -> None:
        """
        Resolve accounts and build clients, access control, health and webhook routing.

        Raises:
            ConfigurationError: if the configuration cannot be resolved
        """
        config = coerce_config(config)
        accounts = resolve_accounts(config)

        default_account = next((a for a in accounts if a.name == config.default_account), accounts[0])

        self.config = config
        self.accounts = accounts
        self.default_account = default_account
        self.clients = {account.name: self._client_factory(account) for account in accounts}
        self.access = AccessController(
            policy=config.dm_policy,
            allowlist=config.allow_from,
            sessions=self.sessions,
        )
        self.health = HealthMonitor(accounts, clock=self._clock)

        # Webhooks are routed with the default account's secret and phone
        self.webhook_handler = WebhookHandler(
            source_phone=default_account.phone_number,
            webhook_secret=default_account.webhook_secret,
            on_message=self._on_inbound_message,
            on_status_update=self._on_status_update,
            on_user_event=self._on_user_event,
        )

        logger.info(
            "Gupshup channel initialized",
            extra={
                "accounts": [account.name for account in accounts],
                "default_account": default_account.name,
                "dm_policy": self.access.policy.value,
            },
        )

    @property
    def is_initialized(self) -> bool:
        return self.config is not None and bool(self.clients)

    async def start(self) -> None:
        """
        Mark the channel connected.

        Raises:
            ConfigurationError: if initialize() has not been called
        """
        if not self.is_initialized:
            raise ConfigurationError("Channel not initialized. Call initialize() first.")

        self.connected = True
        self.last_activity = self._clock()
        self.last_error = None

        logger.info("Gupshup channel started")

    async def stop(self) -> None:
        """Mark the channel disconnected and close the delivery clients."""
        self.connected = False

        for client in self.clients.values():
            await client.close()

        logger.info("Gupshup channel stopped")

    # =========================================================================
    # Inbound
    # =========================================================================

    async def handle_webhook(self, body: bytes | str, signature: str | None = None) -> WebhookResponse:
        """Entry point for the host's webhook route."""
        if self.webhook_handler is None:
            return WebhookResponse.json(500, {"error": "Webhook handler not initialized"})

        return await self.webhook_handler.handle_webhook(body, signature)

    async def _on_inbound_message(self, envelope: MessageEnvelope) -> None:
        sender = envelope.sender.id

        try:
            self.access.check(sender)
        except AccessDeniedError as e:
            logger.info(e.message, extra={"phone": e.phone, "policy": e.policy.value})
            await invoke(self.events.on_access_denied, e.phone, e.policy)
            return

        self.sessions.record_inbound(sender)
        self._record_activity(self._default_account_name())

        await invoke(self.events.on_message, envelope)

    async def _on_status_update(self, event: DeliveryStatusEvent) -> None:
        self._record_activity(self._default_account_name())
        await invoke(self.events.on_status_update, event)

    async def _on_user_event(self, event: UserEvent) -> None:
        logger.info("User event", extra={"phone": event.phone, "type": event.type.value})
        await invoke(self.events.on_user_event, event)

    # =========================================================================
    # Outbound
    # =========================================================================

    async def send_message(self, envelope: MessageEnvelope) -> SendResult:
        """
        Send an envelope to its recipient.

        Free-form while the recipient's session is open, otherwise (or when
        the provider reports the session expired) via the first template of
        the sending account.
        """
        if not self.is_initialized:
            return SendResult(success=False, error="Channel not initialized")

        if not self.connected:
            return SendResult(success=False, error="Channel not connected")

        try:
            account, client = self._get_account(envelope.metadata.get("account"))
        except AccountNotFoundError as e:
            return SendResult(success=False, error=e.message)

        destination = envelope.recipient.id
        session = self.sessions.get_status(destination)

        if not session.is_active:
            logger.debug("No open session, sending template", extra={"to": session.phone})
            return await self._send_template(envelope, destination, account, client)

        try:
            response = await client.send_message(destination, to_wire_message(envelope))
        except SessionExpiredError:
            logger.info("Provider reported session expired, sending template", extra={"to": session.phone})
            return await self._send_template(envelope, destination, account, client)
        except Exception as e:
            error = str(e) or "Unknown error"
            logger.error(f"Failed to send message: {error}", extra={"account": account.name})
            self.last_error = error
            self._mark_unhealthy(account.name, error)
            return SendResult(success=False, error=error)

        self._record_activity(account.name)
        return _to_send_result(response)

    async def _send_template(
        self,
        envelope: MessageEnvelope,
        destination: str,
        account: ResolvedAccount,
        client: DeliveryClient,
    ) -> SendResult:
        """Send the account's first template in place of the envelope."""
        first = account.first_template()
        if first is None:
            return SendResult(success=False, error=NO_TEMPLATES_ERROR)

        template_name, template = first
        params = None
        if template.param_count:
            text = content_text(envelope.content)
            if text is None:
                text = TEMPLATE_FALLBACK_TEXT
            params = [text[:TEMPLATE_PARAM_MAX_LENGTH]]

        try:
            response = await client.send_template(destination, template.id, params)
        except Exception as e:
            error = str(e) or "Unknown error"
            logger.error(
                f"Template send failed: {error}",
                extra={"account": account.name, "template": template_name},
            )
            self.last_error = error
            self._mark_unhealthy(account.name, error)
            return SendResult(success=False, error=f"Template send failed: {error}")

        self._record_activity(account.name)
        return _to_send_result(response)

    def _get_account(self, name: str | None) -> tuple[ResolvedAccount, DeliveryClient]:
        """
        Resolve the sending account.

        Raises:
            AccountNotFoundError: unknown account name
        """
        account_name = name or self._default_account_name()

        client = self.clients.get(account_name)
        account = next((a for a in self.accounts if a.name == account_name), None)

        if client is None or account is None:
            raise AccountNotFoundError(account_name)

        return account, client

    def _default_account_name(self) -> str | None:
        return self.default_account.name if self.default_account else None

    # =========================================================================
    # Access control
    # =========================================================================

    def is_allowed(self, phone: str) -> bool:
        return self.access.is_allowed(phone)

    def add_to_allowlist(self, phone: str) -> None:
        self.access.add_to_allowlist(phone)

    def remove_from_allowlist(self, phone: str) -> None:
        self.access.remove_from_allowlist(phone)

    def get_allowlist(self) -> list[str]:
        return self.access.get_allowlist()

    # =========================================================================
    # Sessions
    # =========================================================================

    def is_session_active(self, phone: str) -> bool:
        return self.sessions.is_active(phone)

    def get_active_sessions(self) -> list[SessionInfo]:
        return self.sessions.list_active()

    def clear_expired_sessions(self) -> int:
        """Housekeeping: drop sessions past the 24h window."""
        return self.sessions.purge_expired()

    # =========================================================================
    # Status and health
    # =========================================================================

    def get_status(self) -> ChannelStatus:
        return ChannelStatus(
            connected=self.connected,
            last_activity=self.last_activity,
            error=self.last_error,
        )

    def get_health_status(self) -> HealthStatus:
        if self.health is None:
            return HealthStatus(healthy=self.connected, timestamp=self._clock())
        return self.health.get_status()

    async def check_health(self, check_api: bool = False) -> HealthStatus:
        if self.health is None:
            return self.get_health_status()
        result = await self.health.check(check_api=check_api)
        return result.status

    def get_accounts(self) -> list[ResolvedAccount]:
        return list(self.accounts)

    def get_webhook_path(self) -> str:
        if self.config is not None and self.config.webhook_path:
            return self.config.webhook_path
        return DEFAULT_WEBHOOK_PATH

    def _record_activity(self, account_name: str | None) -> None:
        self.last_activity = self._clock()
        if self.health is not None and account_name:
            self.health.update_activity(account_name)

    def _mark_unhealthy(self, account_name: str, error: str) -> None:
        if self.health is not None:
            self.health.mark_unhealthy(account_name, error)


def _to_send_result(response: SendResponse) -> SendResult:
    return SendResult(
        success=response.submitted,
        message_id=response.message_id,
        error=response.error_message,
    )
