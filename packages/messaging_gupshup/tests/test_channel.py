"""
Tests for the Gupshup channel orchestrator.
"""

import json

import pytest

from messaging_gupshup.contracts.envelope import ImageContent, LocationContent, MessageEnvelope, Participant
from messaging_gupshup.contracts.events import DmPolicy
from messaging_gupshup.errors import ApiError, AuthenticationError, ConfigurationError, SessionExpiredError
from messaging_gupshup.routing.session import SESSION_WINDOW_MS
from messaging_gupshup.service.channel import ChannelEvents, GupshupChannel

CUSTOMER = "+5511999999999"
CUSTOMER_DIGITS = "5511999999999"


class Events:
    """Collects channel callbacks."""

    def __init__(self):
        self.messages = []
        self.statuses = []
        self.user_events = []
        self.denied = []

    def channel_events(self) -> ChannelEvents:
        return ChannelEvents(
            on_message=self.messages.append,
            on_status_update=self.statuses.append,
            on_user_event=self.user_events.append,
            on_access_denied=self.on_access_denied,
        )

    async def on_access_denied(self, phone, policy):
        self.denied.append((phone, policy))


@pytest.fixture
def events():
    return Events()


@pytest.fixture
def make_channel(events, clock, stub_factory):
    """Create, initialize and start a channel backed by stub clients."""

    async def make(config, start: bool = True) -> GupshupChannel:
        channel = GupshupChannel(events=events.channel_events(), clock=clock, client_factory=stub_factory)
        channel.initialize(config)
        if start:
            await channel.start()
        return channel

    return make


async def receive(channel: GupshupChannel, webhook: dict):
    return await channel.handle_webhook(json.dumps(webhook))


class TestLifecycle:
    """Tests for initialize/start/stop."""

    @pytest.mark.asyncio
    async def test_send_before_initialize(self, make_envelope):
        """Test sending before initialize fails."""
        result = await GupshupChannel().send_message(make_envelope(CUSTOMER))

        assert result.success is False
        assert result.error == "Channel not initialized"

    @pytest.mark.asyncio
    async def test_send_before_start(self, make_channel, single_account_config, make_envelope):
        """Test sending before start fails."""
        channel = await make_channel(single_account_config, start=False)

        result = await channel.send_message(make_envelope(CUSTOMER))

        assert result.error == "Channel not connected"

    @pytest.mark.asyncio
    async def test_start_requires_initialize(self):
        """Test start requires initialize."""
        with pytest.raises(ConfigurationError):
            await GupshupChannel().start()

    def test_initialize_rejects_bad_config(self):
        """Test initialize rejects an invalid configuration."""
        with pytest.raises(ConfigurationError):
            GupshupChannel().initialize({"appId": "a"})

    @pytest.mark.asyncio
    async def test_stop_closes_clients(self, make_channel, single_account_config, stub_clients):
        """Test stop disconnects and closes every client."""
        channel = await make_channel(single_account_config)

        await channel.stop()

        assert channel.get_status().connected is False
        assert stub_clients["default"].closed is True

    @pytest.mark.asyncio
    async def test_webhook_before_initialize(self):
        """Test webhooks before initialize return 500."""
        response = await GupshupChannel().handle_webhook("{}")

        assert response.status == 500

    @pytest.mark.asyncio
    async def test_webhook_path(self, make_channel, single_account_config):
        """Test default and configured webhook paths."""
        assert GupshupChannel().get_webhook_path() == "/webhooks/gupshup"

        channel = await make_channel({**single_account_config, "webhookPath": "/hooks/wa"})
        assert channel.get_webhook_path() == "/hooks/wa"


class TestInbound:
    """Tests for inbound routing, access control and session updates."""

    @pytest.mark.asyncio
    async def test_inbound_opens_session(self, make_channel, single_account_config, events, inbound_webhook):
        """Test an inbound message opens a session and marks the account connected."""
        channel = await make_channel(single_account_config)

        response = await receive(channel, inbound_webhook(CUSTOMER))

        assert response.status == 200
        assert len(events.messages) == 1
        assert channel.is_session_active(CUSTOMER) is True
        assert channel.get_health_status().accounts[0].connected is True

    @pytest.mark.asyncio
    async def test_allowlist_denies_unknown_sender(self, make_channel, single_account_config, events, inbound_webhook):
        """Test a sender outside the allowlist is reported and creates no session."""
        config = {**single_account_config, "dmPolicy": "allowlist", "allowFrom": ["+1-555-000-9999"]}
        channel = await make_channel(config)

        await receive(channel, inbound_webhook("+1 555 000 8888"))

        assert events.messages == []
        assert events.denied == [("15550008888", DmPolicy.ALLOWLIST)]
        assert channel.sessions.has_session("15550008888") is False

        await receive(channel, inbound_webhook("+1 (555) 000-9999"))

        assert len(events.messages) == 1
        assert channel.is_session_active("15550009999") is True

    @pytest.mark.asyncio
    async def test_allowlist_runtime_mutation(self, make_channel, single_account_config, events, inbound_webhook):
        """Test allowlist changes apply to the next inbound message."""
        channel = await make_channel({**single_account_config, "dmPolicy": "allowlist"})

        channel.add_to_allowlist(CUSTOMER)
        assert channel.is_allowed(CUSTOMER_DIGITS) is True
        assert channel.get_allowlist() == [CUSTOMER_DIGITS]

        channel.remove_from_allowlist(CUSTOMER)
        await receive(channel, inbound_webhook(CUSTOMER))
        assert events.messages == []

    @pytest.mark.asyncio
    async def test_status_update_forwarded(self, make_channel, single_account_config, events):
        """Test delivery statuses are forwarded."""
        channel = await make_channel(single_account_config)

        response = await receive(channel, {
            "type": "message-event",
            "payload": {"id": "out_1", "type": "read", "destination": CUSTOMER_DIGITS},
        })

        assert response.status == 200
        assert events.statuses[0].message_id == "out_1"
        assert channel.get_health_status().healthy is True

    @pytest.mark.asyncio
    async def test_user_event_forwarded(self, make_channel, single_account_config, events):
        """Test user events are forwarded."""
        channel = await make_channel(single_account_config)

        await receive(channel, {"type": "user-event", "payload": {"phone": CUSTOMER_DIGITS, "type": "opted-in"}})

        assert events.user_events[0].phone == CUSTOMER_DIGITS


class TestOutbound:
    """Tests for session-aware sending and template fallback."""

    @pytest.mark.asyncio
    async def test_active_session_sends_free_form(
        self, make_channel, single_account_config, stub_clients, make_envelope, inbound_webhook
    ):
        """Test an open session sends the message as is."""
        channel = await make_channel(single_account_config)
        await receive(channel, inbound_webhook(CUSTOMER))

        result = await channel.send_message(make_envelope(CUSTOMER, "Hello there"))

        assert result.success is True
        assert result.message_id.startswith("stub_msg_")
        sent = stub_clients["default"].get_sent_messages()
        assert sent[0]["destination"] == CUSTOMER_DIGITS
        assert sent[0]["message"] == {"type": "text", "text": "Hello there"}

    @pytest.mark.asyncio
    async def test_no_session_without_templates(self, make_channel, single_account_config, make_envelope):
        """Test sending outside the session without templates fails."""
        channel = await make_channel(single_account_config)

        result = await channel.send_message(make_envelope(CUSTOMER))

        assert result.success is False
        assert result.error == "Session expired. No templates configured for out-of-session messaging."

    @pytest.mark.asyncio
    async def test_no_session_uses_first_template(self, make_channel, template_config, stub_clients, make_envelope):
        """Test the first template is sent with the text as its single parameter."""
        channel = await make_channel(template_config)

        result = await channel.send_message(make_envelope(CUSTOMER, "x" * 2000))

        assert result.success is True
        message = stub_clients["default"].get_sent_messages()[0]["message"]
        assert message["type"] == "template"
        assert message["template"]["id"] == "tmpl_reengage"
        assert message["template"]["params"] == ["x" * 1024]

    @pytest.mark.asyncio
    async def test_template_without_params(self, make_channel, single_account_config, stub_clients, make_envelope):
        """Test a template without paramCount is sent without params."""
        config = {**single_account_config, "templates": {"static": {"id": "tmpl_static"}}}
        channel = await make_channel(config)

        await channel.send_message(make_envelope(CUSTOMER))

        message = stub_clients["default"].get_sent_messages()[0]["message"]
        assert message == {"type": "template", "template": {"id": "tmpl_static"}}

    @pytest.mark.asyncio
    async def test_template_param_from_caption(self, make_channel, template_config, stub_clients):
        """Test media without a caption uses the placeholder parameter."""
        channel = await make_channel(template_config)
        envelope = MessageEnvelope(
            id="out_img",
            sender=Participant(id="15550001111"),
            recipient=Participant(id=CUSTOMER),
            content=ImageContent(media_url="https://x/i.png"),
        )

        await channel.send_message(envelope)

        message = stub_clients["default"].get_sent_messages()[0]["message"]
        assert message["template"]["params"] == ["[Message]"]

    @pytest.mark.asyncio
    async def test_template_param_keeps_empty_text(self, make_channel, template_config, stub_clients, make_envelope):
        """Test an empty text body is sent as an empty parameter, not the placeholder."""
        channel = await make_channel(template_config)

        await channel.send_message(make_envelope(CUSTOMER, ""))

        message = stub_clients["default"].get_sent_messages()[0]["message"]
        assert message["template"]["params"] == [""]

    @pytest.mark.asyncio
    async def test_session_expires_after_24h(
        self, make_channel, template_config, stub_clients, clock, make_envelope, inbound_webhook
    ):
        """Test a session 24h old is treated as expired."""
        channel = await make_channel(template_config)
        await receive(channel, inbound_webhook(CUSTOMER))
        clock.advance(SESSION_WINDOW_MS)

        await channel.send_message(make_envelope(CUSTOMER))

        assert stub_clients["default"].get_sent_messages()[0]["message"]["type"] == "template"

    @pytest.mark.asyncio
    async def test_provider_session_expired_falls_back_to_template(
        self, make_channel, template_config, stub_clients, make_envelope, inbound_webhook
    ):
        """Test a mid-flight 470 is recovered through the template path."""
        channel = await make_channel(template_config)
        await receive(channel, inbound_webhook(CUSTOMER))
        stub_clients["default"].fail_next(SessionExpiredError())

        result = await channel.send_message(make_envelope(CUSTOMER, "Hello"))

        assert result.success is True
        sent = stub_clients["default"].get_sent_messages()
        assert [m["message"]["type"] for m in sent] == ["text", "template"]
        assert sent[1]["message"]["template"]["params"] == ["Hello"]
        assert channel.get_health_status().accounts[0].connected is True

    @pytest.mark.asyncio
    async def test_template_failure(self, make_channel, template_config, stub_clients, make_envelope):
        """Test a failed template send marks the account unhealthy."""
        channel = await make_channel(template_config)
        stub_clients["default"].fail_next(ApiError("Template not approved", code="1005"))

        result = await channel.send_message(make_envelope(CUSTOMER))

        assert result.success is False
        assert result.error == "Template send failed: Template not approved"
        status = channel.get_health_status().accounts[0]
        assert status.connected is False
        assert status.error == "Template not approved"

    @pytest.mark.asyncio
    async def test_send_error_marks_unhealthy(
        self, make_channel, single_account_config, stub_clients, make_envelope, inbound_webhook
    ):
        """Test a provider error marks the account unhealthy."""
        channel = await make_channel(single_account_config)
        await receive(channel, inbound_webhook(CUSTOMER))
        stub_clients["default"].fail_next(AuthenticationError())

        result = await channel.send_message(make_envelope(CUSTOMER))

        assert result.success is False
        assert result.error == "Authentication failed. Check your API key."
        assert channel.get_health_status().healthy is False
        assert channel.get_status().error == result.error

    @pytest.mark.asyncio
    async def test_validation_error_marks_unhealthy(
        self, make_channel, single_account_config, make_envelope, inbound_webhook
    ):
        """Test content that cannot be put on the wire fails the send and the account health."""
        channel = await make_channel(single_account_config)
        await receive(channel, inbound_webhook(CUSTOMER))
        envelope = make_envelope(CUSTOMER)
        envelope.content = LocationContent(name="Nowhere")

        result = await channel.send_message(envelope)

        assert result.success is False
        assert result.error == "Location content is required for location messages"
        status = channel.get_health_status().accounts[0]
        assert status.connected is False
        assert status.error == result.error
        assert channel.get_status().error == result.error

    @pytest.mark.asyncio
    async def test_unknown_account(self, make_channel, single_account_config, make_envelope):
        """Test an unknown account in metadata fails the send."""
        channel = await make_channel(single_account_config)

        result = await channel.send_message(make_envelope(CUSTOMER, account="marketing"))

        assert result.success is False
        assert result.error == "Account 'marketing' not found"


class TestMultiAccount:
    """Tests for account selection."""

    @pytest.fixture
    def config(self):
        return {
            "apiKey": "shared",
            "templates": {"hello": {"id": "tmpl_hello"}},
            "accounts": {
                "sales": {"appId": "a1", "phoneNumber": "+15550002222"},
                "support": {"appId": "a2", "phoneNumber": "+15550003333", "webhookSecret": "s"},
            },
            "defaultAccount": "support",
        }

    @pytest.mark.asyncio
    async def test_default_account_used(self, make_channel, config, stub_clients, make_envelope):
        """Test the default account sends when metadata names none."""
        channel = await make_channel(config)

        await channel.send_message(make_envelope(CUSTOMER))

        assert len(stub_clients["support"].get_sent_messages()) == 1
        assert stub_clients["sales"].get_sent_messages() == []

    @pytest.mark.asyncio
    async def test_metadata_selects_account(self, make_channel, config, stub_clients, make_envelope):
        """Test metadata account selects the sending client."""
        channel = await make_channel(config)

        await channel.send_message(make_envelope(CUSTOMER, account="sales"))

        assert len(stub_clients["sales"].get_sent_messages()) == 1

    @pytest.mark.asyncio
    async def test_webhook_bound_to_default_account(self, make_channel, config, events, inbound_webhook):
        """Test inbound messages are addressed to the default account's number."""
        channel = await make_channel(config)

        await receive(channel, inbound_webhook(CUSTOMER))

        assert events.messages[0].recipient.id == "15550003333"
        assert [a.name for a in channel.get_accounts()] == ["sales", "support"]


class TestSessionHousekeeping:
    """Tests for session queries exposed by the channel."""

    @pytest.mark.asyncio
    async def test_active_sessions_and_purge(self, make_channel, single_account_config, clock, inbound_webhook):
        """Test listing and purging sessions."""
        channel = await make_channel(single_account_config)
        await receive(channel, inbound_webhook("111", message_id="a"))
        clock.advance(SESSION_WINDOW_MS)
        await receive(channel, inbound_webhook("222", message_id="b"))

        assert [s.phone for s in channel.get_active_sessions()] == ["222"]
        assert channel.clear_expired_sessions() == 1
        assert channel.clear_expired_sessions() == 0

    @pytest.mark.asyncio
    async def test_check_health_without_api(self, make_channel, single_account_config):
        """Test check_health without probing the API."""
        channel = await make_channel(single_account_config)

        status = await channel.check_health()

        assert status.healthy is False
        assert status.to_dict()["accounts"][0]["phoneNumber"] == "+1 (555) 000-1111"
