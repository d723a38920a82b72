"""
Pytest fixtures for Gupshup channel tests.
"""

import pytest

from messaging_gupshup.contracts.envelope import MessageEnvelope, Participant, TextContent
from messaging_gupshup.providers.stub import StubGupshupClient
from messaging_gupshup.routing.account_resolver import ResolvedAccount


class FakeClock:
    """Settable epoch-ms clock."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_phone():
    """Sample customer phone number."""
    return "+5511999999999"


@pytest.fixture
def single_account_config():
    """Flat single-account configuration."""
    return {
        "apiKey": "test_api_key",
        "appId": "app_123",
        "sourcePhone": "+1 (555) 000-1111",
        "businessName": "Pepper",
        "webhookSecret": "webhook_secret",
    }


@pytest.fixture
def template_config(single_account_config):
    """Single-account configuration with an out-of-session template."""
    return {
        **single_account_config,
        "templates": {
            "reengage": {"id": "tmpl_reengage", "paramCount": 1},
            "static": {"id": "tmpl_static"},
        },
    }


@pytest.fixture
def stub_clients():
    """Stub clients created by the channel, keyed by account name."""
    return {}


@pytest.fixture
def stub_factory(stub_clients):
    """Client factory that hands out StubGupshupClients and remembers them."""

    def factory(account: ResolvedAccount) -> StubGupshupClient:
        client = StubGupshupClient(source_phone=account.phone_number)
        stub_clients[account.name] = client
        return client

    return factory


@pytest.fixture
def make_envelope():
    """Build an outbound text envelope."""

    def make(to: str, text: str = "Hello", **metadata) -> MessageEnvelope:
        return MessageEnvelope(
            id="out_1",
            sender=Participant(id="15550001111"),
            recipient=Participant(id=to),
            content=TextContent(text=text),
            metadata=metadata,
        )

    return make


@pytest.fixture
def inbound_webhook():
    """Gupshup "message" webhook body for an inbound text."""

    def make(phone: str, text: str = "Hi", message_id: str = "in_1") -> dict:
        return {
            "app": "pepper",
            "timestamp": 1700000000000,
            "version": 2,
            "type": "message",
            "payload": {
                "id": message_id,
                "source": phone,
                "type": "text",
                "payload": {"text": text},
                "sender": {"phone": phone, "name": "Maria"},
            },
        }

    return make
