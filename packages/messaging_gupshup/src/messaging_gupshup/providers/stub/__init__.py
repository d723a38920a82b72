"""Stub Gupshup client for development and tests."""

from messaging_gupshup.providers.stub.client import StubGupshupClient

__all__ = ["StubGupshupClient"]
