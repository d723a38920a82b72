"""Gupshup webhook service."""
