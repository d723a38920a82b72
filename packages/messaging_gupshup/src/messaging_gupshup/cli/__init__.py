"""Gupshup channel CLI."""
