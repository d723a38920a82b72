"""Shared infrastructure for BaseCommerce services."""
