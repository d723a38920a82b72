"""
Gupshup Routing

Account resolution, session tracking and access control.
"""

from messaging_gupshup.routing.access import AccessController
from messaging_gupshup.routing.account_resolver import (
    ResolvedAccount,
    find_account_by_name,
    find_account_by_phone,
    resolve_accounts,
    resolve_default_account,
)
from messaging_gupshup.routing.session import SessionInfo, SessionTracker

__all__ = [
    "AccessController",
    "ResolvedAccount",
    "resolve_accounts",
    "resolve_default_account",
    "find_account_by_name",
    "find_account_by_phone",
    "SessionInfo",
    "SessionTracker",
]
