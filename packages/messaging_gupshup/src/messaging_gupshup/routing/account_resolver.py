"""
Account Resolver

Turns the channel configuration into resolved accounts.
Handles multi-account setups and API keys stored in files.
"""

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import pydantic

from messaging_gupshup.contracts.config import GupshupAccountConfig, GupshupConfig, TemplateConfig
from messaging_gupshup.errors import ConfigurationError
from messaging_gupshup.phone import normalize_phone

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_NAME = "default"
DEFAULT_BUSINESS_NAME = "Assistant"

_ENV_VAR = re.compile(r"\$(?:\{(\w+)\}|(\w+))")


@dataclass(frozen=True)
class ResolvedAccount:
    """
    A fully resolved Gupshup account.

    Immutable for the lifetime of the channel.
    """

    name: str
    api_key: str = field(repr=False)
    app_id: str
    phone_number: str
    business_name: str = DEFAULT_BUSINESS_NAME
    webhook_secret: str | None = field(default=None, repr=False)
    templates: dict[str, TemplateConfig] = field(default_factory=dict, compare=False)

    @property
    def normalized_phone(self) -> str:
        return normalize_phone(self.phone_number)

    def first_template(self) -> tuple[str, TemplateConfig] | None:
        """First configured template in configuration order."""
        for name, template in self.templates.items():
            return name, template
        return None


def coerce_config(config: GupshupConfig | Mapping[str, Any]) -> GupshupConfig:
    """
    Accept either a GupshupConfig or a raw mapping.

    Raises:
        ConfigurationError: if the mapping does not validate
    """
    if isinstance(config, GupshupConfig):
        return config

    try:
        return GupshupConfig.model_validate(dict(config))
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"Invalid Gupshup configuration: {e}") from e


def resolve_accounts(config: GupshupConfig | Mapping[str, Any]) -> list[ResolvedAccount]:
    """
    Resolve all accounts from configuration.

    API key files are read on every call; nothing is cached.

    Raises:
        ConfigurationError: on missing credentials, app id or phone number,
            or an unknown default account name
    """
    config = coerce_config(config)
    accounts: list[ResolvedAccount] = []

    if config.is_multi_account:
        for name, account_config in (config.accounts or {}).items():
            accounts.append(_resolve_named_account(name, account_config, config))

        if config.default_account and not any(a.name == config.default_account for a in accounts):
            raise ConfigurationError(f"Default account '{config.default_account}' not found")
    else:
        accounts.append(_resolve_single_account(config))

    if not accounts:
        raise ConfigurationError("No accounts configured")

    return accounts


def resolve_default_account(config: GupshupConfig | Mapping[str, Any]) -> ResolvedAccount:
    """Resolve the configured default account, or the first one."""
    config = coerce_config(config)
    accounts = resolve_accounts(config)

    if config.default_account:
        for account in accounts:
            if account.name == config.default_account:
                return account

    # Single-account mode always resolves to "default"
    return accounts[0]


def find_account_by_phone(
    config: GupshupConfig | Mapping[str, Any],
    phone_number: str,
) -> ResolvedAccount | None:
    """Find an account by its phone number (any representation)."""
    normalized = normalize_phone(phone_number)
    for account in resolve_accounts(config):
        if account.normalized_phone == normalized:
            return account
    return None


def find_account_by_name(
    config: GupshupConfig | Mapping[str, Any],
    name: str,
) -> ResolvedAccount | None:
    """Find an account by name."""
    for account in resolve_accounts(config):
        if account.name == name:
            return account
    return None


def _resolve_named_account(
    name: str,
    account_config: GupshupAccountConfig,
    parent: GupshupConfig,
) -> ResolvedAccount:
    """Resolve one entry of the accounts mapping. Account values win over parent values."""
    api_key = load_api_key(
        account_config.api_key or parent.api_key,
        account_config.api_key_file or parent.api_key_file,
    )

    if not api_key:
        raise ConfigurationError(f"No API key configured for account '{name}'")

    if not account_config.app_id:
        raise ConfigurationError(f"No appId configured for account '{name}'")

    if not account_config.phone_number:
        raise ConfigurationError(f"No phoneNumber configured for account '{name}'")

    templates = {**(parent.templates or {}), **(account_config.templates or {})}

    return ResolvedAccount(
        name=name,
        api_key=api_key,
        app_id=account_config.app_id,
        phone_number=account_config.phone_number,
        business_name=account_config.business_name or parent.business_name or DEFAULT_BUSINESS_NAME,
        webhook_secret=account_config.webhook_secret or parent.webhook_secret,
        templates=templates,
    )


def _resolve_single_account(config: GupshupConfig) -> ResolvedAccount:
    """Resolve the flat single-account configuration."""
    api_key = load_api_key(config.api_key, config.api_key_file)

    if not api_key:
        raise ConfigurationError("No API key configured. Set apiKey or apiKeyFile.")

    if not config.app_id:
        raise ConfigurationError("No appId configured")

    if not config.source_phone:
        raise ConfigurationError("No sourcePhone configured")

    return ResolvedAccount(
        name=DEFAULT_ACCOUNT_NAME,
        api_key=api_key,
        app_id=config.app_id,
        phone_number=config.source_phone,
        business_name=config.business_name or DEFAULT_BUSINESS_NAME,
        webhook_secret=config.webhook_secret,
        templates=dict(config.templates or {}),
    )


def load_api_key(api_key: str | None, api_key_file: str | None) -> str | None:
    """
    Load an API key from a direct value or a file.

    A direct value takes precedence. File content is stripped.

    Raises:
        ConfigurationError: if the file cannot be read
    """
    if api_key:
        return api_key

    if not api_key_file:
        return None

    path = expand_path(api_key_file)
    try:
        with open(path, encoding="utf-8") as f:
            content = f.read().strip()
    except OSError as e:
        raise ConfigurationError(f"Failed to read API key from file '{api_key_file}': {e}") from e

    logger.debug("Loaded API key from file", extra={"path": path})
    return content or None


def expand_path(file_path: str) -> str:
    """Expand a leading ~/ and $VAR / ${VAR} references. Unset variables expand to ''."""
    expanded = os.path.expanduser(file_path) if file_path.startswith("~/") else file_path
    return _ENV_VAR.sub(lambda m: os.environ.get(m.group(1) or m.group(2), ""), expanded)
