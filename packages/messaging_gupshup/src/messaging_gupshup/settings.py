"""
Channel Settings

Loads the Gupshup channel configuration for host processes (webhook app, CLI).

Sources, first match wins:
- an explicit JSON file path
- the JSON file named by GUPSHUP_CONFIG_FILE
- GUPSHUP_* environment variables (single-account setup)
"""

import json
import logging
import os
from typing import Any

from messaging_gupshup.contracts.config import GupshupConfig
from messaging_gupshup.errors import ConfigurationError
from messaging_gupshup.routing.account_resolver import coerce_config, expand_path

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV = "GUPSHUP_CONFIG_FILE"

# Environment variable -> config key
ENV_KEYS = {
    "GUPSHUP_API_KEY": "apiKey",
    "GUPSHUP_API_KEY_FILE": "apiKeyFile",
    "GUPSHUP_APP_ID": "appId",
    "GUPSHUP_SOURCE_PHONE": "sourcePhone",
    "GUPSHUP_BUSINESS_NAME": "businessName",
    "GUPSHUP_WEBHOOK_SECRET": "webhookSecret",
    "GUPSHUP_WEBHOOK_PATH": "webhookPath",
    "GUPSHUP_DM_POLICY": "dmPolicy",
}


def load_config(path: str | None = None) -> GupshupConfig:
    """
    Load the channel configuration.

    Args:
        path: JSON config file. Defaults to $GUPSHUP_CONFIG_FILE, then env vars.

    Raises:
        ConfigurationError: unreadable or invalid config file
    """
    path = path or os.getenv(CONFIG_FILE_ENV)
    if path:
        return coerce_config(_read_config_file(path))

    return coerce_config(config_from_env())


def config_from_env() -> dict[str, Any]:
    """Build a single-account config mapping from GUPSHUP_* variables."""
    data: dict[str, Any] = {}
    for env_name, key in ENV_KEYS.items():
        value = os.getenv(env_name)
        if value:
            data[key] = value

    allow_from = os.getenv("GUPSHUP_ALLOW_FROM", "")
    data["allowFrom"] = [phone.strip() for phone in allow_from.split(",") if phone.strip()]

    return data


def _read_config_file(path: str) -> dict[str, Any]:
    expanded = expand_path(path)
    try:
        with open(expanded, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to read config file '{path}': {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file '{path}' must contain a JSON object")

    logger.debug("Loaded Gupshup config file", extra={"path": expanded})
    return data
