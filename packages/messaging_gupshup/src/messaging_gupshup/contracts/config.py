"""
Gupshup Channel Configuration Models

Pydantic models for the channel configuration block.
Keys follow the camelCase names used in the gateway's JSON config;
snake_case field names are accepted as well.
"""

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_WEBHOOK_PATH = "/webhooks/gupshup"


class TemplateConfig(BaseModel):
    """A pre-approved template registered with Gupshup."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., description="Gupshup template ID")
    param_count: int | None = Field(None, alias="paramCount", description="Expected number of parameters")


class GupshupAccountConfig(BaseModel):
    """Configuration for one named Gupshup account."""

    model_config = ConfigDict(populate_by_name=True)

    api_key: str | None = Field(None, alias="apiKey", description="API key (use this OR api_key_file)")
    api_key_file: str | None = Field(None, alias="apiKeyFile", description="Path to a file containing the API key")
    app_id: str | None = Field(None, alias="appId", description="Gupshup App ID")
    phone_number: str | None = Field(None, alias="phoneNumber", description="Source phone number (E.164)")
    business_name: str | None = Field(None, alias="businessName", description="Business name shown to recipients")
    webhook_secret: str | None = Field(None, alias="webhookSecret", description="Webhook signature secret")
    templates: dict[str, TemplateConfig] | None = Field(None, description="Pre-approved message templates")


class GupshupConfig(BaseModel):
    """
    Main configuration for the Gupshup channel.

    Either the flat single-account fields (api_key, app_id, source_phone, ...)
    or a non-empty ``accounts`` mapping must be provided.
    """

    model_config = ConfigDict(populate_by_name=True)

    api_key: str | None = Field(None, alias="apiKey", description="API key (use this OR api_key_file)")
    api_key_file: str | None = Field(None, alias="apiKeyFile", description="Path to a file containing the API key")
    app_id: str | None = Field(None, alias="appId", description="Gupshup App ID")
    source_phone: str | None = Field(None, alias="sourcePhone", description="Source phone number (E.164)")
    business_name: str | None = Field(None, alias="businessName", description="Business name shown to recipients")
    webhook_secret: str | None = Field(None, alias="webhookSecret", description="Webhook signature secret")
    webhook_path: str | None = Field(None, alias="webhookPath", description="Webhook HTTP path")
    templates: dict[str, TemplateConfig] | None = Field(None, description="Pre-approved message templates")

    # Access control
    dm_policy: str | None = Field(None, alias="dmPolicy", description="open, allowlist or pairing")
    allow_from: list[str] = Field(default_factory=list, alias="allowFrom", description="Allowed phone numbers")

    # Multi-account support
    accounts: dict[str, GupshupAccountConfig] | None = Field(None, description="Named accounts")
    default_account: str | None = Field(None, alias="defaultAccount", description="Default account name")

    @property
    def is_multi_account(self) -> bool:
        return bool(self.accounts)
