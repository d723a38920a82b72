"""
Gupshup Channel Errors

Error taxonomy shared by the resolver, the delivery client, the webhook
router and the channel orchestrator.
"""

from typing import Any


class GupshupError(Exception):
    """Base error for the Gupshup channel."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.retryable = retryable


class ConfigurationError(GupshupError):
    """Missing or invalid channel configuration. Fatal at startup."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)


class AuthenticationError(GupshupError):
    """Provider rejected the API key (HTTP 401/403)."""

    def __init__(self, message: str = "Authentication failed. Check your API key.", status_code: int | None = None):
        super().__init__(message, code="AUTH_FAILED", status_code=status_code)


class SessionExpiredError(GupshupError):
    """
    Recipient is outside the 24h session window.

    Signals that the caller must fall back to a template message.
    """

    def __init__(self, phone: str | None = None, message: str | None = None):
        super().__init__(
            message or "Session expired. User must message first or use a template.",
            code="SESSION_EXPIRED",
            status_code=470,
        )
        self.phone = phone


class ApiError(GupshupError):
    """Provider-reported application error, rate limit or server failure."""


class ValidationError(GupshupError):
    """Envelope content cannot be expressed on the wire."""

    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")


class AccountNotFoundError(GupshupError):
    """No resolved account or client for the requested account name."""

    def __init__(self, name: str | None):
        super().__init__(f"Account '{name}' not found", code="ACCOUNT_NOT_FOUND")
        self.name = name


class AccessDeniedError(GupshupError):
    """
    Inbound sender rejected by the DM policy.

    Raised by AccessController.check; the channel catches it and hands
    phone and policy to the access-denied callback.
    """

    def __init__(self, phone: str, policy: Any):
        policy_name = getattr(policy, "value", policy)
        super().__init__(f"Access denied for {phone}. DM policy: {policy_name}", code="ACCESS_DENIED")
        self.phone = phone
        self.policy = policy


class WebhookValidationError(GupshupError):
    """Webhook signature did not match the configured secret."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message, code="INVALID_SIGNATURE", status_code=401)
