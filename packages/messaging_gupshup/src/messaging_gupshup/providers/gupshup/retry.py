"""
Gupshup Response Classification and Retry

Two independent pieces:
- classify_response: pure mapping of (HTTP status, body) to a success or an error
- retry_async: generic retry driver that re-runs an operation while the
  raised GupshupError is flagged retryable
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from messaging_gupshup.errors import ApiError, AuthenticationError, GupshupError, SessionExpiredError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 1.0

SESSION_EXPIRED_STATUS = 470
SESSION_EXPIRED_CODE = "470"


def classify_response(status_code: int, body: dict[str, Any]) -> GupshupError | None:
    """
    Classify a Gupshup send response.

    Returns:
        None when the response is a success, otherwise the error to raise.
        Retryable errors (429, 5xx) carry retryable=True.
    """
    error = body.get("error") if isinstance(body.get("error"), dict) else None
    error_code = str(error.get("code")) if error and error.get("code") is not None else None

    if status_code == 429:
        return ApiError("Rate limited", code="RATE_LIMITED", status_code=429, retryable=True)

    if status_code in (401, 403):
        return AuthenticationError(status_code=status_code)

    if status_code == SESSION_EXPIRED_STATUS or error_code == SESSION_EXPIRED_CODE:
        return SessionExpiredError()

    if status_code >= 500:
        return ApiError(
            f"Server error: {status_code}",
            code="SERVER_ERROR",
            status_code=status_code,
            retryable=True,
        )

    if body.get("status") == "error" and error:
        return ApiError(
            error.get("message") or "Unknown error",
            code=error_code,
            status_code=status_code,
            details=error,
        )

    return None


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    max_attempts: int = MAX_ATTEMPTS,
    delay: float = RETRY_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run operation(attempt) until it succeeds or fails non-retryably.

    Backoff is linear: attempt * delay seconds, attempts counted from 1.

    Raises:
        The first non-retryable GupshupError, or the last error once
        attempts are exhausted.
    """
    last_error: GupshupError | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation(attempt)
        except GupshupError as e:
            if not e.retryable:
                raise
            last_error = e

            if attempt < max_attempts:
                logger.warning(
                    f"Retrying after transient error: {e}",
                    extra={"attempt": attempt, "code": e.code},
                )
                await sleep(delay * attempt)

    if last_error is not None:
        raise last_error
    raise GupshupError("Unknown error sending message", code="UNKNOWN")
