"""
Error Classification

Defines the error taxonomy shared by the providers, services and the
conversation layer. Only rate limits are retried; everything else is
surfaced to the caller as structured data.
"""

from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorCategory(str, Enum):
    """Categories of errors surfaced to the caller."""

    VALIDATION = "validation"           # Bad address/chain/amount format
    NOT_FOUND = "not_found"             # Token or protocol absent
    RATE_LIMIT = "rate_limit"           # Provider throttling, retried
    EXHAUSTED_RETRIES = "exhausted_retries"
    QUOTA = "quota"                     # Billing / plan exhausted, never retried
    PROVIDER = "provider"               # Unexpected upstream failure


class YieldAgentError(Exception):
    """Base class for every error the pipeline reports."""

    category: ErrorCategory = ErrorCategory.PROVIDER
    retryable: bool = False

    def __init__(
        self,
        message: str,
        suggestion: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "kind": self.category.value,
            "error": self.message,
        }
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(YieldAgentError):
    """Input failed format or membership checks. Never retried."""

    category = ErrorCategory.VALIDATION


class NotFoundError(YieldAgentError):
    """Token or protocol does not exist."""

    category = ErrorCategory.NOT_FOUND


class RateLimitError(YieldAgentError):
    """Provider asked us to slow down."""

    category = ErrorCategory.RATE_LIMIT
    retryable = True

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(
            message,
            suggestion="Wait a moment before retrying",
            details={"provider": provider} if provider else None,
        )
        self.retry_after = retry_after
        self.provider = provider


class ExhaustedRetriesError(YieldAgentError):
    """A rate-limited call kept failing after the bounded number of attempts."""

    category = ErrorCategory.EXHAUSTED_RETRIES

    def __init__(self, message: str, attempts: int, provider: Optional[str] = None):
        super().__init__(
            message,
            suggestion="The data provider is throttling requests. Try again in a few minutes.",
            details={"attempts": attempts, **({"provider": provider} if provider else {})},
        )
        self.attempts = attempts


class QuotaError(YieldAgentError):
    """Provider quota or billing problem."""

    category = ErrorCategory.QUOTA

    def __init__(self, message: str = "Provider quota exceeded", provider: Optional[str] = None):
        super().__init__(
            message,
            suggestion=(
                "Check the provider account's plan, billing and remaining credits, "
                "and that the configured API key belongs to that account"
            ),
            details={"provider": provider} if provider else None,
        )
        self.provider = provider


class ProviderError(YieldAgentError):
    """Unexpected upstream failure."""

    category = ErrorCategory.PROVIDER


_QUOTA_PATTERNS = (
    "quota",
    "billing",
    "plan",
    "credits",
    "exceeded the monthly",
)


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    raw = response.headers.get("retry-after")
    if not raw:
        return None
    try:
        return max(float(raw), 0.0)
    except ValueError:
        return None


def classify_http_error(error: Exception, provider: Optional[str] = None) -> YieldAgentError:
    """Map an httpx failure onto the error taxonomy."""

    if isinstance(error, YieldAgentError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        status = response.status_code
        try:
            body = response.text.lower()
        except (httpx.ResponseNotRead, UnicodeDecodeError):
            body = ""

        if status == 402 or (status in (401, 403, 429) and any(p in body for p in _QUOTA_PATTERNS)):
            return QuotaError(f"{provider or 'Provider'} quota exceeded (HTTP {status})", provider=provider)
        if status == 429:
            return RateLimitError(
                f"{provider or 'Provider'} rate limit exceeded",
                retry_after=_parse_retry_after(response),
                provider=provider,
            )
        if status == 404:
            return NotFoundError(f"{provider or 'Provider'} returned 404 for {error.request.url.path}")
        return ProviderError(
            f"{provider or 'Provider'} request failed with HTTP {status}",
            details={"status": status},
        )

    if isinstance(error, httpx.TimeoutException):
        return ProviderError(f"{provider or 'Provider'} request timed out")

    if isinstance(error, httpx.RequestError):
        return ProviderError(f"{provider or 'Provider'} request failed: {error}")

    return ProviderError(str(error) or error.__class__.__name__)


__all__ = [
    "ErrorCategory",
    "YieldAgentError",
    "ValidationError",
    "NotFoundError",
    "RateLimitError",
    "ExhaustedRetriesError",
    "QuotaError",
    "ProviderError",
    "classify_http_error",
]
