"""
Tests for error classification and structured error results.
"""

import httpx
import pytest

from yield_agent.core.errors import (
    ErrorCategory,
    ExhaustedRetriesError,
    NotFoundError,
    ProviderError,
    QuotaError,
    RateLimitError,
    ValidationError,
    classify_http_error,
)
from yield_agent.core.result import Err, Ok


def _status_error(status: int, text: str = "", headers=None) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.example.com/api/v1/tokens")
    response = httpx.Response(status, text=text, headers=headers, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


# =============================================================================
# HTTP classification
# =============================================================================

class TestClassifyHttpError:
    def test_plain_429_is_rate_limit(self):
        error = classify_http_error(_status_error(429, "slow down", {"retry-after": "7"}), provider="enso")
        assert isinstance(error, RateLimitError)
        assert error.retryable is True
        assert error.retry_after == 7.0
        assert error.provider == "enso"

    def test_429_mentioning_quota_is_quota(self):
        error = classify_http_error(_status_error(429, "You have exceeded your monthly quota"), provider="coingecko")
        assert isinstance(error, QuotaError)
        assert error.retryable is False
        assert "billing" in error.suggestion

    def test_402_is_quota(self):
        assert isinstance(classify_http_error(_status_error(402)), QuotaError)

    def test_403_plan_message_is_quota(self):
        error = classify_http_error(_status_error(403, "This endpoint requires a paid plan"))
        assert error.category == ErrorCategory.QUOTA

    def test_404_is_not_found(self):
        assert isinstance(classify_http_error(_status_error(404)), NotFoundError)

    def test_500_is_provider_error(self):
        error = classify_http_error(_status_error(500, "internal"), provider="enso")
        assert isinstance(error, ProviderError)
        assert error.details["status"] == 500

    def test_timeout_is_provider_error(self):
        error = classify_http_error(httpx.ReadTimeout("timed out"), provider="enso")
        assert isinstance(error, ProviderError)
        assert "timed out" in error.message

    def test_taxonomy_errors_pass_through(self):
        original = ValidationError("bad")
        assert classify_http_error(original) is original


# =============================================================================
# Error payloads
# =============================================================================

class TestErrorPayloads:
    def test_to_dict(self):
        payload = ExhaustedRetriesError("still throttled", attempts=3, provider="enso").to_dict()
        assert payload["kind"] == "exhausted_retries"
        assert payload["details"] == {"attempts": 3, "provider": "enso"}
        assert payload["suggestion"]

    def test_err_from_exception_keeps_hint_and_details(self):
        err = Err.from_exception(QuotaError(provider="coingecko"))
        assert not err.ok
        assert err.kind == ErrorCategory.QUOTA
        assert err.suggestion
        assert err.to_dict()["provider"] == "coingecko"

    def test_ok(self):
        result = Ok(5)
        assert result.ok
        assert result.value == 5

    @pytest.mark.parametrize(
        "error,retryable",
        [
            (ValidationError("x"), False),
            (NotFoundError("x"), False),
            (RateLimitError(), True),
            (QuotaError(), False),
            (ProviderError("x"), False),
        ],
    )
    def test_only_rate_limits_are_retryable(self, error, retryable):
        assert error.retryable is retryable
