"""
Retry with exponential backoff for provider calls.

Only ``RateLimitError`` is retried. Quota, validation, not-found and
generic provider failures propagate on the first attempt.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Optional, TypeVar

from ..config import settings
from .errors import ExhaustedRetriesError, RateLimitError

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.1

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_delay_seconds=settings.retry_initial_delay_seconds,
            max_delay_seconds=settings.retry_max_delay_seconds,
        )

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for a given attempt number."""
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** attempt),
            self.max_delay_seconds,
        )
        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)
        return max(delay, 0)


async def retry_with_backoff(
    operation: Callable[[], Coroutine[Any, Any, T]],
    config: Optional[RetryConfig] = None,
    *,
    description: str = "provider call",
) -> T:
    """Run ``operation``, retrying rate-limit failures with exponential backoff.

    Raises:
        ExhaustedRetriesError: the call was still rate limited after
            ``config.max_attempts`` attempts.
    """
    config = config or RetryConfig.from_settings()
    last_error: Optional[RateLimitError] = None

    for attempt in range(config.max_attempts):
        try:
            return await operation()
        except RateLimitError as e:
            last_error = e
            if attempt < config.max_attempts - 1:
                delay = config.get_delay(attempt)
                if e.retry_after is not None:
                    delay = min(max(delay, e.retry_after), config.max_delay_seconds)
                logger.warning(
                    f"{description}: attempt {attempt + 1}/{config.max_attempts} rate limited. "
                    f"Retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

    raise ExhaustedRetriesError(
        f"{description} still rate limited after {config.max_attempts} attempts",
        attempts=config.max_attempts,
        provider=last_error.provider if last_error else None,
    )


__all__ = ["RetryConfig", "retry_with_backoff"]
