# src/acquisition/retry.py — v2
"""Retry policy for provider calls, owned by the Fetcher.

Exponential backoff on rate limiting and transient network errors; no
retry at all on an empty result set.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from imgacquire.config.settings import Settings
from imgacquire.core.errors import FailureCause, ProviderError, RetryExhaustedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for a specific failure cause."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True


DEFAULT_RETRY_CONFIGS: dict[FailureCause, RetryConfig] = {
    FailureCause.RATE_LIMITED: RetryConfig(max_retries=3, base_delay_s=2.0),
    FailureCause.NETWORK_ERROR: RetryConfig(max_retries=2, base_delay_s=1.0),
}


def retry_configs_from_settings(settings: Settings) -> dict[FailureCause, RetryConfig]:
    """Build the per-cause policy from settings."""
    return {
        FailureCause.RATE_LIMITED: RetryConfig(
            max_retries=settings.retry_rate_limited_max,
            base_delay_s=settings.retry_base_delay_s,
            backoff_factor=settings.retry_backoff_factor,
            jitter=settings.retry_jitter,
        ),
        FailureCause.NETWORK_ERROR: RetryConfig(
            max_retries=settings.retry_network_max,
            base_delay_s=settings.retry_base_delay_s / 2,
            backoff_factor=settings.retry_backoff_factor,
            jitter=settings.retry_jitter,
        ),
    }


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    key: str = "unknown",
    retry_configs: dict[FailureCause, RetryConfig] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    **kwargs: Any,
) -> Any:
    """Execute a provider call with the retry policy.

    Raises:
        ProviderError: Unretryable errors, unchanged.
        RetryExhaustedError: When the budget for a retryable cause is spent.
    """
    configs = DEFAULT_RETRY_CONFIGS if retry_configs is None else retry_configs
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except ProviderError as e:
            attempts += 1
            config = configs.get(e.cause)

            if config is None or not e.retryable:
                raise
            if attempts > config.max_retries:
                raise RetryExhaustedError(e, attempts) from e

            delay = compute_delay(config, attempts - 1)
            logger.warning(
                "Key '%s': %s (attempt %d/%d), retrying in %.1fs",
                key, e.cause.value, attempts, config.max_retries, delay,
            )
            await sleep(delay)
