# src/search/http.py — v1
"""HTTP helpers shared by provider adapters.

Maps httpx failures onto the provider error taxonomy in one place.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from imgacquire.core.errors import ProviderError, ProviderNetworkError, RateLimitedError

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUSES: frozenset[int] = frozenset({429})


async def provider_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    provider: str,
    rate_limit_statuses: frozenset[int] = RATE_LIMIT_STATUSES,
    **kwargs: Any,
) -> httpx.Response:
    """Make a provider API request with consistent error mapping.

    Raises:
        RateLimitedError: On a rate-limit status code.
        ProviderNetworkError: On connection errors, timeouts and 5xx.
        ProviderError: On any other non-success status.
    """
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as e:
        logger.warning("Request timeout for %s: %s", url, e)
        raise ProviderNetworkError(f"Request timeout: {e}", provider=provider) from e
    except httpx.TransportError as e:
        logger.warning("Connection failed to %s: %s", url, e)
        raise ProviderNetworkError(f"Connection failed: {e}", provider=provider) from e

    status = response.status_code
    if status in rate_limit_statuses:
        logger.warning("%s rate limit hit (HTTP %d)", provider, status)
        raise RateLimitedError(f"{provider} rate limit exceeded (HTTP {status})", provider=provider)
    if status >= 500:
        raise ProviderNetworkError(f"{provider} server error (HTTP {status})", provider=provider)
    if status >= 400:
        raise ProviderError(
            f"{provider} request failed (HTTP {status}): {response.text[:200]}",
            provider=provider,
        )
    return response
