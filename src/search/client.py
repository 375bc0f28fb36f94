# src/search/client.py — v1
"""Rate-limited search client.

Wraps a provider behind the shared interval gate. Every call is spaced
by the gate, provider errors pass through as typed exceptions, and no
retry happens here: retry policy belongs to the Fetcher.
"""

from __future__ import annotations

import logging

from imgacquire.core.errors import NoResultsError
from imgacquire.core.models import Candidate, SearchQuery
from imgacquire.search.base_provider import BaseSearchProvider
from imgacquire.search.rate_limiter import IntervalGate

logger = logging.getLogger(__name__)


class RateLimitedSearchClient:
    """The single gate through which all searches reach the provider."""

    def __init__(self, provider: BaseSearchProvider, gate: IntervalGate) -> None:
        self._provider = provider
        self._gate = gate
        self._calls = 0

    @property
    def provider_name(self) -> str:
        return self._provider.provider_name

    @property
    def call_count(self) -> int:
        """Number of requests that reached the provider."""
        return self._calls

    async def search(self, query: SearchQuery, max_results: int) -> list[Candidate]:
        """Search the provider, at most ``max_results`` candidates in relevance order.

        Raises:
            RateLimitedError, ProviderNetworkError, ProviderError: From the provider.
            NoResultsError: If the provider returned nothing.
        """
        if max_results < 1:
            raise ValueError("max_results must be >= 1")

        await self._gate.wait()
        self._calls += 1
        logger.debug(
            "Searching %s for %r (max %d)", self.provider_name, query.text, max_results,
        )
        results = await self._provider.search(query, max_results)

        if not results:
            raise NoResultsError(
                f"No images found for {query.text!r}", provider=self.provider_name,
            )

        # Relevance order is the tie-break for selection
        ranked = [
            c.model_copy(update={"rank": i}) for i, c in enumerate(results[:max_results])
        ]
        logger.info(
            "Got %d candidates from %s for %r", len(ranked), self.provider_name, query.text,
        )
        return ranked

    async def close(self) -> None:
        await self._provider.close()
