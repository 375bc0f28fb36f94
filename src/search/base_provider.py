# src/search/base_provider.py — v1
"""Abstract search provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from imgacquire.core.models import Candidate, SearchQuery


class BaseSearchProvider(ABC):
    """Unified interface for image search backends.

    Implementations translate provider failures into ``RateLimitedError``,
    ``ProviderNetworkError`` or ``NoResultsError`` and never retry.
    """

    @abstractmethod
    async def search(self, query: SearchQuery, max_results: int) -> list[Candidate]:
        """Return up to ``max_results`` candidates in provider relevance order."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (unsplash, pexels, ...)."""

    async def close(self) -> None:
        """Release network resources."""
