# src/search/adapters/pexels_adapter.py — v1
"""Pexels search adapter.

API: https://www.pexels.com/api/documentation/
Rate limit: 200 requests/hour (free tier).
License: Pexels License (free for commercial use, attribution appreciated).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from imgacquire.core.errors import ProviderError
from imgacquire.core.models import Candidate, SearchQuery
from imgacquire.search.base_provider import BaseSearchProvider
from imgacquire.search.http import provider_request

logger = logging.getLogger(__name__)

BASE_URL = "https://api.pexels.com/v1"

# Pexels calls square images "square"
_ORIENTATIONS = {"landscape": "landscape", "portrait": "portrait", "squarish": "square"}


class PexelsAdapter(BaseSearchProvider):
    """Pexels photo search."""

    def __init__(
        self,
        api_key: str,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    @property
    def provider_name(self) -> str:
        return "pexels"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client (lazy initialization)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def search(self, query: SearchQuery, max_results: int) -> list[Candidate]:
        if not self._api_key:
            raise ProviderError("Pexels API key not configured", provider="pexels")

        params: dict[str, Any] = {"query": query.text, "per_page": min(max_results, 80)}
        if query.orientation:
            params["orientation"] = _ORIENTATIONS[query.orientation]

        client = await self._get_client()
        response = await provider_request(
            client,
            "GET",
            f"{BASE_URL}/search",
            provider="pexels",
            params=params,
            headers={"Authorization": self._api_key},
        )
        data = response.json()
        return [self._parse_photo(photo) for photo in data.get("photos", [])]

    def _parse_photo(self, photo: dict[str, Any]) -> Candidate:
        """Parse a Pexels API photo into a Candidate."""
        src = photo.get("src") or {}
        return Candidate(
            remote_id=str(photo.get("id", "")),
            provider="pexels",
            full_url=src.get("original") or src.get("large2x") or src.get("large", ""),
            thumbnail_url=src.get("medium"),
            urls={k: v for k, v in src.items() if isinstance(v, str)},
            width=int(photo.get("width") or 0),
            height=int(photo.get("height") or 0),
            color=photo.get("avg_color"),
            description=photo.get("alt"),
            author_name=photo.get("photographer"),
            author_url=photo.get("photographer_url"),
            source_url=photo.get("url"),
            license="Pexels License",
            attribution_required=False,
        )

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
