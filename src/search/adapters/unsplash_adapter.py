# src/search/adapters/unsplash_adapter.py — v1
"""Unsplash search adapter.

API: https://unsplash.com/documentation
Rate limit: 50 requests/hour (demo), 5000/hour (production).
License: Unsplash License (free, attribution required).
Unsplash answers 403 with "Rate Limit Exceeded" when the hourly quota
is spent, so 403 is treated like 429.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from imgacquire.core.errors import ProviderError
from imgacquire.core.models import Candidate, SearchQuery
from imgacquire.search.base_provider import BaseSearchProvider
from imgacquire.search.http import provider_request

logger = logging.getLogger(__name__)

BASE_URL = "https://api.unsplash.com"


class UnsplashAdapter(BaseSearchProvider):
    """Unsplash photo search."""

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
        return "unsplash"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client (lazy initialization)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def search(self, query: SearchQuery, max_results: int) -> list[Candidate]:
        if not self._api_key:
            raise ProviderError("Unsplash access key not configured", provider="unsplash")

        params: dict[str, Any] = {"query": query.text, "per_page": min(max_results, 30)}
        if query.orientation:
            params["orientation"] = query.orientation

        client = await self._get_client()
        response = await provider_request(
            client,
            "GET",
            f"{BASE_URL}/search/photos",
            provider="unsplash",
            rate_limit_statuses=frozenset({403, 429}),
            params=params,
            headers={
                "Authorization": f"Client-ID {self._api_key}",
                "Accept-Version": "v1",
            },
        )
        data = response.json()
        return [self._parse_photo(photo, query) for photo in data.get("results", [])]

    def _parse_photo(self, photo: dict[str, Any], query: SearchQuery) -> Candidate:
        """Parse an Unsplash API photo into a Candidate."""
        user = photo.get("user") or {}
        urls = photo.get("urls") or {}

        full_url = urls.get("full") or urls.get("regular") or urls.get("raw", "")
        raw = urls.get("raw")
        if raw and (query.width or query.height):
            # imgix resizing on the raw URL
            sizing: dict[str, Any] = {"fit": "crop", "fm": "jpg", "q": 80}
            if query.width:
                sizing["w"] = query.width
            if query.height:
                sizing["h"] = query.height
            separator = "&" if "?" in raw else "?"
            full_url = f"{raw}{separator}{urlencode(sizing)}"

        return Candidate(
            remote_id=str(photo.get("id", "")),
            provider="unsplash",
            full_url=full_url,
            thumbnail_url=urls.get("small"),
            urls={k: v for k, v in urls.items() if isinstance(v, str)},
            width=int(photo.get("width") or 0),
            height=int(photo.get("height") or 0),
            color=photo.get("color"),
            description=photo.get("alt_description") or photo.get("description"),
            author_name=user.get("name"),
            author_url=(user.get("links") or {}).get("html"),
            source_url=(photo.get("links") or {}).get("html"),
            license="Unsplash License",
            attribution_required=True,
        )

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
