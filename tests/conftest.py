# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides a scripted search provider, an in-memory image server behind
httpx.MockTransport, and settings rooted in a temp project directory.
No network access: all HTTP is mocked.
"""

from __future__ import annotations

import io
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
from PIL import Image

from imgacquire.acquisition.downloader import Downloader
from imgacquire.acquisition.fetcher import Fetcher
from imgacquire.cache.cache_factory import create_manifest_store
from imgacquire.cache.json_store import JsonManifestStore
from imgacquire.config.settings import Settings
from imgacquire.core.models import Candidate, SearchQuery
from imgacquire.search.base_provider import BaseSearchProvider
from imgacquire.search.client import RateLimitedSearchClient
from imgacquire.search.rate_limiter import IntervalGate


def image_bytes(
    color: tuple[int, int, int] = (40, 40, 40),
    size: tuple[int, int] = (64, 48),
    fmt: str = "JPEG",
) -> bytes:
    """Encode a solid-color image."""
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


# === FAKES ===


class FakeProvider(BaseSearchProvider):
    """Scripted provider: each search pops the next response.

    A response is a list of candidates or an exception instance. Once the
    script runs out, the last response repeats.
    """

    def __init__(self, responses: list[Any] | None = None, name: str = "fake") -> None:
        self.responses: list[Any] = list(responses or [])
        self.queries: list[SearchQuery] = []
        self.closed = False
        self._name = name

    @property
    def provider_name(self) -> str:
        return self._name

    async def search(self, query: SearchQuery, max_results: int) -> list[Candidate]:
        self.queries.append(query)
        if not self.responses:
            return []
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        return list(response)[:max_results]

    @property
    def call_count(self) -> int:
        return len(self.queries)

    async def close(self) -> None:
        self.closed = True


class ImageServer:
    """In-memory HTTP origin for candidate image URLs."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes, str]] = {}
        self.requests: list[str] = []
        self.default = (200, image_bytes(), "image/jpeg")

    def add(self, url: str, body: bytes, status: int = 200, content_type: str = "image/jpeg") -> None:
        self.routes[url] = (status, body, content_type)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        status, body, content_type = self.routes.get(url, self.default)
        return httpx.Response(status, content=body, headers={"content-type": content_type})

    def downloader(self) -> Downloader:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return Downloader(client=client)


async def no_sleep(_delay: float) -> None:
    return None


# === FIXTURES: Settings and stores ===


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Temporary static-site project root."""
    root = tmp_path / "site"
    root.mkdir()
    return root


@pytest.fixture
def settings(project_root: Path) -> Settings:
    """Settings rooted in the temp project, no delays anywhere."""
    return Settings(
        _env_file=None,
        project_root=project_root,
        unsplash_access_key="test-key",
        search_min_interval_s=0,
        retry_base_delay_s=0,
        retry_jitter=False,
        acquire_timeout_s=10,
    )


@pytest.fixture
def store(settings: Settings) -> JsonManifestStore:
    s = create_manifest_store(settings)
    assert isinstance(s, JsonManifestStore)
    return s


# === FIXTURES: Candidates and network fakes ===


@pytest.fixture
def make_candidate() -> Callable[..., Candidate]:
    """Factory for candidates served by the image server."""

    def _make(
        remote_id: str,
        color: Any = "#333333",
        width: int = 1920,
        height: int = 1080,
        **extra: Any,
    ) -> Candidate:
        fields: dict[str, Any] = {
            "remote_id": remote_id,
            "provider": "fake",
            "full_url": f"https://images.example.com/{remote_id}.jpg",
            "thumbnail_url": f"https://images.example.com/{remote_id}-small.jpg",
            "width": width,
            "height": height,
            "color": color,
            "author_name": f"Author {remote_id}",
            "author_url": f"https://example.com/@{remote_id}",
            "source_url": f"https://example.com/photos/{remote_id}",
            "license": "Test License",
            "attribution_required": True,
        }
        fields.update(extra)
        return Candidate(**fields)

    return _make


@pytest.fixture
def sample_candidates(make_candidate) -> list[Candidate]:
    """Light, mid and dark gray candidates, in that provider order."""
    return [
        make_candidate("light", color="#F3F3F3"),
        make_candidate("mid", color="#BCBCBC"),
        make_candidate("dark", color="#595959"),
    ]


@pytest.fixture
def fake_provider(sample_candidates) -> FakeProvider:
    return FakeProvider([sample_candidates])


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return image_bytes


@pytest.fixture
def image_server() -> ImageServer:
    return ImageServer()


@pytest.fixture
def search_client(fake_provider: FakeProvider) -> RateLimitedSearchClient:
    return RateLimitedSearchClient(fake_provider, IntervalGate(0))


@pytest.fixture
def fetcher(settings, search_client, store, image_server) -> Fetcher:
    """Fetcher wired to the fake provider, the image server and the JSON store."""
    return Fetcher(
        settings,
        search_client,
        store,
        downloader=image_server.downloader(),
        sleep=no_sleep,
    )
