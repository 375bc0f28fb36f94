# src/api/facade.py — v2
"""Public API facade: wires the engine from Settings.

Usage (development tooling, may hit the network):
    from imgacquire.api.facade import acquire
    result = await acquire("hero", "modern office interior", profile="dark-overlay")

Usage (static-site build, never hits the network):
    from imgacquire.api.facade import resolve
    handle = resolve("photos", "hero")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from imgacquire.acquisition.downloader import Downloader
from imgacquire.acquisition.fetcher import Fetcher
from imgacquire.batch.runner import BatchAcquirer
from imgacquire.cache.base_cache_store import BaseManifestStore
from imgacquire.cache.cache_factory import create_manifest_store
from imgacquire.config.settings import Settings
from imgacquire.core.models import (
    AcquireOptions,
    AcquisitionResult,
    AssetHandle,
    Orientation,
    SearchQuery,
)
from imgacquire.resolver.resolver import Resolver
from imgacquire.scoring.profiles import get_profile
from imgacquire.search.base_provider import BaseSearchProvider
from imgacquire.search.provider_factory import create_search_client

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """Fetcher, resolver and batch runner sharing one store and one search gate."""

    settings: Settings
    store: BaseManifestStore
    fetcher: Fetcher
    resolver: Resolver
    batch: BatchAcquirer

    async def close(self) -> None:
        await self.fetcher.close()
        self.store.close()


def create_resolver(settings: Settings | None = None) -> Resolver:
    """Network-free resolver for build-time use."""
    settings = settings or Settings()
    return Resolver(settings, create_manifest_store(settings))


def create_engine(
    settings: Settings | None = None,
    provider: BaseSearchProvider | None = None,
    downloader: Downloader | None = None,
) -> Engine:
    """Build the full acquisition engine.

    Args:
        settings: Global settings. Loaded from .env if None.
        provider: Search provider override (default: configured provider).
        downloader: Downloader override (default: httpx downloader).
    """
    settings = settings or Settings()
    store = create_manifest_store(settings)
    search_client = create_search_client(settings, provider=provider)
    fetcher = Fetcher(settings, search_client, store, downloader=downloader)
    logger.debug(
        "Engine ready: provider=%s, backend=%s, assets=%s",
        search_client.provider_name, settings.manifest_backend, settings.assets_dir,
    )
    return Engine(
        settings=settings,
        store=store,
        fetcher=fetcher,
        resolver=Resolver(settings, store),
        batch=BatchAcquirer(fetcher, settings),
    )


async def acquire(
    key: str,
    query: str,
    profile: str | None = None,
    folder: str | None = None,
    width: int | None = None,
    height: int | None = None,
    orientation: Orientation | None = None,
    force: bool = False,
    settings: Settings | None = None,
) -> AcquisitionResult:
    """One-shot acquisition with a throwaway engine."""
    engine = create_engine(settings)
    try:
        return await engine.fetcher.acquire(
            key,
            SearchQuery(text=query, width=width, height=height, orientation=orientation),
            get_profile(profile or engine.settings.default_profile, engine.settings),
            folder=folder,
            options=AcquireOptions(force=force),
        )
    finally:
        await engine.close()


def resolve(folder: str, name: str, settings: Settings | None = None) -> AssetHandle:
    """Build-time lookup of a local asset.

    Raises:
        AssetNotFoundError: If no file exists for the name.
    """
    resolver = create_resolver(settings)
    try:
        return resolver.resolve(folder, name)
    finally:
        resolver.store.close()
