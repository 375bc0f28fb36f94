# src/search/provider_factory.py — v1
"""Factory: instantiate the search provider and rate-limited client from settings."""

from __future__ import annotations

import importlib
import logging

from imgacquire.config.settings import Settings
from imgacquire.search.base_provider import BaseSearchProvider
from imgacquire.search.client import RateLimitedSearchClient
from imgacquire.search.rate_limiter import IntervalGate

logger = logging.getLogger(__name__)

# Registry of provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "unsplash": "imgacquire.search.adapters.unsplash_adapter.UnsplashAdapter",
    "pexels": "imgacquire.search.adapters.pexels_adapter.PexelsAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_search_provider(
    settings: Settings, provider: str | None = None,
) -> BaseSearchProvider:
    """Instantiate the configured provider adapter.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    name = provider or settings.search_provider
    if name not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported search provider: {name!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[name])
    api_key = settings.pexels_api_key if name == "pexels" else settings.unsplash_access_key
    if not api_key:
        logger.warning("No API key configured for search provider %s", name)

    logger.debug("Creating search provider: %s", name)
    return adapter_cls(api_key=api_key, timeout=settings.http_timeout_s)


def create_search_client(
    settings: Settings, provider: BaseSearchProvider | None = None,
) -> RateLimitedSearchClient:
    """Wrap a provider (configured one by default) behind a fresh interval gate."""
    provider = provider or create_search_provider(settings)
    gate = IntervalGate(settings.search_interval_s)
    logger.debug(
        "Search gate for %s: %.2fs between requests",
        provider.provider_name, gate.interval_s,
    )
    return RateLimitedSearchClient(provider, gate)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseSearchProvider.
    """
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered search provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
