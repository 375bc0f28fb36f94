# src/cache/cache_factory.py — v3
"""Factory for manifest store instantiation."""

from __future__ import annotations

from imgacquire.cache.base_cache_store import BaseManifestStore
from imgacquire.config.settings import Settings
from imgacquire.storage import layout


def create_manifest_store(settings: Settings) -> BaseManifestStore:
    """Instantiate the configured manifest backend.

    Returns:
        Configured BaseManifestStore implementation.
    """
    backend = settings.manifest_backend
    project_root = settings.project_root_path

    if backend == "json":
        from imgacquire.cache.json_store import JsonManifestStore
        return JsonManifestStore(
            project_root=project_root,
            manifest_path=layout.manifest_path(settings),
            ledger_path=layout.ledger_path(settings),
        )

    if backend == "sqlite":
        from imgacquire.cache.sqlite_store import SqliteManifestStore
        return SqliteManifestStore(
            project_root=project_root, db_path=layout.sqlite_path(settings),
        )

    raise ValueError(f"Unsupported manifest backend: {backend!r}")
