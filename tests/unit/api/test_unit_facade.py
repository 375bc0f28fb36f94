# tests/unit/api/test_unit_facade.py — v3
"""Tests for api/facade.py — engine wiring and one-shot helpers."""

from __future__ import annotations

import sqlite3

import pytest

import imgacquire.api.facade as facade
from imgacquire.cache.json_store import JsonManifestStore
from imgacquire.cache.sqlite_store import SqliteManifestStore
from imgacquire.core.errors import AssetNotFoundError
from imgacquire.core.models import AcquisitionStatus
from imgacquire.search.adapters.unsplash_adapter import UnsplashAdapter


class TestCreateEngine:
    def test_components_share_store(self, settings, fake_provider, image_server):
        engine = facade.create_engine(
            settings, provider=fake_provider, downloader=image_server.downloader(),
        )
        assert isinstance(engine.store, JsonManifestStore)
        assert engine.resolver.store is engine.store
        assert engine.fetcher.store is engine.store
        assert engine.batch._fetcher is engine.fetcher

    def test_default_provider_from_settings(self, settings):
        engine = facade.create_engine(settings)
        assert isinstance(engine.fetcher._search._provider, UnsplashAdapter)

    def test_sqlite_backend(self, settings):
        sqlite_settings = settings.model_copy(update={"manifest_backend": "sqlite"})
        resolver = facade.create_resolver(sqlite_settings)
        assert isinstance(resolver.store, SqliteManifestStore)
        resolver.store.close()

    @pytest.mark.asyncio
    async def test_close_closes_provider(self, settings, fake_provider, image_server):
        engine = facade.create_engine(
            settings, provider=fake_provider, downloader=image_server.downloader(),
        )
        await engine.close()
        assert fake_provider.closed is True


class TestAcquireAndResolve:
    @pytest.mark.asyncio
    async def test_acquire_then_resolve(self, settings, monkeypatch, fake_provider, image_server):
        real_create_engine = facade.create_engine
        monkeypatch.setattr(
            facade, "create_engine",
            lambda s=None: real_create_engine(
                s, provider=fake_provider, downloader=image_server.downloader(),
            ),
        )

        result = await facade.acquire("hero", "office", profile="dark-overlay", settings=settings)
        assert result.status == AcquisitionStatus.DOWNLOADED
        assert fake_provider.closed is True

        handle = facade.resolve("photos", "hero", settings=settings)
        assert handle.remote_id == result.entry.remote_id

    def test_resolve_missing(self, settings):
        with pytest.raises(AssetNotFoundError):
            facade.resolve("photos", "nope", settings=settings)


class TestResolveClosesStore:
    @pytest.fixture
    def opened(self, monkeypatch):
        resolvers = []
        real_create_resolver = facade.create_resolver

        def _create_resolver(settings=None):
            resolver = real_create_resolver(settings)
            resolvers.append(resolver)
            return resolver

        monkeypatch.setattr(facade, "create_resolver", _create_resolver)
        return resolvers

    def test_sqlite_connection_closed_on_miss(self, settings, opened):
        sqlite_settings = settings.model_copy(update={"manifest_backend": "sqlite"})
        with pytest.raises(AssetNotFoundError):
            facade.resolve("photos", "nope", settings=sqlite_settings)
        with pytest.raises(sqlite3.ProgrammingError):
            opened[0].store._conn.execute("SELECT 1")

    def test_sqlite_connection_closed_on_hit(self, settings, opened, make_image):
        sqlite_settings = settings.model_copy(update={"manifest_backend": "sqlite"})
        photos = settings.project_root_path / "src/assets/images/photos"
        photos.mkdir(parents=True)
        (photos / "logo.png").write_bytes(make_image(fmt="PNG"))

        handle = facade.resolve("photos", "logo", settings=sqlite_settings)
        assert handle.local_path == "src/assets/images/photos/logo.png"
        with pytest.raises(sqlite3.ProgrammingError):
            opened[0].store._conn.execute("SELECT 1")
