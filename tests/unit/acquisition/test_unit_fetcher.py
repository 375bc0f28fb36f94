# tests/unit/acquisition/test_unit_fetcher.py — v2
"""Tests for acquisition/fetcher.py — idempotence, failures, concurrency."""

from __future__ import annotations

import asyncio
import json

import pytest

from imgacquire.core.errors import (
    FailureCause,
    ProviderNetworkError,
    RateLimitedError,
    WriteFailedError,
)
from imgacquire.core.models import AcquireOptions, AcquisitionStatus, SearchQuery
from imgacquire.scoring.profiles import get_profile

QUERY = SearchQuery(text="modern office")


@pytest.fixture
def photos_dir(project_root):
    return project_root / "src" / "assets" / "images" / "photos"


def _visible_files(directory) -> list[str]:
    if not directory.exists():
        return []
    return sorted(p.name for p in directory.iterdir())


class TestAcquireDownload:
    @pytest.mark.asyncio
    async def test_downloads_best_candidate(self, fetcher, store, photos_dir):
        result = await fetcher.acquire("hero", QUERY, get_profile("dark-overlay"))

        assert result.status == AcquisitionStatus.DOWNLOADED
        assert result.report_status == "downloaded"
        entry = result.entry
        assert entry.remote_id == "dark"
        assert entry.local_path == "src/assets/images/photos/hero.jpg"
        assert entry.folder == "photos"
        assert (entry.width, entry.height) == (64, 48)
        assert _visible_files(photos_dir) == ["hero.jpg"]
        assert await store.lookup("hero") == entry

    @pytest.mark.asyncio
    async def test_records_attribution(self, fetcher, store):
        await fetcher.acquire("hero", QUERY, get_profile("light-overlay"))
        attribution = await store.attribution("hero")
        assert attribution.author_name == "Author light"
        assert attribution.source_url == "https://example.com/photos/light"
        assert attribution.license == "Test License"
        assert [r.acquisition_key for r in store.ledger()] == ["hero"]

    @pytest.mark.asyncio
    async def test_custom_folder(self, fetcher, project_root):
        result = await fetcher.acquire("lead", QUERY, get_profile("neutral"), folder="team/portraits")
        assert result.entry.local_path == "src/assets/images/team/portraits/lead.jpg"
        assert (project_root / result.entry.local_path).is_file()

    @pytest.mark.asyncio
    async def test_key_sanitized_for_file_name(self, fetcher):
        result = await fetcher.acquire("About Us Hero", QUERY, get_profile("neutral"))
        assert result.entry.acquisition_key == "About Us Hero"
        assert result.entry.local_path.endswith("/about-us-hero.jpg")

    @pytest.mark.asyncio
    async def test_size_filter(self, fetcher, fake_provider, make_candidate):
        fake_provider.responses = [[
            make_candidate("tiny-dark", color="#595959", width=300, height=200),
            make_candidate("big-light", color="#F3F3F3", width=4000, height=3000),
        ]]
        result = await fetcher.acquire(
            "hero", SearchQuery(text="office", width=1920), get_profile("dark-overlay"),
        )
        assert result.entry.remote_id == "big-light"


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_second_call_cached(self, fetcher, store, fake_provider, image_server):
        profile = get_profile("dark-overlay")
        first = await fetcher.acquire("hero", QUERY, profile)
        manifest_after_first = store.manifest_path.read_bytes()
        ledger_after_first = store.ledger_path.read_bytes()

        second = await fetcher.acquire("hero", QUERY, profile)

        assert second.status == AcquisitionStatus.CACHED
        assert second.entry == first.entry
        assert fake_provider.call_count == 1
        assert len(image_server.requests) == 1
        assert store.manifest_path.read_bytes() == manifest_after_first
        assert store.ledger_path.read_bytes() == ledger_after_first

    @pytest.mark.asyncio
    async def test_cached_ignores_query_changes(self, fetcher, fake_provider):
        await fetcher.acquire("hero", QUERY, get_profile("dark-overlay"))
        result = await fetcher.acquire("hero", SearchQuery(text="beach"), get_profile("vivid"))
        assert result.status == AcquisitionStatus.CACHED
        assert result.entry.query == "modern office"
        assert fake_provider.call_count == 1

    @pytest.mark.asyncio
    async def test_force_refetch(self, fetcher, store, fake_provider, make_candidate):
        await fetcher.acquire("hero", QUERY, get_profile("dark-overlay"))
        fake_provider.responses = [[make_candidate("replacement", color="#101010")]]

        result = await fetcher.acquire(
            "hero", QUERY, get_profile("dark-overlay"), options=AcquireOptions(force=True),
        )

        assert result.status == AcquisitionStatus.DOWNLOADED
        assert result.entry.remote_id == "replacement"
        assert (await store.lookup("hero")).remote_id == "replacement"
        assert len(store.ledger()) == 2

    @pytest.mark.asyncio
    async def test_concurrent_same_key_downloads_once(self, fetcher, fake_provider, image_server):
        profile = get_profile("dark-overlay")
        results = await asyncio.gather(
            fetcher.acquire("hero", QUERY, profile),
            fetcher.acquire("hero", QUERY, profile),
            fetcher.acquire("hero", QUERY, profile),
        )
        statuses = sorted(r.status.value for r in results)
        assert statuses == ["cached", "cached", "downloaded"]
        assert fake_provider.call_count == 1
        assert len(image_server.requests) == 1
        assert len({r.entry.local_path for r in results}) == 1

    @pytest.mark.asyncio
    async def test_concurrent_distinct_keys(self, fetcher, store):
        profile = get_profile("neutral")
        results = await asyncio.gather(
            *(fetcher.acquire(f"img-{i}", QUERY, profile) for i in range(4))
        )
        assert all(r.status == AcquisitionStatus.DOWNLOADED for r in results)
        assert sorted(store.load_entries()) == ["img-0", "img-1", "img-2", "img-3"]


class TestProviderFailures:
    @pytest.mark.asyncio
    async def test_rate_limited_on_every_attempt(
        self, fetcher, store, fake_provider, settings, photos_dir,
    ):
        fake_provider.responses = [RateLimitedError("quota", provider="fake")]
        result = await fetcher.acquire("hero", QUERY, get_profile("neutral"))

        assert result.status == AcquisitionStatus.FAILED
        assert result.cause == FailureCause.RATE_LIMITED
        assert result.entry is None
        assert fake_provider.call_count == settings.retry_rate_limited_max + 1
        assert await store.lookup("hero") is None
        assert _visible_files(photos_dir) == []

    @pytest.mark.asyncio
    async def test_recovers_after_network_error(self, fetcher, fake_provider, sample_candidates):
        fake_provider.responses = [ProviderNetworkError("reset"), sample_candidates]
        result = await fetcher.acquire("hero", QUERY, get_profile("neutral"))
        assert result.status == AcquisitionStatus.DOWNLOADED
        assert fake_provider.call_count == 2

    @pytest.mark.asyncio
    async def test_no_results_not_retried(self, fetcher, fake_provider):
        fake_provider.responses = [[]]
        result = await fetcher.acquire("hero", QUERY, get_profile("neutral"))
        assert result.report_status == "failed:no_results"
        assert fake_provider.call_count == 1

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, fetcher, fake_provider, sample_candidates):
        fake_provider.responses = [[]]
        await fetcher.acquire("hero", QUERY, get_profile("neutral"))
        fake_provider.responses = [sample_candidates]
        result = await fetcher.acquire("hero", QUERY, get_profile("neutral"))
        assert result.status == AcquisitionStatus.DOWNLOADED


class TestWriteFailures:
    @pytest.mark.asyncio
    async def test_download_failure_leaves_nothing(self, fetcher, store, image_server, photos_dir):
        image_server.add("https://images.example.com/dark.jpg", b"oops", status=500)
        result = await fetcher.acquire("hero", QUERY, get_profile("dark-overlay"))

        assert result.cause == FailureCause.DOWNLOAD_FAILED
        assert await store.lookup("hero") is None
        assert _visible_files(photos_dir) == []
        assert not store.manifest_path.exists()

    @pytest.mark.asyncio
    async def test_corrupt_download_leaves_nothing(self, fetcher, store, image_server, photos_dir):
        image_server.add("https://images.example.com/dark.jpg", b"not an image")
        result = await fetcher.acquire("hero", QUERY, get_profile("dark-overlay"))
        assert result.cause == FailureCause.DOWNLOAD_FAILED
        assert _visible_files(photos_dir) == []

    @pytest.mark.asyncio
    async def test_persist_failure_rolls_back_file(self, fetcher, store, monkeypatch, photos_dir):
        async def failing_put(key, entry, attribution):
            raise WriteFailedError("disk full", key=key)

        monkeypatch.setattr(store, "put", failing_put)
        result = await fetcher.acquire("hero", QUERY, get_profile("dark-overlay"))

        assert result.cause == FailureCause.WRITE_FAILED
        assert _visible_files(photos_dir) == []
        assert store.load_entries() == {}

    @pytest.mark.asyncio
    async def test_forced_persist_failure_restores_previous(
        self, fetcher, store, monkeypatch, photos_dir, fake_provider, make_candidate, image_server,
        make_image,
    ):
        first = await fetcher.acquire("hero", QUERY, get_profile("dark-overlay"))
        original = (photos_dir / "hero.jpg").read_bytes()

        fake_provider.responses = [[make_candidate("other", color="#111111")]]
        image_server.add("https://images.example.com/other.jpg", make_image(color=(200, 10, 10)))

        async def failing_replace(key, entry, attribution):
            raise WriteFailedError("disk full", key=key)

        monkeypatch.setattr(store, "force_replace", failing_replace)
        result = await fetcher.acquire(
            "hero", QUERY, get_profile("dark-overlay"), options=AcquireOptions(force=True),
        )

        assert result.cause == FailureCause.WRITE_FAILED
        assert (photos_dir / "hero.jpg").read_bytes() == original
        assert _visible_files(photos_dir) == ["hero.jpg"]
        assert (await store.lookup("hero")) == first.entry

    @pytest.mark.asyncio
    async def test_timeout(self, fetcher, store, monkeypatch, photos_dir):
        async def slow_download(url, directory, stem):
            await asyncio.sleep(5)

        monkeypatch.setattr(fetcher._downloader, "download", slow_download)
        result = await fetcher.acquire(
            "hero", QUERY, get_profile("neutral"), options=AcquireOptions(timeout_s=0.05),
        )
        assert result.report_status == "failed:timeout"
        assert await store.lookup("hero") is None
        assert _visible_files(photos_dir) == []


class TestInvalidKeys:
    @pytest.mark.asyncio
    async def test_unusable_key(self, fetcher, fake_provider):
        result = await fetcher.acquire("///", QUERY, get_profile("neutral"))
        assert result.cause == FailureCause.INVALID_KEY
        assert fake_provider.call_count == 0

    @pytest.mark.asyncio
    async def test_bad_folder(self, fetcher):
        result = await fetcher.acquire("hero", QUERY, get_profile("neutral"), folder="../escape")
        assert result.cause == FailureCause.INVALID_KEY

    @pytest.mark.asyncio
    async def test_colliding_keys(self, fetcher, store):
        await fetcher.acquire("Hero", QUERY, get_profile("neutral"))
        result = await fetcher.acquire("hero", QUERY, get_profile("neutral"))
        assert result.cause == FailureCause.INVALID_KEY
        assert list(store.load_entries()) == ["Hero"]

    @pytest.mark.asyncio
    async def test_unmanaged_file_protected(self, fetcher, photos_dir, make_image):
        photos_dir.mkdir(parents=True)
        (photos_dir / "hero.png").write_bytes(make_image(fmt="PNG"))
        result = await fetcher.acquire("hero", QUERY, get_profile("neutral"))
        assert result.cause == FailureCause.INVALID_KEY

        forced = await fetcher.acquire(
            "hero", QUERY, get_profile("neutral"), options=AcquireOptions(force=True),
        )
        assert forced.status == AcquisitionStatus.DOWNLOADED

    @pytest.mark.asyncio
    async def test_same_file_name_in_other_folder_keeps_user_file(
        self, fetcher, store, photos_dir, make_image,
    ):
        team = await fetcher.acquire("hero", QUERY, get_profile("neutral"), folder="team")
        assert team.status == AcquisitionStatus.DOWNLOADED

        photos_dir.mkdir(parents=True)
        user_image = make_image(color=(200, 10, 10))
        (photos_dir / "hero.jpg").write_bytes(user_image)

        result = await fetcher.acquire("HERO", QUERY, get_profile("neutral"), folder="photos")
        assert result.cause == FailureCause.INVALID_KEY
        assert (photos_dir / "hero.jpg").read_bytes() == user_image
        assert list(store.load_entries()) == ["hero"]


class TestCorruptEntry:
    @pytest.mark.asyncio
    async def test_missing_file_reported(self, fetcher, project_root):
        first = await fetcher.acquire("hero", QUERY, get_profile("neutral"))
        (project_root / first.entry.local_path).unlink()

        result = await fetcher.acquire("hero", QUERY, get_profile("neutral"))
        assert result.cause == FailureCause.CORRUPT_ENTRY

        repaired = await fetcher.acquire(
            "hero", QUERY, get_profile("neutral"), options=AcquireOptions(force=True),
        )
        assert repaired.status == AcquisitionStatus.DOWNLOADED
        assert (project_root / repaired.entry.local_path).is_file()

    @pytest.mark.asyncio
    async def test_unreadable_entry_repaired_with_force(self, fetcher, store, fake_provider):
        await fetcher.acquire("hero", QUERY, get_profile("neutral"))
        document = json.loads(store.manifest_path.read_text())
        del document["entries"]["hero"]["sha256"]
        store.manifest_path.write_text(json.dumps(document))

        result = await fetcher.acquire("hero", QUERY, get_profile("neutral"))
        assert result.cause == FailureCause.CORRUPT_ENTRY

        repaired = await fetcher.acquire(
            "hero", QUERY, get_profile("neutral"), options=AcquireOptions(force=True),
        )
        assert repaired.status == AcquisitionStatus.DOWNLOADED
        stored = store.get_entry("hero")
        assert stored.sha256 == repaired.entry.sha256
        assert stored.local_path == "src/assets/images/photos/hero.jpg"
        assert fake_provider.call_count == 2


class TestPreview:
    @pytest.mark.asyncio
    async def test_previews_ranked_not_persisted(self, fetcher, store, image_server):
        previews = await fetcher.search_previews(QUERY, get_profile("dark-overlay"))
        assert [p.remote_id for p in previews][0] == "dark"
        assert all(p.persisted is False for p in previews)
        assert previews[0].score >= previews[-1].score
        assert image_server.requests == []
        assert not store.manifest_path.exists()

    def test_single_preview(self, fetcher, make_candidate):
        handle = fetcher.preview(make_candidate("x", color="#000000"), get_profile("dark-overlay"))
        assert handle.remote_id == "x"
        assert 0.0 <= handle.score <= 1.0
