# src/acquisition/fetcher.py — v2
"""Fetcher: search → score → select → download → persist.

The only component that does both network I/O and local writes. Every
call ends in exactly one of:

- ``cached``: the key already had an entry, nothing was fetched
- ``downloaded``: a new file and manifest entry were written
- ``failed(cause)``: nothing was persisted for the key

Engine errors are raised internally and converted to a failed result
here, at the boundary.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable

from imgacquire.acquisition.downloader import Downloader, StagedFile
from imgacquire.acquisition.naming import check_collision, sanitize_key
from imgacquire.acquisition.preview import preview as preview_candidate
from imgacquire.acquisition.preview import preview_scored
from imgacquire.acquisition.retry import RetryConfig, retry_configs_from_settings, with_retry
from imgacquire.cache.base_cache_store import BaseManifestStore
from imgacquire.cache.locks import KeyedLocks
from imgacquire.cache.models import AttributionRecord, CacheEntry
from imgacquire.config.settings import Settings
from imgacquire.core.errors import (
    CorruptEntryError,
    FailureCause,
    ImageAcquisitionError,
    InvalidKeyError,
    NoResultsError,
)
from imgacquire.core.models import (
    AcquireOptions,
    AcquisitionResult,
    AcquisitionStatus,
    Candidate,
    PreviewHandle,
    ScoredCandidate,
    SearchQuery,
    TargetProfile,
)
from imgacquire.logging.context import clear_acquisition_context, set_acquisition_context
from imgacquire.scoring.scorer import filter_by_size, rank, select_best
from imgacquire.search.client import RateLimitedSearchClient
from imgacquire.storage import layout

logger = logging.getLogger(__name__)


class Fetcher:
    """Acquires images for acquisition keys, idempotently."""

    def __init__(
        self,
        settings: Settings,
        search_client: RateLimitedSearchClient,
        store: BaseManifestStore,
        downloader: Downloader | None = None,
        retry_configs: dict[FailureCause, RetryConfig] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._search = search_client
        self._store = store
        self._downloader = downloader or Downloader(timeout=settings.http_timeout_s * 2)
        self._retry_configs = (
            retry_configs if retry_configs is not None
            else retry_configs_from_settings(settings)
        )
        self._sleep = sleep
        self._inflight = KeyedLocks()

    @property
    def store(self) -> BaseManifestStore:
        return self._store

    async def acquire(
        self,
        key: str,
        query: SearchQuery,
        profile: TargetProfile,
        folder: str | None = None,
        options: AcquireOptions | None = None,
    ) -> AcquisitionResult:
        """Acquire an image for ``key``; never raises for engine failures."""
        folder = folder or self._settings.default_folder
        options = options or AcquireOptions()
        timeout = (
            options.timeout_s if options.timeout_s is not None
            else self._settings.acquire_timeout_s
        )

        set_acquisition_context(key, folder)
        try:
            work = self._acquire_serialized(key, query, profile, folder, options)
            if timeout is not None:
                return await asyncio.wait_for(work, timeout)
            return await work
        except asyncio.TimeoutError:
            logger.warning("Acquisition of %s timed out after %.1fs", key, timeout)
            return AcquisitionResult.failed(
                key, FailureCause.TIMEOUT, f"Timed out after {timeout}s",
            )
        except ImageAcquisitionError as e:
            logger.warning("Acquisition of %s failed (%s): %s", key, e.cause.value, e.message)
            return AcquisitionResult.failed(key, e.cause, e.message)
        except OSError as e:
            logger.exception("Filesystem error while acquiring %s", key)
            return AcquisitionResult.failed(key, FailureCause.WRITE_FAILED, str(e))
        finally:
            clear_acquisition_context()

    async def _acquire_serialized(
        self,
        key: str,
        query: SearchQuery,
        profile: TargetProfile,
        folder: str,
        options: AcquireOptions,
    ) -> AcquisitionResult:
        # One in-flight acquisition per key: a concurrent duplicate waits
        # and then sees the entry as cached.
        async with self._inflight.hold(key):
            return await self._acquire(key, query, profile, folder, options)

    async def _acquire(
        self,
        key: str,
        query: SearchQuery,
        profile: TargetProfile,
        folder: str,
        options: AcquireOptions,
    ) -> AcquisitionResult:
        try:
            folder_path = layout.folder_dir(self._settings, folder)
        except ValueError as e:
            raise InvalidKeyError(str(e), key=key) from e
        stem = sanitize_key(key)

        # 1. Idempotency
        try:
            existing = await self._store.lookup(key)
        except CorruptEntryError:
            if not options.force:
                raise
            logger.warning("Replacing unreadable manifest entry for %s", key)
            existing, replace = None, True
        else:
            replace = existing is not None

        if existing is not None and not options.force:
            if not self._store.resolve_path(existing).is_file():
                raise CorruptEntryError(
                    f"Entry for {key!r} points to missing file {existing.local_path}; "
                    "re-acquire with force",
                    key=key,
                )
            logger.info("Cached: %s -> %s", key, existing.local_path)
            return AcquisitionResult(
                key=key, status=AcquisitionStatus.CACHED, entry=existing,
            )

        check_collision(
            key, stem, folder, folder_path,
            self._store.load_entries(),
            allow_unmanaged=options.force,
        )

        # 2-4. Search, score, select
        best = await self._select(key, query, profile, options)
        candidate = best.candidate
        logger.info(
            "Selected %s/%s for %s (score %.3f, rank %d)",
            candidate.provider, candidate.remote_id, key, best.score, candidate.rank,
        )

        # 5. Download into a staging file
        staged = await self._downloader.download(candidate.full_url, folder_path, stem)

        # 6. Install and persist, all or nothing
        entry = await self._persist(key, folder, query, best, staged, existing, replace)
        return AcquisitionResult(key=key, status=AcquisitionStatus.DOWNLOADED, entry=entry)

    async def _search_candidates(
        self, key: str, query: SearchQuery, max_results: int | None,
    ) -> list[Candidate]:
        return await with_retry(
            self._search.search,
            query,
            max_results or self._settings.search_max_results,
            key=key,
            retry_configs=self._retry_configs,
            sleep=self._sleep,
        )

    async def _select(
        self,
        key: str,
        query: SearchQuery,
        profile: TargetProfile,
        options: AcquireOptions,
    ) -> ScoredCandidate:
        candidates = await self._search_candidates(key, query, options.max_results)
        best = select_best(filter_by_size(candidates, query), profile)
        if best is None:
            raise NoResultsError(f"No usable candidates for {query.text!r}", key=key)
        return best

    async def _persist(
        self,
        key: str,
        folder: str,
        query: SearchQuery,
        best: ScoredCandidate,
        staged: StagedFile,
        existing: CacheEntry | None,
        replace: bool,
    ) -> CacheEntry:
        candidate = best.candidate
        now = datetime.now(timezone.utc)
        try:
            staged.install()
            local_path = layout.relative_to_project(
                self._store.project_root, staged.target,
            )
            entry = CacheEntry(
                acquisition_key=key,
                folder=folder,
                local_path=local_path,
                remote_id=candidate.remote_id,
                provider=candidate.provider,
                query=query.text,
                width=staged.width,
                height=staged.height,
                score=round(best.score, 6),
                sha256=staged.sha256,
                created_at=now,
            )
            attribution = AttributionRecord(
                acquisition_key=key,
                local_path=local_path,
                source_name=candidate.provider,
                source_url=candidate.source_url,
                author_name=candidate.author_name,
                author_url=candidate.author_url,
                license=candidate.license,
                retrieved_at=now,
            )
            if replace:
                await self._store.force_replace(key, entry, attribution)
            else:
                await self._store.put(key, entry, attribution)
        except BaseException:
            staged.rollback()
            raise

        staged.finalize()
        if existing is not None and existing.local_path != entry.local_path:
            self._remove_stale(existing)
        return entry

    def _remove_stale(self, previous: CacheEntry) -> None:
        """Delete the file a forced re-fetch replaced under a new name."""
        path: Path = self._store.resolve_path(previous)
        try:
            path.unlink(missing_ok=True)
            logger.info("Removed superseded file %s", previous.local_path)
        except OSError:
            logger.warning("Could not remove superseded file %s", previous.local_path)

    # --- Preview (never persists) ---

    async def search_previews(
        self,
        query: SearchQuery,
        profile: TargetProfile,
        max_results: int | None = None,
    ) -> list[PreviewHandle]:
        """Ranked, non-persisted previews for a query.

        Raises:
            ProviderError: If the search fails after retries.
        """
        candidates = await self._search_candidates("preview", query, max_results)
        return [preview_scored(s) for s in rank(filter_by_size(candidates, query), profile)]

    def preview(self, candidate: Candidate, profile: TargetProfile) -> PreviewHandle:
        """Non-persisted handle for a single candidate."""
        return preview_candidate(candidate, profile)

    async def close(self) -> None:
        await self._search.close()
        await self._downloader.close()
