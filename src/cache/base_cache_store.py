# src/cache/base_cache_store.py — v2
"""Abstract manifest store interface.

The manifest maps an acquisition key to the local asset it resolved to,
together with the asset's attribution. Backends implement raw read/write;
the shared logic here enforces:

- ``put`` never overwrites: an existing entry raises ``CacheConflictError``.
- ``force_replace`` is the only overwrite path.
- Entry and attribution are written together or not at all.
- A persisted ``local_path`` always names an existing file under the
  project root.
- Writes for one key are serialized; other keys and reads are not blocked.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from imgacquire.cache.fingerprint import file_sha256
from imgacquire.cache.locks import KeyedLocks
from imgacquire.cache.models import AttributionRecord, CacheEntry
from imgacquire.core.errors import CacheConflictError, CorruptEntryError

logger = logging.getLogger(__name__)

VERIFY_OK = "ok"
VERIFY_MISSING = "missing"
VERIFY_MISMATCH = "checksum_mismatch"
VERIFY_CORRUPT = "corrupt"


class BaseManifestStore(ABC):
    """Unified interface for manifest storage backends."""

    def __init__(self, project_root: Path) -> None:
        self._project_root = Path(project_root).resolve()
        self._key_locks = KeyedLocks()

    @property
    def project_root(self) -> Path:
        return self._project_root

    # --- Backend hooks ---

    @abstractmethod
    def _read_raw_entries(self) -> dict[str, Any]:
        """Return persisted entries as raw (unvalidated) mappings by key."""

    @abstractmethod
    def _read_raw_attributions(self) -> dict[str, Any]:
        """Return current attribution records as raw mappings by key."""

    @abstractmethod
    def _write(self, key: str, entry: CacheEntry, attribution: AttributionRecord) -> None:
        """Persist entry + attribution atomically and append to the ledger."""

    @abstractmethod
    def _remove(self, key: str) -> bool:
        """Remove an entry and its current attribution. True if it existed."""

    @abstractmethod
    def ledger(self) -> list[AttributionRecord]:
        """Every attribution record ever appended, oldest first."""

    # --- Synchronous reads (safe from build-time code) ---

    def load_entries(self) -> dict[str, CacheEntry]:
        """Snapshot of all readable entries, sorted by key.

        Unreadable entries are logged and left out; ``lookup`` on such a
        key raises ``CorruptEntryError``.
        """
        entries: dict[str, CacheEntry] = {}
        for key, raw in sorted(self._read_raw_entries().items()):
            try:
                entries[key] = CacheEntry.model_validate(raw)
            except ValidationError as e:
                logger.warning("Skipping unreadable manifest entry %s: %s", key, e)
        return entries

    def get_entry(self, key: str) -> CacheEntry | None:
        """Synchronous lookup.

        Raises:
            CorruptEntryError: If the stored entry cannot be parsed.
        """
        raw = self._read_raw_entries().get(key)
        if raw is None:
            return None
        try:
            entry = CacheEntry.model_validate(raw)
        except ValidationError as e:
            raise CorruptEntryError(f"Manifest entry for {key!r} is unreadable: {e}", key=key) from e
        if entry.acquisition_key != key:
            raise CorruptEntryError(
                f"Manifest entry under {key!r} names key {entry.acquisition_key!r}", key=key,
            )
        return entry

    def resolve_path(self, entry: CacheEntry) -> Path:
        """Absolute path of an entry's file."""
        return self._project_root / entry.local_path

    # --- Async API used by the Fetcher ---

    async def lookup(self, key: str) -> CacheEntry | None:
        """Entry for key, or None if nothing was ever acquired under it."""
        return self.get_entry(key)

    async def put(
        self, key: str, entry: CacheEntry, attribution: AttributionRecord,
    ) -> None:
        """Persist a new entry.

        Raises:
            CacheConflictError: An entry already exists for the key.
            CorruptEntryError: The entry does not describe an existing file.
            WriteFailedError: The backend could not persist the entry.
        """
        async with self._key_locks.hold(key):
            if key in self._read_raw_entries():
                raise CacheConflictError(
                    f"An entry for {key!r} already exists; use force-replace to overwrite",
                    key=key,
                )
            self._check_consistency(key, entry, attribution)
            self._write(key, entry, attribution)
        logger.info("Manifest: stored %s -> %s", key, entry.local_path)

    async def force_replace(
        self, key: str, entry: CacheEntry, attribution: AttributionRecord,
    ) -> None:
        """Persist an entry, replacing any existing one for the key."""
        async with self._key_locks.hold(key):
            self._check_consistency(key, entry, attribution)
            self._write(key, entry, attribution)
        logger.info("Manifest: replaced %s -> %s", key, entry.local_path)

    async def delete(self, key: str) -> bool:
        """Forget an entry (the file and the ledger history are kept)."""
        async with self._key_locks.hold(key):
            removed = self._remove(key)
        if removed:
            logger.info("Manifest: removed %s", key)
        return removed

    async def list_entries(self) -> list[CacheEntry]:
        """All readable entries, sorted by key."""
        return list(self.load_entries().values())

    async def attribution(self, key: str) -> AttributionRecord | None:
        """Current attribution for key."""
        raw = self._read_raw_attributions().get(key)
        if raw is None:
            return None
        try:
            return AttributionRecord.model_validate(raw)
        except ValidationError as e:
            raise CorruptEntryError(f"Attribution for {key!r} is unreadable: {e}", key=key) from e

    async def verify(self) -> dict[str, str]:
        """Check every entry against the disk: ok, missing, checksum_mismatch, corrupt."""
        report: dict[str, str] = {}
        for key, raw in sorted(self._read_raw_entries().items()):
            try:
                entry = CacheEntry.model_validate(raw)
            except ValidationError:
                report[key] = VERIFY_CORRUPT
                continue
            path = self.resolve_path(entry)
            if not path.is_file():
                report[key] = VERIFY_MISSING
            elif file_sha256(path) != entry.sha256:
                report[key] = VERIFY_MISMATCH
            else:
                report[key] = VERIFY_OK
        return report

    def close(self) -> None:
        """Release backend resources (no-op for file backends)."""

    # --- Invariants ---

    def _check_consistency(
        self, key: str, entry: CacheEntry, attribution: AttributionRecord,
    ) -> None:
        if entry.acquisition_key != key or attribution.acquisition_key != key:
            raise CorruptEntryError(
                f"Entry/attribution keys do not match {key!r}", key=key,
            )
        if attribution.local_path != entry.local_path:
            raise CorruptEntryError(
                f"Attribution path {attribution.local_path!r} does not match "
                f"entry path {entry.local_path!r}",
                key=key,
            )
        path = self.resolve_path(entry)
        if not path.is_file():
            raise CorruptEntryError(
                f"Refusing to persist {key!r}: {entry.local_path} does not exist "
                f"under {self._project_root}",
                key=key,
            )
