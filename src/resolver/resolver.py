# src/resolver/resolver.py — v1
"""Build-time resolver: symbolic asset name → local file.

Synchronous and network-free. Reads only the physical asset folders and
the manifest's persisted entries. A missing asset raises
``AssetNotFoundError``; fallback policy (placeholders and the like)
belongs to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from imgacquire.acquisition.naming import sanitize_key
from imgacquire.cache.base_cache_store import BaseManifestStore
from imgacquire.cache.models import CacheEntry
from imgacquire.config.settings import Settings
from imgacquire.core.errors import AssetNotFoundError, InvalidKeyError
from imgacquire.core.models import AssetHandle
from imgacquire.storage import layout

logger = logging.getLogger(__name__)


class AssetFolderView:
    """Restartable, lazy sequence of the assets in one folder.

    Each iteration rescans the directory in sorted order, so re-iterating
    an unchanged folder yields the same handles in the same order.
    """

    def __init__(self, resolver: Resolver, folder: str) -> None:
        self._resolver = resolver
        self._folder = folder

    @property
    def folder(self) -> str:
        return self._folder

    def __iter__(self) -> Iterator[AssetHandle]:
        return self._resolver.iter_folder(self._folder)


class Resolver:
    """Resolves asset names within an asset folder."""

    def __init__(self, settings: Settings, store: BaseManifestStore | None = None) -> None:
        self._settings = settings
        self._store = store
        self._project_root = settings.project_root_path

    @property
    def store(self) -> BaseManifestStore | None:
        return self._store

    def folder_path(self, folder: str) -> Path:
        return layout.folder_dir(self._settings, folder)

    def resolve(self, folder: str, name: str) -> AssetHandle:
        """Return the asset ``name`` in ``folder``.

        ``name`` is an acquisition key or a file stem. The manifest entry for
        the key wins when its file exists; otherwise the folder is scanned
        for a file whose stem matches the sanitized name.

        Raises:
            AssetNotFoundError: No physical file exists for the name.
        """
        directory = self.folder_path(folder)
        entries = self._entries()

        entry = entries.get(name)
        if entry is not None and entry.folder == folder:
            path = self._project_root / entry.local_path
            if path.is_file():
                return self._handle_from_entry(entry, name, path)
            logger.warning(
                "Manifest entry %s points to missing file %s", name, entry.local_path,
            )

        try:
            stem = sanitize_key(name)
        except InvalidKeyError:
            raise AssetNotFoundError(folder, name) from None

        if directory.is_dir():
            for ext in layout.IMAGE_EXTENSIONS:
                for candidate in (directory / f"{stem}{ext}", directory / f"{stem}{ext.upper()}"):
                    if layout.is_asset_file(candidate):
                        return self._handle_for_path(folder, candidate, entries)

        raise AssetNotFoundError(folder, name)

    def find(self, folder: str, name: str) -> AssetHandle | None:
        """Like ``resolve`` but returns None when the asset is missing."""
        try:
            return self.resolve(folder, name)
        except AssetNotFoundError:
            return None

    def resolve_all(self, folder: str) -> AssetFolderView:
        """Lazy, restartable sequence of every asset in ``folder``."""
        layout.validate_folder(folder)
        return AssetFolderView(self, folder)

    def iter_folder(self, folder: str) -> Iterator[AssetHandle]:
        directory = self.folder_path(folder)
        if not directory.is_dir():
            return
        entries = self._entries()
        for path in sorted(directory.iterdir(), key=lambda p: p.name):
            if layout.is_asset_file(path):
                yield self._handle_for_path(folder, path, entries)

    # --- Helpers ---

    def _entries(self) -> dict[str, CacheEntry]:
        if self._store is None:
            return {}
        return self._store.load_entries()

    def _handle_for_path(
        self, folder: str, path: Path, entries: dict[str, CacheEntry],
    ) -> AssetHandle:
        local_path = layout.relative_to_project(self._project_root, path)
        for key, entry in entries.items():
            if entry.local_path == local_path:
                return self._handle_from_entry(entry, key, path)

        width, height = _read_dimensions(path)
        return AssetHandle(
            folder=folder,
            name=path.stem,
            path=path,
            local_path=local_path,
            width=width,
            height=height,
        )

    def _handle_from_entry(self, entry: CacheEntry, name: str, path: Path) -> AssetHandle:
        return AssetHandle(
            folder=entry.folder,
            name=name,
            path=path,
            local_path=entry.local_path,
            width=entry.width,
            height=entry.height,
            acquisition_key=entry.acquisition_key,
            remote_id=entry.remote_id,
            provider=entry.provider,
        )


def _read_dimensions(path: Path) -> tuple[int | None, int | None]:
    """Image size from the file header (Pillow opens lazily)."""
    try:
        with Image.open(path) as img:
            return img.size
    except (UnidentifiedImageError, OSError):
        logger.warning("Could not read image size of %s", path)
        return None, None
