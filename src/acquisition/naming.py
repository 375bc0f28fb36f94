# src/acquisition/naming.py — v2
"""Acquisition key → file name, with collision detection.

Different keys that sanitize to the same stem in one folder would silently
share a file, so such collisions are rejected instead.
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath

from imgacquire.cache.models import CacheEntry
from imgacquire.core.errors import InvalidKeyError
from imgacquire.storage.layout import is_asset_file

MAX_STEM_LENGTH = 80

_UNSAFE_RE = re.compile(r"[^a-z0-9_-]+")


def sanitize_key(key: str) -> str:
    """Lower-case file stem restricted to ``[a-z0-9_-]``.

    Raises:
        InvalidKeyError: If nothing usable is left.
    """
    stem = _UNSAFE_RE.sub("-", key.strip().lower()).strip("-_")
    stem = stem[:MAX_STEM_LENGTH].rstrip("-_")
    if not stem:
        raise InvalidKeyError(f"Acquisition key {key!r} has no usable characters", key=key)
    return stem


def check_collision(
    key: str,
    stem: str,
    folder: str,
    folder_path: Path,
    entries: dict[str, CacheEntry],
    allow_unmanaged: bool = False,
) -> None:
    """Reject a stem already owned by another key or by an unmanaged file.

    Only entries of ``folder`` own files in ``folder_path``; an entry with
    the same file name elsewhere does not make a local file managed.

    Raises:
        InvalidKeyError: On collision.
    """
    own_name: str | None = None
    for other_key, entry in entries.items():
        if entry.folder != folder:
            continue
        path = PurePosixPath(entry.local_path)
        if other_key == key:
            own_name = path.name
        elif path.stem == stem:
            raise InvalidKeyError(
                f"Key {key!r} collides with {other_key!r}: both map to "
                f"'{stem}' in folder {folder!r}",
                key=key,
            )

    if allow_unmanaged or not folder_path.is_dir():
        return

    for path in sorted(folder_path.glob(f"{stem}.*")):
        if path.stem != stem or not is_asset_file(path) or path.name == own_name:
            continue
        raise InvalidKeyError(
            f"Key {key!r} would overwrite unmanaged file {path.name} in "
            f"folder {folder!r}; remove it or use force",
            key=key,
        )
