# src/storage/layout.py — v2
"""Asset directory structure definition.

Path conventions for the asset root, asset folders, the manifest and the
attribution ledger. Every path handed to a manifest entry is expressed
relative to the project root with '/' separators.
"""

from __future__ import annotations

import re
from pathlib import Path

from imgacquire.config.settings import Settings

# Supported image extensions, in resolution preference order
IMAGE_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".png", ".webp", ".avif", ".gif")

CONTENT_TYPE_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/avif": ".avif",
    "image/gif": ".gif",
}

PART_SUFFIX = ".part"
BACKUP_SUFFIX = ".bak"

_FOLDER_RE = re.compile(r"^[A-Za-z0-9_-]+(/[A-Za-z0-9_-]+)*$")


def validate_folder(folder: str) -> str:
    """Return the folder name if it maps to a directory under the asset root."""
    if not _FOLDER_RE.match(folder or ""):
        raise ValueError(
            f"Invalid asset folder {folder!r}: use letters, digits, '-', '_' and '/'"
        )
    return folder


def asset_root(settings: Settings) -> Path:
    """Return the absolute asset root directory."""
    return settings.project_root_path / settings.assets_dir


def folder_dir(settings: Settings, folder: str) -> Path:
    """Return the physical directory backing an asset folder."""
    return asset_root(settings) / validate_folder(folder)


def manifest_path(settings: Settings) -> Path:
    """Return the JSON manifest path (next to the asset folders)."""
    return asset_root(settings) / settings.manifest_filename


def sqlite_path(settings: Settings) -> Path:
    """Return the SQLite manifest path."""
    return asset_root(settings) / settings.sqlite_filename


def ledger_path(settings: Settings) -> Path:
    """Return the attribution ledger path."""
    return asset_root(settings) / settings.attribution_filename


def relative_to_project(project_root: Path, path: Path) -> str:
    """Express an absolute path as a project-relative POSIX string.

    Raises:
        ValueError: If the path is outside the project root.
    """
    return path.resolve().relative_to(project_root.resolve()).as_posix()


def part_path(target: Path) -> Path:
    """Temporary download path for a target file."""
    return target.with_name(f".{target.name}{PART_SUFFIX}")


def backup_path(target: Path) -> Path:
    """Backup path kept while a forced re-fetch is being persisted."""
    return target.with_name(f".{target.name}{BACKUP_SUFFIX}")


def is_asset_file(path: Path) -> bool:
    """True for visible image files the resolver should expose."""
    return (
        path.is_file()
        and not path.name.startswith(".")
        and path.suffix.lower() in IMAGE_EXTENSIONS
    )
