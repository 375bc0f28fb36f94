# src/cache/models.py — v2
"""Manifest domain models: CacheEntry, AttributionRecord.

Both are owned by the manifest store; the Fetcher is the only writer.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import PurePosixPath

from pydantic import BaseModel, field_validator


def validate_local_path(value: str) -> str:
    """Normalize a project-relative POSIX path and reject unsafe forms."""
    if not value or not value.strip():
        raise ValueError("local_path must not be empty")
    if value.startswith("~"):
        raise ValueError(f"local_path must not use home-directory shorthand: {value!r}")
    if "\\" in value:
        raise ValueError(f"local_path must use '/' separators: {value!r}")
    path = PurePosixPath(value)
    if path.is_absolute() or (len(value) > 1 and value[1] == ":"):
        raise ValueError(f"local_path must be relative to the project root: {value!r}")
    if ".." in path.parts:
        raise ValueError(f"local_path must not escape the project root: {value!r}")
    return path.as_posix()


class CacheEntry(BaseModel):
    """Single manifest entry linking an acquisition key to a local file."""

    acquisition_key: str
    folder: str
    local_path: str
    remote_id: str
    provider: str
    query: str
    width: int
    height: int
    score: float
    sha256: str
    created_at: datetime

    @field_validator("local_path")
    @classmethod
    def validate_path(cls, v: str) -> str:  # noqa: N805
        return validate_local_path(v)


class AttributionRecord(BaseModel):
    """Source, author and license of one downloaded asset."""

    acquisition_key: str
    local_path: str
    source_name: str
    source_url: str | None = None
    author_name: str | None = None
    author_url: str | None = None
    license: str
    retrieved_at: datetime

    @field_validator("local_path")
    @classmethod
    def validate_path(cls, v: str) -> str:  # noqa: N805
        return validate_local_path(v)
