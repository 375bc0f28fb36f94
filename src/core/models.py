# src/core/models.py — v3
"""Shared Pydantic domain models used across modules.

No module redefines these types: search, scoring, acquisition and
resolution all import them from core.models.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from imgacquire.cache.models import CacheEntry
from imgacquire.core.errors import FailureCause

Orientation = Literal["landscape", "portrait", "squarish"]


# === SEARCH ===


class SearchQuery(BaseModel):
    """Free-text query plus optional size/orientation constraints. Immutable."""

    model_config = ConfigDict(frozen=True)

    text: str
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)
    orientation: Orientation | None = None

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:  # noqa: N805
        v = " ".join(v.split())
        if not v:
            raise ValueError("query text must not be empty")
        return v


class TargetProfile(BaseModel):
    """What the placement wants: target darkness and color variance."""

    model_config = ConfigDict(frozen=True)

    name: str = "custom"
    target_luminance: float = Field(ge=0.0, le=1.0)
    target_variance: float = Field(default=0.0, ge=0.0, le=1.0)
    luminance_weight: float = Field(default=0.5, ge=0.0)
    variance_weight: float = Field(default=0.5, ge=0.0)

    @model_validator(mode="after")
    def validate_weights(self) -> TargetProfile:
        if self.luminance_weight + self.variance_weight <= 0:
            raise ValueError("profile weights must not both be zero")
        return self


class Candidate(BaseModel):
    """One search-result item. Never persisted; only the winner is kept."""

    model_config = ConfigDict(frozen=True)

    remote_id: str
    provider: str
    full_url: str
    thumbnail_url: str | None = None
    urls: dict[str, str] = Field(default_factory=dict)
    width: int = 0
    height: int = 0
    # Raw provider color descriptor (hex string, rgb mapping, sequence, None)
    color: Any = None
    rank: int = 0
    description: str | None = None
    author_name: str | None = None
    author_url: str | None = None
    source_url: str | None = None
    license: str = "Unknown"
    attribution_required: bool = False


class ScoredCandidate(BaseModel):
    """A candidate with its suitability for one target profile."""

    model_config = ConfigDict(frozen=True)

    candidate: Candidate
    score: float
    luminance: float
    variance: float


# === HANDLES ===


class PreviewHandle(BaseModel):
    """Ephemeral, non-cached view of a candidate. Nothing is written to disk."""

    model_config = ConfigDict(frozen=True)

    remote_id: str
    provider: str
    url: str
    thumbnail_url: str | None = None
    width: int
    height: int
    score: float
    author_name: str | None = None
    license: str = "Unknown"
    persisted: Literal[False] = False


class AssetHandle(BaseModel):
    """A local asset already present on disk, as seen by the build."""

    model_config = ConfigDict(frozen=True)

    folder: str
    name: str
    path: Path
    local_path: str
    width: int | None = None
    height: int | None = None
    acquisition_key: str | None = None
    remote_id: str | None = None
    provider: str | None = None


# === ACQUISITION ===


class AcquisitionStatus(str, Enum):
    CACHED = "cached"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


class AcquireOptions(BaseModel):
    """Per-call acquisition options."""

    force: bool = False
    timeout_s: float | None = Field(default=None, gt=0)
    max_results: int | None = Field(default=None, ge=1)


class AcquisitionResult(BaseModel):
    """Outcome of one acquire call: cached, downloaded, or failed(cause)."""

    key: str
    status: AcquisitionStatus
    entry: CacheEntry | None = None
    cause: FailureCause | None = None
    message: str | None = None

    @model_validator(mode="after")
    def validate_status_payload(self) -> AcquisitionResult:
        if self.status == AcquisitionStatus.FAILED:
            if self.cause is None:
                raise ValueError("failed result requires a cause")
            if self.entry is not None:
                raise ValueError("failed result must not carry an entry")
        elif self.entry is None:
            raise ValueError(f"{self.status.value} result requires an entry")
        return self

    @property
    def ok(self) -> bool:
        return self.status != AcquisitionStatus.FAILED

    @property
    def report_status(self) -> str:
        """``cached``, ``downloaded`` or ``failed:<cause>``."""
        if self.status == AcquisitionStatus.FAILED and self.cause is not None:
            return f"failed:{self.cause.value}"
        return self.status.value

    @classmethod
    def failed(cls, key: str, cause: FailureCause, message: str) -> AcquisitionResult:
        return cls(key=key, status=AcquisitionStatus.FAILED, cause=cause, message=message)
