# src/batch/models.py — v2
"""Batch acquisition models: AcquisitionRequest, BatchReport."""

from __future__ import annotations

from pydantic import BaseModel, Field

from imgacquire.core.models import AcquisitionResult, AcquisitionStatus, Orientation


class AcquisitionRequest(BaseModel):
    """One line of a batch plan."""

    key: str
    query: str
    folder: str | None = None
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)
    orientation: Orientation | None = None
    profile: str | None = None


class BatchReport(BaseModel):
    """Per-key outcome of a batch run, in request order."""

    batch_id: str
    results: list[AcquisitionResult] = Field(default_factory=list)
    duration_seconds: float = 0.0

    def _count(self, status: AcquisitionStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def cached(self) -> int:
        return self._count(AcquisitionStatus.CACHED)

    @property
    def downloaded(self) -> int:
        return self._count(AcquisitionStatus.DOWNLOADED)

    @property
    def failed(self) -> int:
        return self._count(AcquisitionStatus.FAILED)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def status_lines(self) -> list[str]:
        """``<key>: cached | downloaded | failed:<cause>`` per request."""
        return [f"{r.key}: {r.report_status}" for r in self.results]
