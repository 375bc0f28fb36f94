# src/batch/runner.py — v1
"""Batch acquisition: many keys at once under a bounded worker pool.

A failing key never stops the batch; every request gets its own
``cached | downloaded | failed:<cause>`` result.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from imgacquire.acquisition.fetcher import Fetcher
from imgacquire.batch.models import AcquisitionRequest, BatchReport
from imgacquire.config.settings import Settings
from imgacquire.core.errors import FailureCause, ImageAcquisitionError
from imgacquire.core.models import AcquireOptions, AcquisitionResult, SearchQuery
from imgacquire.logging.context import set_batch_context
from imgacquire.scoring.profiles import UnknownProfileError, get_profile

logger = logging.getLogger(__name__)

_PLAN_ADAPTER = TypeAdapter(list[AcquisitionRequest])


class PlanError(ValueError):
    """Raised when a batch plan file cannot be read."""


def load_plan(path: Path) -> list[AcquisitionRequest]:
    """Read a JSON batch plan: a list of request objects.

    Raises:
        PlanError: If the file is missing, not JSON or not a list of requests.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise PlanError(f"Cannot read plan {path}: {e}") from e
    try:
        return _PLAN_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise PlanError(f"Invalid plan {path}: {e}") from e


class BatchAcquirer:
    """Run acquisition requests concurrently through one Fetcher."""

    def __init__(self, fetcher: Fetcher, settings: Settings) -> None:
        self._fetcher = fetcher
        self._settings = settings

    async def run(
        self,
        requests: list[AcquisitionRequest],
        force: bool = False,
        workers: int | None = None,
    ) -> BatchReport:
        """Acquire every request; results come back in request order."""
        batch_id = uuid.uuid4().hex[:8]
        set_batch_context(batch_id)
        semaphore = asyncio.Semaphore(workers or self._settings.fetch_workers)
        t0 = time.perf_counter()

        logger.info(
            "Batch %s: %d requests, %d workers",
            batch_id, len(requests), workers or self._settings.fetch_workers,
        )

        async def _one(request: AcquisitionRequest) -> AcquisitionResult:
            async with semaphore:
                try:
                    return await self._run_one(request, force)
                except Exception as e:
                    # Unclassified errors fail this key only
                    logger.exception("Unexpected error acquiring %s", request.key)
                    return AcquisitionResult.failed(
                        request.key, ImageAcquisitionError.cause, f"Unexpected error: {e}",
                    )

        results = await asyncio.gather(*(_one(r) for r in requests))
        report = BatchReport(
            batch_id=batch_id,
            results=list(results),
            duration_seconds=round(time.perf_counter() - t0, 2),
        )
        logger.info(
            "Batch %s complete: %d downloaded, %d cached, %d failed",
            batch_id, report.downloaded, report.cached, report.failed,
        )
        return report

    async def _run_one(self, request: AcquisitionRequest, force: bool) -> AcquisitionResult:
        try:
            query = SearchQuery(
                text=request.query,
                width=request.width,
                height=request.height,
                orientation=request.orientation,
            )
            profile = get_profile(
                request.profile or self._settings.default_profile, self._settings,
            )
        except (ValidationError, UnknownProfileError) as e:
            return AcquisitionResult.failed(request.key, FailureCause.INVALID_KEY, str(e))

        return await self._fetcher.acquire(
            request.key,
            query,
            profile,
            folder=request.folder,
            options=AcquireOptions(force=force),
        )
