# src/acquisition/preview.py — v1
"""Ephemeral previews of candidates.

A preview never downloads and never touches the manifest; ``acquire`` is
the only path that persists anything.
"""

from __future__ import annotations

from imgacquire.core.models import Candidate, PreviewHandle, ScoredCandidate, TargetProfile
from imgacquire.scoring.scorer import score_detailed


def preview_scored(scored: ScoredCandidate) -> PreviewHandle:
    candidate = scored.candidate
    return PreviewHandle(
        remote_id=candidate.remote_id,
        provider=candidate.provider,
        url=candidate.full_url,
        thumbnail_url=candidate.thumbnail_url,
        width=candidate.width,
        height=candidate.height,
        score=scored.score,
        author_name=candidate.author_name,
        license=candidate.license,
    )


def preview(candidate: Candidate, profile: TargetProfile) -> PreviewHandle:
    """Non-persisted handle for one candidate, scored against ``profile``."""
    return preview_scored(score_detailed(candidate, profile))
