# src/scoring/scorer.py — v1
"""Color/suitability scorer and deterministic candidate selection.

score = w_lum * (1 - |L - L_target|) + w_var * (1 - |V - V_target|)

with weights normalized to sum 1, so the result stays in [0, 1].
Equal scores keep provider order: the first candidate wins.
"""

from __future__ import annotations

import logging

from imgacquire.core.models import Candidate, ScoredCandidate, SearchQuery, TargetProfile
from imgacquire.scoring.color import channel_variance, color_or_neutral, relative_luminance

logger = logging.getLogger(__name__)


def score(candidate: Candidate, profile: TargetProfile) -> float:
    """Suitability of one candidate for a target profile."""
    return score_detailed(candidate, profile).score


def score_detailed(candidate: Candidate, profile: TargetProfile) -> ScoredCandidate:
    """Score a candidate and keep the intermediate luminance/variance."""
    rgb = color_or_neutral(candidate.color)
    luminance = relative_luminance(rgb)
    variance = channel_variance(rgb)

    total_weight = profile.luminance_weight + profile.variance_weight
    w_lum = profile.luminance_weight / total_weight
    w_var = profile.variance_weight / total_weight

    luminance_term = 1.0 - abs(luminance - profile.target_luminance)
    variance_term = 1.0 - abs(variance - profile.target_variance)
    value = min(1.0, max(0.0, luminance_term * w_lum + variance_term * w_var))

    return ScoredCandidate(
        candidate=candidate, score=value, luminance=luminance, variance=variance,
    )


def filter_by_size(candidates: list[Candidate], query: SearchQuery) -> list[Candidate]:
    """Drop candidates smaller than the requested size, unless none would remain."""
    if query.width is None and query.height is None:
        return list(candidates)

    fitting = [
        c for c in candidates
        if (query.width is None or c.width >= query.width)
        and (query.height is None or c.height >= query.height)
    ]
    if not fitting:
        logger.debug(
            "No candidate meets %sx%s, keeping all %d",
            query.width, query.height, len(candidates),
        )
        return list(candidates)
    return fitting


def rank(candidates: list[Candidate], profile: TargetProfile) -> list[ScoredCandidate]:
    """Score and sort candidates, best first; ties keep provider order."""
    scored = [score_detailed(c, profile) for c in candidates]
    # sorted() is stable, so equal scores stay in their input order
    return sorted(scored, key=lambda s: -s.score)


def select_best(
    candidates: list[Candidate], profile: TargetProfile,
) -> ScoredCandidate | None:
    """Return the highest-scoring candidate, or None for an empty list."""
    best: ScoredCandidate | None = None
    for candidate in candidates:
        current = score_detailed(candidate, profile)
        if best is None or current.score > best.score:
            best = current
    return best
