# src/scoring/profiles.py — v1
"""Named target profiles for common placements."""

from __future__ import annotations

from imgacquire.config.settings import Settings
from imgacquire.core.models import TargetProfile

PRESET_PROFILES: dict[str, TargetProfile] = {
    # Dark, muted background for light text over a dark overlay
    "dark-overlay": TargetProfile(
        name="dark-overlay", target_luminance=0.1, target_variance=0.0,
    ),
    "light-overlay": TargetProfile(
        name="light-overlay", target_luminance=0.9, target_variance=0.0,
    ),
    "neutral": TargetProfile(
        name="neutral", target_luminance=0.5, target_variance=0.5,
    ),
    "vivid": TargetProfile(
        name="vivid", target_luminance=0.5, target_variance=1.0,
    ),
}


class UnknownProfileError(ValueError):
    """Raised when a profile name is not registered."""


def get_profile(name: str, settings: Settings | None = None) -> TargetProfile:
    """Return a preset profile, with weights taken from settings if given.

    Raises:
        UnknownProfileError: If the name is not a preset.
    """
    try:
        profile = PRESET_PROFILES[name]
    except KeyError:
        raise UnknownProfileError(
            f"Unknown profile {name!r}. Available: {', '.join(sorted(PRESET_PROFILES))}"
        ) from None

    if settings is None:
        return profile
    return profile.model_copy(
        update={
            "luminance_weight": settings.scoring_luminance_weight,
            "variance_weight": settings.scoring_variance_weight,
        }
    )
