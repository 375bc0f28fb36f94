# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for asset roots, provider credentials, rate-limit
parameters and scoring weights. The engine treats these as opaque
configuration: nothing below is hardcoded elsewhere.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Project layout ===
    project_root: Path = Path(".")
    assets_dir: str = "src/assets/images"
    default_folder: str = "photos"

    # === Manifest / ledger ===
    manifest_backend: Literal["json", "sqlite"] = "json"
    manifest_filename: str = ".image-manifest.json"
    sqlite_filename: str = ".image-manifest.db"
    attribution_filename: str = "ATTRIBUTIONS.jsonl"

    # === Search provider ===
    search_provider: Literal["unsplash", "pexels"] = "unsplash"
    unsplash_access_key: str = ""
    pexels_api_key: str = ""
    search_requests_per_hour: int = 50
    search_min_interval_s: float | None = None
    search_max_results: int = 10
    http_timeout_s: float = 15.0

    # === Fetcher ===
    acquire_timeout_s: float | None = 120.0
    fetch_workers: int = 4

    # === Retry ===
    retry_rate_limited_max: int = 3
    retry_network_max: int = 2
    retry_base_delay_s: float = 2.0
    retry_backoff_factor: float = 2.0
    retry_jitter: bool = True

    # === Scoring ===
    scoring_luminance_weight: float = 0.5
    scoring_variance_weight: float = 0.5
    default_profile: str = "neutral"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("assets_dir")
    @classmethod
    def validate_assets_dir(cls, v: str) -> str:  # noqa: N805
        """Asset dir must be a real path relative to the project root."""
        if not v.strip():
            raise ValueError("assets_dir must not be empty")
        if v.startswith("~"):
            raise ValueError("assets_dir must not use home-directory shorthand")
        posix = PurePosixPath(v.replace("\\", "/"))
        if posix.is_absolute() or Path(v).is_absolute():
            raise ValueError("assets_dir must be relative to project_root")
        if ".." in posix.parts:
            raise ValueError("assets_dir must not escape project_root")
        return posix.as_posix()

    @field_validator("fetch_workers")
    @classmethod
    def validate_fetch_workers(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("fetch_workers must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.search_requests_per_hour <= 0 and self.search_min_interval_s is None:
            errors.append(
                "SEARCH_REQUESTS_PER_HOUR must be > 0 unless SEARCH_MIN_INTERVAL_S is set"
            )
        if self.search_min_interval_s is not None and self.search_min_interval_s < 0:
            errors.append("SEARCH_MIN_INTERVAL_S must be >= 0")
        if self.search_max_results < 1:
            errors.append("SEARCH_MAX_RESULTS must be >= 1")
        if self.scoring_luminance_weight < 0 or self.scoring_variance_weight < 0:
            errors.append("Scoring weights must be >= 0")
        elif self.scoring_luminance_weight + self.scoring_variance_weight <= 0:
            errors.append("Scoring weights must not both be zero")
        if self.retry_rate_limited_max < 0 or self.retry_network_max < 0:
            errors.append("Retry counts must be >= 0")
        if self.acquire_timeout_s is not None and self.acquire_timeout_s <= 0:
            errors.append("ACQUIRE_TIMEOUT_S must be > 0 (or unset)")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def search_interval_s(self) -> float:
        """Effective minimum spacing between two provider search calls."""
        if self.search_min_interval_s is not None:
            return self.search_min_interval_s
        return 3600.0 / self.search_requests_per_hour

    @property
    def project_root_path(self) -> Path:
        """Absolute project root."""
        return self.project_root.resolve()

    @property
    def provider_api_key(self) -> str:
        """API key for the configured search provider."""
        if self.search_provider == "pexels":
            return self.pexels_api_key
        return self.unsplash_access_key


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-project config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
