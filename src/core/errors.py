# src/core/errors.py — v1
"""Error taxonomy for acquisition, caching and resolution.

Every error carries a machine-readable ``cause`` so that the Fetcher can
report ``failed:<cause>`` per key and the CLI can map it to an exit code.
"""

from __future__ import annotations

from enum import Enum


class FailureCause(str, Enum):
    """Why an acquisition (or resolution) failed."""

    RATE_LIMITED = "rate_limited"
    NETWORK_ERROR = "network_error"
    NO_RESULTS = "no_results"
    CONFLICT = "conflict"
    CORRUPT_ENTRY = "corrupt_entry"
    DOWNLOAD_FAILED = "download_failed"
    WRITE_FAILED = "write_failed"
    INVALID_KEY = "invalid_key"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"


class ImageAcquisitionError(Exception):
    """Base class for all engine errors."""

    cause: FailureCause = FailureCause.DOWNLOAD_FAILED

    def __init__(self, message: str, key: str | None = None) -> None:
        self.message = message
        self.key = key
        super().__init__(message)


# --- Provider (transport) ---


class ProviderError(ImageAcquisitionError):
    """Search provider failure, surfaced unmodified to the Fetcher."""

    cause = FailureCause.NETWORK_ERROR
    retryable = False

    def __init__(
        self, message: str, provider: str | None = None, key: str | None = None,
    ) -> None:
        self.provider = provider
        super().__init__(message, key=key)


class RateLimitedError(ProviderError):
    """Provider quota exceeded; the caller should back off."""

    cause = FailureCause.RATE_LIMITED
    retryable = True


class ProviderNetworkError(ProviderError):
    """Connection, timeout or server-side failure talking to the provider."""

    cause = FailureCause.NETWORK_ERROR
    retryable = True


class NoResultsError(ProviderError):
    """The provider returned no candidates for the query."""

    cause = FailureCause.NO_RESULTS


class RetryExhaustedError(ProviderError):
    """Retry budget spent; wraps the last provider error."""

    def __init__(self, last_error: ProviderError, attempts: int) -> None:
        self.last_error = last_error
        self.attempts = attempts
        self.cause = last_error.cause
        super().__init__(
            f"{last_error.message} (gave up after {attempts} attempts)",
            provider=last_error.provider,
            key=last_error.key,
        )


# --- Cache / manifest ---


class CacheError(ImageAcquisitionError):
    """Manifest store failure."""

    cause = FailureCause.CORRUPT_ENTRY


class CacheConflictError(CacheError):
    """An entry already exists for the key and force-replace was not requested."""

    cause = FailureCause.CONFLICT


class CorruptEntryError(CacheError):
    """A persisted entry cannot be read or no longer matches the disk."""

    cause = FailureCause.CORRUPT_ENTRY


# --- Fetch ---


class FetchError(ImageAcquisitionError):
    """Failure while downloading or persisting the selected candidate."""

    cause = FailureCause.DOWNLOAD_FAILED


class DownloadFailedError(FetchError):
    cause = FailureCause.DOWNLOAD_FAILED


class WriteFailedError(FetchError):
    cause = FailureCause.WRITE_FAILED


class InvalidKeyError(FetchError):
    """Key is empty after sanitization or collides with another asset."""

    cause = FailureCause.INVALID_KEY


class AcquisitionTimeoutError(FetchError):
    cause = FailureCause.TIMEOUT


# --- Resolve ---


class ResolveError(ImageAcquisitionError):
    cause = FailureCause.NOT_FOUND


class AssetNotFoundError(ResolveError):
    """No physical file exists for the symbolic name in the folder."""

    def __init__(self, folder: str, name: str) -> None:
        self.folder = folder
        self.name = name
        super().__init__(f"No asset named {name!r} in folder {folder!r}", key=name)
