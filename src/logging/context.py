# src/logging/context.py — v2
"""Contextual logging support: attach acquisition_key, folder and batch_id to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per acquisition.
# Each asyncio task gets its own copy, so concurrent acquisitions don't mix.
_acquisition_key: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "acquisition_key", default=None
)
_folder: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "folder", default=None
)
_batch_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "batch_id", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    acquisition_key: str | None = None
    folder: str | None = None
    batch_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        acquisition_key=_acquisition_key.get(),
        folder=_folder.get(),
        batch_id=_batch_id.get(),
    )


def set_batch_context(batch_id: str) -> None:
    """Set batch-level context (called once per batch run)."""
    _batch_id.set(batch_id)


def set_acquisition_context(acquisition_key: str, folder: str | None = None) -> None:
    """Set acquisition-level context (called per acquire)."""
    _acquisition_key.set(acquisition_key)
    _folder.set(folder)


def clear_acquisition_context() -> None:
    """Reset acquisition-level variables, keeping the batch id."""
    _acquisition_key.set(None)
    _folder.set(None)


def clear_context() -> None:
    """Reset all context variables."""
    _acquisition_key.set(None)
    _folder.set(None)
    _batch_id.set(None)
