# src/logging/logger.py — v2
"""Log setup for the engine: console on stderr, optional rotating file.

Records carry the acquisition context (key, folder, batch id) set by the
Fetcher and the batch runner, rendered either as one JSON object per
line or as a compact text line.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, TextIO

from imgacquire.logging.context import LogContext, get_context

if TYPE_CHECKING:
    from imgacquire.config.settings import Settings

ROOT_LOGGER = "imgacquire"

# HTTP and imaging libraries log every request or decode at INFO/DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "PIL")


class _ContextFormatter(logging.Formatter):
    def _stamp(self, record: logging.LogRecord) -> datetime:
        return datetime.fromtimestamp(record.created, tz=timezone.utc)

    def _traceback(self, record: logging.LogRecord) -> str | None:
        if record.exc_info and record.exc_info[1] is not None:
            return self.formatException(record.exc_info)
        return None


class JsonFormatter(_ContextFormatter):
    """One JSON object per record, context under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self._stamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if context := get_context().as_dict():
            payload["context"] = context
        if data := getattr(record, "data", None):
            payload["data"] = data
        if (tb := self._traceback(record)) is not None:
            payload["exception"] = tb
        return json.dumps(payload, default=str)


class TextFormatter(_ContextFormatter):
    """``time [LEVEL] logger <batch> [key] - message``."""

    def format(self, record: logging.LogRecord) -> str:
        line = " ".join([
            self._stamp(record).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
            *_context_tags(get_context()),
            f"- {record.getMessage()}",
        ])
        tb = self._traceback(record)
        return f"{line}\n{tb}" if tb else line


def _context_tags(ctx: LogContext) -> list[str]:
    tags = []
    if ctx.batch_id:
        tags.append(f"<{ctx.batch_id}>")
    if ctx.acquisition_key:
        tags.append(f"[{ctx.acquisition_key}]")
    return tags


def get_logger(name: str) -> logging.Logger:
    """Child of the ``imgacquire`` logger; handlers come from setup_logging()."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 5,
    stream: TextIO | None = None,
) -> None:
    """(Re)configure the ``imgacquire`` logger tree.

    Console output goes to ``stream`` (stderr by default) so stdout stays
    reserved for command output. Calling again replaces earlier handlers.
    """
    formatter = JsonFormatter() if log_format == "json" else TextFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if log_file:
        from imgacquire.logging.handlers import create_rotating_handler

        handlers.append(
            create_rotating_handler(log_file, rotation=rotation, retention=retention)
        )

    root = logging.getLogger(ROOT_LOGGER)
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_from_settings(settings: Settings, verbose: bool = False) -> None:
    """Apply the ``LOG_*`` settings; ``verbose`` forces DEBUG."""
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
