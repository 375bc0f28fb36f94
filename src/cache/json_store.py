# src/cache/json_store.py — v2
"""JSON manifest store (default MANIFEST_BACKEND=json).

One manifest file with stable key ordering, so an incremental acquisition
changes only the lines of its own entry, plus an append-only JSON Lines
attribution ledger next to it.

Writes go to a temp file that replaces the manifest in one rename. The
ledger line is appended before the rename and truncated away again if the
rename fails, so entry and attribution land together or not at all.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from imgacquire.cache.base_cache_store import BaseManifestStore
from imgacquire.cache.models import AttributionRecord, CacheEntry
from imgacquire.core.errors import CorruptEntryError, WriteFailedError

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1


class JsonManifestStore(BaseManifestStore):
    """File-based manifest store using a single JSON document."""

    def __init__(
        self, project_root: Path, manifest_path: Path, ledger_path: Path,
    ) -> None:
        super().__init__(project_root)
        self._manifest_path = Path(manifest_path)
        self._ledger_path = Path(ledger_path)
        self._file_lock = threading.Lock()

    @property
    def manifest_path(self) -> Path:
        return self._manifest_path

    @property
    def ledger_path(self) -> Path:
        return self._ledger_path

    # --- Reading ---

    def _read_document(self) -> dict[str, Any]:
        if not self._manifest_path.exists():
            return {"version": MANIFEST_VERSION, "entries": {}, "attributions": {}}
        try:
            data = json.loads(self._manifest_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CorruptEntryError(
                f"Manifest {self._manifest_path} is unreadable: {e}"
            ) from e
        if not isinstance(data, dict) or not isinstance(data.get("entries", {}), dict):
            raise CorruptEntryError(f"Manifest {self._manifest_path} has an unexpected shape")
        data.setdefault("entries", {})
        data.setdefault("attributions", {})
        return data

    def _read_raw_entries(self) -> dict[str, Any]:
        return self._read_document()["entries"]

    def _read_raw_attributions(self) -> dict[str, Any]:
        return self._read_document()["attributions"]

    def ledger(self) -> list[AttributionRecord]:
        records: list[AttributionRecord] = []
        if not self._ledger_path.exists():
            return records
        with open(self._ledger_path, encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(AttributionRecord.model_validate_json(line))
                except ValidationError as e:
                    logger.warning(
                        "Skipping unreadable ledger line %d in %s: %s",
                        lineno, self._ledger_path, e,
                    )
        return records

    # --- Writing ---

    def _write(self, key: str, entry: CacheEntry, attribution: AttributionRecord) -> None:
        with self._file_lock:
            document = self._read_document()
            document["version"] = MANIFEST_VERSION
            document["entries"][key] = entry.model_dump(mode="json")
            document["attributions"][key] = attribution.model_dump(mode="json")

            ledger_line = json.dumps(attribution.model_dump(mode="json"), sort_keys=True)
            self._commit(document, ledger_line)

    def _remove(self, key: str) -> bool:
        with self._file_lock:
            document = self._read_document()
            if key not in document["entries"]:
                return False
            del document["entries"][key]
            document["attributions"].pop(key, None)
            self._commit(document, ledger_line=None)
            return True

    def _commit(self, document: dict[str, Any], ledger_line: str | None) -> None:
        self._manifest_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._manifest_path.with_name(f"{self._manifest_path.name}.tmp")
        payload = json.dumps(document, sort_keys=True, indent=2, ensure_ascii=False) + "\n"

        try:
            tmp_path.write_text(payload, encoding="utf-8")
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise WriteFailedError(f"Could not write manifest: {e}") from e

        ledger_size: int | None = None
        if ledger_line is not None:
            try:
                ledger_size = self._append_ledger(ledger_line)
            except OSError as e:
                tmp_path.unlink(missing_ok=True)
                raise WriteFailedError(f"Could not append attribution ledger: {e}") from e

        try:
            os.replace(tmp_path, self._manifest_path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            if ledger_size is not None:
                self._truncate_ledger(ledger_size)
            raise WriteFailedError(f"Could not replace manifest: {e}") from e

    def _append_ledger(self, line: str) -> int:
        """Append one line; return the ledger size before the append."""
        self._ledger_path.parent.mkdir(parents=True, exist_ok=True)
        size = self._ledger_path.stat().st_size if self._ledger_path.exists() else 0
        with open(self._ledger_path, "a", encoding="utf-8") as f:
            f.write(line + "\n")
        return size

    def _truncate_ledger(self, size: int) -> None:
        try:
            with open(self._ledger_path, "r+b") as f:
                f.truncate(size)
        except OSError:
            logger.exception("Could not roll back attribution ledger %s", self._ledger_path)
