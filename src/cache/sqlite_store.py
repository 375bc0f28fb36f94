# src/cache/sqlite_store.py — v2
"""SQLite manifest store (MANIFEST_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency. Entries, current
attributions and the append-only ledger live in three tables and are
written in a single transaction.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from imgacquire.cache.base_cache_store import BaseManifestStore
from imgacquire.cache.models import AttributionRecord, CacheEntry
from imgacquire.core.errors import CorruptEntryError, WriteFailedError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS entries (
    key TEXT PRIMARY KEY,
    data TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS attributions (
    key TEXT PRIMARY KEY,
    data TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS ledger (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL,
    data TEXT NOT NULL,
    appended_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


class SqliteManifestStore(BaseManifestStore):
    """SQLite-backed manifest store."""

    def __init__(self, project_root: Path, db_path: Path | str) -> None:
        super().__init__(project_root)
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    def _read_table(self, table: str) -> dict[str, Any]:
        rows = self._conn.execute(f"SELECT key, data FROM {table} ORDER BY key").fetchall()  # noqa: S608
        result: dict[str, Any] = {}
        for key, data in rows:
            try:
                result[key] = json.loads(data)
            except json.JSONDecodeError:
                # Kept so lookup reports the key as corrupt
                result[key] = {"acquisition_key": key, "_corrupt": data}
        return result

    def _read_raw_entries(self) -> dict[str, Any]:
        return self._read_table("entries")

    def _read_raw_attributions(self) -> dict[str, Any]:
        return self._read_table("attributions")

    def ledger(self) -> list[AttributionRecord]:
        records: list[AttributionRecord] = []
        for (data,) in self._conn.execute("SELECT data FROM ledger ORDER BY id"):
            try:
                records.append(AttributionRecord.model_validate_json(data))
            except ValidationError as e:
                logger.warning("Skipping unreadable ledger row: %s", e)
        return records

    def _write(self, key: str, entry: CacheEntry, attribution: AttributionRecord) -> None:
        attribution_json = attribution.model_dump_json()
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO entries (key, data) VALUES (?, ?)",
                    (key, entry.model_dump_json()),
                )
                self._conn.execute(
                    "INSERT OR REPLACE INTO attributions (key, data) VALUES (?, ?)",
                    (key, attribution_json),
                )
                self._conn.execute(
                    "INSERT INTO ledger (key, data) VALUES (?, ?)",
                    (key, attribution_json),
                )
        except sqlite3.Error as e:
            raise WriteFailedError(f"Could not write manifest entry {key!r}: {e}", key=key) from e

    def _remove(self, key: str) -> bool:
        try:
            with self._conn:
                cursor = self._conn.execute("DELETE FROM entries WHERE key = ?", (key,))
                self._conn.execute("DELETE FROM attributions WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise CorruptEntryError(f"Could not remove {key!r}: {e}", key=key) from e
        return cursor.rowcount > 0

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
