"""SQLite object store for captured page content records."""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path

SCHEMA = (
    "CREATE TABLE IF NOT EXISTS objects ("
    " guid PRIMARY KEY,"
    " timestamp INTEGER NOT NULL,"
    " pinned INTEGER NOT NULL DEFAULT 0,"
    " payload TEXT NOT NULL"
    ")",
    "CREATE INDEX IF NOT EXISTS objects_timestamp ON objects(timestamp)",
    "CREATE INDEX IF NOT EXISTS objects_pinned ON objects(pinned)",
    "CREATE TABLE IF NOT EXISTS key_generator ("
    " id INTEGER PRIMARY KEY CHECK (id = 1),"
    " current INTEGER NOT NULL"
    ")",
    "INSERT OR IGNORE INTO key_generator (id, current) VALUES (1, 0)",
)

Guid = int | str


class ObjectStore:
    """Content records keyed by guid, auto-numbered when the caller gives none.

    Generated guids are integers and strictly increasing; caller-supplied
    guids are stored with their own type, so ``"12"`` and ``12`` are
    different keys here, although the coordinator's ``body`` lookup and the
    search engine both treat them as one guid.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock, self._conn:
            for statement in SCHEMA:
                self._conn.execute(statement)

    @property
    def path(self) -> Path:
        return self._path

    def put(self, record: dict[str, object]) -> Guid:
        """Insert or replace ``record`` and return its resolved guid."""
        guid = record.get("guid")
        timestamp = record.get("timestamp", 0)
        pinned = 1 if record.get("pinned") else 0
        with self._lock, self._conn:
            if guid is None:
                guid = self._next_key()
            elif isinstance(guid, int) and not isinstance(guid, bool):
                self._conn.execute(
                    "UPDATE key_generator SET current = MAX(current, ?) WHERE id = 1", (guid,)
                )
            elif not isinstance(guid, str):
                raise TypeError(f"guid must be an int or str, not {type(guid).__name__}")
            stored = dict(record)
            stored["guid"] = guid
            self._conn.execute(
                "INSERT OR REPLACE INTO objects (guid, timestamp, pinned, payload)"
                " VALUES (?, ?, ?, ?)",
                (guid, timestamp, pinned, json.dumps(stored, sort_keys=True)),
            )
        return guid

    def get(self, guid: Guid) -> dict[str, object] | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT payload FROM objects WHERE guid = ?", (guid,)
            ).fetchone()
        if row is None:
            return None
        return _load_payload(row[0])

    def recent(self, limit: int = 50, since: int | None = None) -> list[dict[str, object]]:
        """Return records newest first, optionally only those at or after ``since``."""
        if limit < 1:
            return []
        with self._lock:
            rows = self._conn.execute(
                "SELECT payload FROM objects WHERE timestamp >= ?"
                " ORDER BY timestamp DESC LIMIT ?",
                (since if since is not None else 0, limit),
            ).fetchall()
        return [_load_payload(row[0]) for row in rows]

    def pinned(self) -> list[dict[str, object]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT payload FROM objects WHERE pinned = 1 ORDER BY timestamp DESC"
            ).fetchall()
        return [_load_payload(row[0]) for row in rows]

    def count(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM objects").fetchone()
        return int(row[0])

    def clear(self) -> None:
        """Delete every record and restart guid numbering."""
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM objects")
            self._conn.execute("UPDATE key_generator SET current = 0 WHERE id = 1")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _next_key(self) -> int:
        self._conn.execute("UPDATE key_generator SET current = current + 1 WHERE id = 1")
        row = self._conn.execute("SELECT current FROM key_generator WHERE id = 1").fetchone()
        return int(row[0])


def _load_payload(raw: str) -> dict[str, object]:
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError("stored content record is not an object")
    return payload
