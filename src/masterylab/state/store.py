"""SQLite-backed key-value store for MasteryLab session and telemetry records."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Optional


class KeyValueStore:
    """JSON values keyed by string, one row per key."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or (Path.home() / ".masterylab" / "state.db")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def get(self, key: str) -> Any:
        """Return the decoded value, or None when the key is absent.

        Raises ``ValueError`` if the stored text is not valid JSON.
        """
        with self._conn() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if not row:
            return None
        return json.loads(row[0])

    def put(self, key: str, value: Any) -> None:
        now = datetime.now().isoformat()
        with self._conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                (key, json.dumps(value), now),
            )

    def append(self, key: str, value: Any) -> None:
        """Append ``value`` to the JSON list stored under ``key``."""
        now = datetime.now().isoformat()
        with self._conn() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            items = json.loads(row[0]) if row else []
            if not isinstance(items, list):
                items = []
            items.append(value)
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                (key, json.dumps(items), now),
            )

    def delete(self, key: str) -> None:
        with self._conn() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def keys(self, prefix: str = "") -> list[str]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT key FROM kv WHERE key LIKE ? ORDER BY key",
                (prefix + "%",),
            ).fetchall()
        return [r[0] for r in rows]


def session_key(course_id: str) -> str:
    return f"{course_id}:session"


def telemetry_key(course_id: str) -> str:
    return f"{course_id}:telemetry"
