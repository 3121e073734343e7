"""
SQLite-backed key-value store, the server-side stand-in for browser
localStorage. Values are opaque text blobs; JSON helpers sit on top.

Uses thread-local connections with WAL mode so the Streamlit script threads
of concurrent sessions can read while another one writes.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional

from pharmaai.exceptions import DataStoreError

logger = logging.getLogger(__name__)


class LocalStore:
    """
    Thread-safe ``key -> text`` store.

    Example:
        store = LocalStore(Path("data/pharmaai.db"))
        store.set_json("pharma_users_db", {"admin": {...}})
        users = store.get_json("pharma_users_db", {})
    """

    def __init__(self, path: Path):
        """
        Args:
            path: SQLite database file (created with its parent directory if needed)
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Get the thread-local SQLite connection."""
        if not hasattr(self._local, "conn"):
            self._local.conn = sqlite3.connect(
                str(self.path),
                check_same_thread=False,
                timeout=10.0,
            )
            self._local.conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn.execute("PRAGMA busy_timeout=10000")
            self._local.conn.execute("PRAGMA synchronous=NORMAL")
        return self._local.conn

    def _init_db(self) -> None:
        try:
            conn = self._get_conn()
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_items (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.commit()
        except sqlite3.Error as e:
            raise DataStoreError("Could not open store", operation="init", key=str(self.path)) from e

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored text for ``key`` or None."""
        try:
            row = self._get_conn().execute(
                "SELECT value FROM kv_items WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise DataStoreError("Read failed", operation="get_item", key=key) from e
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        try:
            conn = self._get_conn()
            conn.execute(
                "INSERT OR REPLACE INTO kv_items (key, value) VALUES (?, ?)",
                (key, str(value)),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise DataStoreError("Write failed", operation="set_item", key=key) from e

    def remove_item(self, key: str) -> None:
        try:
            conn = self._get_conn()
            conn.execute("DELETE FROM kv_items WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            raise DataStoreError("Delete failed", operation="remove_item", key=key) from e

    def clear(self) -> None:
        """Remove every key."""
        try:
            conn = self._get_conn()
            conn.execute("DELETE FROM kv_items")
            conn.commit()
        except sqlite3.Error as e:
            raise DataStoreError("Clear failed", operation="clear") from e

    def keys(self) -> list[str]:
        try:
            rows = self._get_conn().execute("SELECT key FROM kv_items ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise DataStoreError("Listing keys failed", operation="keys") from e
        return [row[0] for row in rows]

    def get_json(self, key: str, default: Any = None) -> Any:
        """
        Decode the JSON stored under ``key``.

        Missing keys and corrupt blobs both return ``default``; corruption is logged.
        """
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupt JSON in store", extra={"key": key})
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value, ensure_ascii=False))

    def close(self) -> None:
        """Close this thread's connection."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            del self._local.conn


_store: LocalStore | None = None


def get_store() -> LocalStore:
    """Get the process-wide store at ``settings.storage_path``."""
    global _store
    if _store is None:
        from pharmaai.config import settings

        _store = LocalStore(settings.storage_path)
    return _store


def reset_store() -> None:
    """Drop the global store (tests point it at a fresh path afterwards)."""
    global _store
    if _store is not None:
        _store.close()
    _store = None
