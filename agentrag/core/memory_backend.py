"""
Persistence substrates for the shared memory store.

InMemoryBackend keeps nothing beyond the process; SqliteBackend writes entries to
a lightweight SQLite file (default data/memory.db, relative to project root).
Table: memory_entries (key, type, payload, created_at, expires_at).
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Protocol

from agentrag.core.errors import StoreError
from agentrag.schemas.memory import MemoryEntry

logger = logging.getLogger(__name__)

# Project root
_ROOT = Path(__file__).resolve().parent.parent.parent
_TABLE = "memory_entries"


class MemoryBackend(Protocol):
    def load_all(self) -> list[MemoryEntry]: ...

    def save(self, entries: list[MemoryEntry]) -> None: ...

    def delete(self, keys: list[str]) -> None: ...

    def clear(self) -> None: ...


class InMemoryBackend:
    """Process-local backend; the store's own index is the only copy that matters."""

    def __init__(self) -> None:
        self._rows: dict[str, MemoryEntry] = {}
        self._lock = threading.Lock()

    def load_all(self) -> list[MemoryEntry]:
        with self._lock:
            return list(self._rows.values())

    def save(self, entries: list[MemoryEntry]) -> None:
        with self._lock:
            for entry in entries:
                self._rows[entry.key] = entry

    def delete(self, keys: list[str]) -> None:
        with self._lock:
            for key in keys:
                self._rows.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._rows.clear()


class SqliteBackend:
    """SQLite file backend. Each call opens its own connection, so it is safe across threads."""

    def __init__(self, db_path: str | Path) -> None:
        path = Path(db_path)
        self._db_path = path if path.is_absolute() else _ROOT / path
        self.init_db()

    def _get_conn(self) -> sqlite3.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(str(self._db_path))

    def init_db(self) -> None:
        """Create the entries table if it does not exist."""
        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {_TABLE} (
                        key TEXT PRIMARY KEY,
                        type TEXT NOT NULL,
                        payload TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        expires_at TEXT NOT NULL
                    )
                    """
                )
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Memory DB unavailable at {self._db_path}: {e}") from e

    def load_all(self) -> list[MemoryEntry]:
        try:
            conn = self._get_conn()
            try:
                rows = conn.execute(f"SELECT payload FROM {_TABLE} ORDER BY created_at ASC").fetchall()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Failed to load memory entries: {e}") from e
        entries = []
        for (payload,) in rows:
            try:
                entries.append(MemoryEntry.model_validate_json(payload))
            except ValueError as e:
                logger.warning("[memory_backend:load_all] skip unreadable row: %s", e)
        logger.info("[memory_backend:load_all] OUT entries=%d path=%s", len(entries), self._db_path)
        return entries

    def save(self, entries: list[MemoryEntry]) -> None:
        if not entries:
            return
        rows = [
            (e.key, e.type.value, e.model_dump_json(), e.created_at.isoformat(), e.expires_at.isoformat())
            for e in entries
        ]
        try:
            conn = self._get_conn()
            try:
                conn.executemany(
                    f"INSERT OR REPLACE INTO {_TABLE} (key, type, payload, created_at, expires_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    rows,
                )
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Failed to save memory entries: {e}") from e

    def delete(self, keys: list[str]) -> None:
        if not keys:
            return
        try:
            conn = self._get_conn()
            try:
                conn.executemany(f"DELETE FROM {_TABLE} WHERE key = ?", [(k,) for k in keys])
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Failed to delete memory entries: {e}") from e

    def clear(self) -> None:
        """Delete all rows."""
        try:
            conn = self._get_conn()
            try:
                conn.execute(f"DELETE FROM {_TABLE}")
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Failed to clear memory entries: {e}") from e
        logger.info("[memory_backend] cleared all entries")
