"""Key-value backends: SQLite on disk and a plain in-memory dict."""

import sqlite3
import threading
import time
from pathlib import Path

from loguru import logger

from linkshelf.core.storage.schema import migrate_schema
from linkshelf.errors import StorageUnavailableError


class SqliteKvStore:
    """Key-value table in a single SQLite file.

    One connection is shared across request threads and serialized with a lock.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            migrate_schema(self.conn)
        except sqlite3.Error as e:
            msg = f"Cannot open key-value database {self.db_path!r}: {e}"
            raise StorageUnavailableError(msg) from e
        logger.debug("Opened key-value store at {}", self.db_path)

    def get(self, key: str) -> bytes | None:
        try:
            with self._lock:
                row = self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageUnavailableError(str(e)) from e
        return bytes(row[0]) if row else None

    def put(self, key: str, value: bytes) -> None:
        try:
            with self._lock:
                self.conn.execute(
                    "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                    (key, value, int(time.time() * 1000)),
                )
                self.conn.commit()
        except sqlite3.Error as e:
            raise StorageUnavailableError(str(e)) from e

    def delete(self, key: str) -> None:
        try:
            with self._lock:
                self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                self.conn.commit()
        except sqlite3.Error as e:
            raise StorageUnavailableError(str(e)) from e

    def list_keys(self, prefix: str = "") -> list[str]:
        # substr avoids LIKE wildcards in user-controlled prefixes.
        try:
            with self._lock:
                rows = self.conn.execute(
                    "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                    (len(prefix), prefix),
                ).fetchall()
        except sqlite3.Error as e:
            raise StorageUnavailableError(str(e)) from e
        return [r[0] for r in rows]

    def close(self) -> None:
        with self._lock:
            self.conn.close()


class MemoryKvStore:
    """Dict-backed store for tests and throwaway servers."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self.data: dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self.data.get(key)

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self.data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self.data.pop(key, None)

    def list_keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(k for k in self.data if k.startswith(prefix))
