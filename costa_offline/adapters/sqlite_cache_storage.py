"""
SQLite adapter for CacheStorage.

Use ":memory:" for tests, a file path for production.
"""

import sqlite3
from datetime import datetime, timezone

from costa_offline.domain.cache_storage import BlobStore, CacheStorage

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_stores (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL UNIQUE,
    created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS cache_entries (
    seq         INTEGER PRIMARY KEY AUTOINCREMENT,
    store       TEXT NOT NULL REFERENCES cache_stores(name) ON DELETE CASCADE,
    key         TEXT NOT NULL,
    blob        BLOB NOT NULL,
    stored_at   TEXT NOT NULL,
    UNIQUE (store, key)
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteBlobStore(BlobStore):

    def __init__(self, conn: sqlite3.Connection, name: str):
        self._conn = conn
        self.name = name

    async def get(self, key: str) -> bytes | None:
        row = self._conn.execute(
            "SELECT blob FROM cache_entries WHERE store = ? AND key = ?",
            (self.name, key),
        ).fetchone()
        if not row:
            return None
        return bytes(row["blob"])

    async def put(self, key: str, blob: bytes) -> None:
        # delete + insert gives the entry a fresh seq, i.e. newest position
        with self._conn:
            self._conn.execute(
                "DELETE FROM cache_entries WHERE store = ? AND key = ?",
                (self.name, key),
            )
            self._conn.execute(
                "INSERT INTO cache_entries (store, key, blob, stored_at)"
                " VALUES (?, ?, ?, ?)",
                (self.name, key, sqlite3.Binary(blob), _now()),
            )

    async def delete(self, key: str) -> bool:
        cur = self._conn.execute(
            "DELETE FROM cache_entries WHERE store = ? AND key = ?",
            (self.name, key),
        )
        self._conn.commit()
        return cur.rowcount > 0

    async def list_keys(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT key FROM cache_entries WHERE store = ? ORDER BY seq",
            (self.name,),
        ).fetchall()
        return [r["key"] for r in rows]

    async def key_count(self) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) AS n FROM cache_entries WHERE store = ?",
            (self.name,),
        ).fetchone()
        return row["n"]


class SqliteCacheStorage(CacheStorage):

    def __init__(self, db_path: str = "costa_offline.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(_SCHEMA)

    async def open(self, name: str) -> BlobStore:
        self._conn.execute(
            "INSERT OR IGNORE INTO cache_stores (name, created_at) VALUES (?, ?)",
            (name, _now()),
        )
        self._conn.commit()
        return SqliteBlobStore(self._conn, name)

    async def has(self, name: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM cache_stores WHERE name = ?", (name,)
        ).fetchone()
        return row is not None

    async def names(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT name FROM cache_stores ORDER BY id"
        ).fetchall()
        return [r["name"] for r in rows]

    async def delete(self, name: str) -> bool:
        with self._conn:
            self._conn.execute("DELETE FROM cache_entries WHERE store = ?", (name,))
            cur = self._conn.execute("DELETE FROM cache_stores WHERE name = ?", (name,))
        return cur.rowcount > 0
