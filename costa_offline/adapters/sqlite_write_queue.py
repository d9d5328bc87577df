"""
SQLite adapter for WriteQueue.

Use ":memory:" for tests, a file path for production.
"""

import json
import sqlite3
from datetime import datetime

from costa_offline.domain.write_queue import QueuedWrite, WriteQueue

_SCHEMA = """
CREATE TABLE IF NOT EXISTS queued_writes (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    local_id        TEXT NOT NULL UNIQUE,
    user_id         TEXT NOT NULL,
    family          TEXT NOT NULL,
    method          TEXT NOT NULL,
    path            TEXT NOT NULL,
    payload         TEXT NOT NULL,
    idempotency_key TEXT NOT NULL UNIQUE,
    created_at      TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'pending',
    attempts        INTEGER NOT NULL DEFAULT 0,
    next_attempt_at TEXT,
    last_error      TEXT
);

CREATE INDEX IF NOT EXISTS idx_queued_writes_user ON queued_writes (user_id, family);
"""


def _parse_dt(s: str) -> datetime:
    return datetime.fromisoformat(s)


class SqliteWriteQueue(WriteQueue):

    def __init__(self, db_path: str = "costa_offline.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)

    async def enqueue(self, write: QueuedWrite) -> QueuedWrite:
        self._conn.execute(
            "INSERT INTO queued_writes"
            " (local_id, user_id, family, method, path, payload, idempotency_key,"
            "  created_at, status, attempts, next_attempt_at, last_error)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (write.local_id, write.user_id, write.family, write.method, write.path,
             json.dumps(write.payload), write.idempotency_key,
             write.created_at.isoformat(), write.status, write.attempts,
             write.next_attempt_at.isoformat() if write.next_attempt_at else None,
             write.last_error),
        )
        self._conn.commit()
        return write

    async def get(self, local_id: str) -> QueuedWrite | None:
        row = self._conn.execute(
            "SELECT * FROM queued_writes WHERE local_id = ?", (local_id,)
        ).fetchone()
        if not row:
            return None
        return self._row_to_write(row)

    async def list_writes(
        self,
        user_id: str | None = None,
        family: str | None = None,
        status: str | None = None,
    ) -> list[QueuedWrite]:
        clauses, params = [], []
        for column, value in (("user_id", user_id), ("family", family), ("status", status)):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(
            f"SELECT * FROM queued_writes{where} ORDER BY id", params
        ).fetchall()
        return [self._row_to_write(r) for r in rows]

    async def claim(self, local_id: str) -> bool:
        # single conditional UPDATE: atomic pending → in_flight
        cur = self._conn.execute(
            "UPDATE queued_writes SET status = 'in_flight'"
            " WHERE local_id = ? AND status = 'pending'",
            (local_id,),
        )
        self._conn.commit()
        return cur.rowcount == 1

    async def release(
        self,
        local_id: str,
        error: str,
        next_attempt_at: datetime | None = None,
    ) -> None:
        self._conn.execute(
            "UPDATE queued_writes SET status = 'pending', attempts = attempts + 1,"
            " last_error = ?, next_attempt_at = ?"
            " WHERE local_id = ? AND status = 'in_flight'",
            (error, next_attempt_at.isoformat() if next_attempt_at else None, local_id),
        )
        self._conn.commit()

    async def remove(self, local_id: str) -> bool:
        cur = self._conn.execute(
            "DELETE FROM queued_writes WHERE local_id = ?", (local_id,)
        )
        self._conn.commit()
        return cur.rowcount > 0

    async def cancel(self, local_id: str) -> bool:
        cur = self._conn.execute(
            "UPDATE queued_writes SET status = 'cancelled'"
            " WHERE local_id = ? AND status = 'pending'",
            (local_id,),
        )
        self._conn.commit()
        return cur.rowcount == 1

    async def reset_in_flight(self) -> int:
        cur = self._conn.execute(
            "UPDATE queued_writes SET status = 'pending', next_attempt_at = NULL"
            " WHERE status = 'in_flight'"
        )
        self._conn.commit()
        return cur.rowcount

    async def purge_cancelled(self, family: str | None = None) -> int:
        if family is None:
            cur = self._conn.execute("DELETE FROM queued_writes WHERE status = 'cancelled'")
        else:
            cur = self._conn.execute(
                "DELETE FROM queued_writes WHERE status = 'cancelled' AND family = ?",
                (family,),
            )
        self._conn.commit()
        return cur.rowcount

    @staticmethod
    def _row_to_write(row) -> QueuedWrite:
        return QueuedWrite(
            local_id=row["local_id"],
            user_id=row["user_id"],
            family=row["family"],
            method=row["method"],
            path=row["path"],
            payload=json.loads(row["payload"]),
            idempotency_key=row["idempotency_key"],
            created_at=_parse_dt(row["created_at"]),
            status=row["status"],
            attempts=row["attempts"],
            next_attempt_at=_parse_dt(row["next_attempt_at"]) if row["next_attempt_at"] else None,
            last_error=row["last_error"],
        )
