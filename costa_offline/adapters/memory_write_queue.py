"""
In-memory WriteQueue for testing — no database required.
"""

from dataclasses import replace
from datetime import datetime

from costa_offline.domain.write_queue import QueuedWrite, WriteQueue


class InMemoryWriteQueue(WriteQueue):

    def __init__(self):
        self._writes: dict[str, QueuedWrite] = {}

    async def enqueue(self, write: QueuedWrite) -> QueuedWrite:
        self._writes[write.local_id] = replace(write, payload=dict(write.payload))
        return replace(write)

    async def get(self, local_id: str) -> QueuedWrite | None:
        write = self._writes.get(local_id)
        return replace(write) if write else None

    async def list_writes(
        self,
        user_id: str | None = None,
        family: str | None = None,
        status: str | None = None,
    ) -> list[QueuedWrite]:
        return [
            replace(w) for w in self._writes.values()
            if (user_id is None or w.user_id == user_id)
            and (family is None or w.family == family)
            and (status is None or w.status == status)
        ]

    async def claim(self, local_id: str) -> bool:
        write = self._writes.get(local_id)
        if write is None or write.status != "pending":
            return False
        write.status = "in_flight"
        return True

    async def release(
        self,
        local_id: str,
        error: str,
        next_attempt_at: datetime | None = None,
    ) -> None:
        write = self._writes.get(local_id)
        if write is None or write.status != "in_flight":
            return
        write.status = "pending"
        write.attempts += 1
        write.last_error = error
        write.next_attempt_at = next_attempt_at

    async def remove(self, local_id: str) -> bool:
        return self._writes.pop(local_id, None) is not None

    async def cancel(self, local_id: str) -> bool:
        write = self._writes.get(local_id)
        if write is None or write.status != "pending":
            return False
        write.status = "cancelled"
        return True

    async def reset_in_flight(self) -> int:
        stuck = [w for w in self._writes.values() if w.status == "in_flight"]
        for write in stuck:
            write.status = "pending"
            write.next_attempt_at = None
        return len(stuck)

    async def purge_cancelled(self, family: str | None = None) -> int:
        doomed = [
            w.local_id for w in self._writes.values()
            if w.status == "cancelled" and (family is None or w.family == family)
        ]
        for local_id in doomed:
            del self._writes[local_id]
        return len(doomed)
