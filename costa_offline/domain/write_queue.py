"""
WriteQueue port — bookings and favorites created while offline.

A queued write lives on the device that created it until the server
accepts it (then it is removed) or the user cancels it.  Its local_id is
never a server id: callers must not treat it as durable.

Lifecycle:
    pending ──claim()──▶ in_flight ──remove()──▶ (gone, synced)
       ▲                     │
       └─────release()───────┘
    pending ──cancel()──▶ cancelled ──purge_cancelled()──▶ (gone)

A crash between claim() and remove() leaves a write in_flight;
reset_in_flight() at startup puts it back to pending.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

LOCAL_ID_PREFIX = "offline_"

WriteStatus = Literal["pending", "in_flight", "cancelled"]
WriteFamily = Literal["bookings", "favorites"]


def new_local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def is_local_id(identifier: str) -> bool:
    return identifier.startswith(LOCAL_ID_PREFIX)


@dataclass
class QueuedWrite:
    user_id: str
    family: WriteFamily
    method: str              # "POST" or "DELETE"
    path: str                # e.g. "/api/bookings"
    payload: dict[str, Any]
    local_id: str = field(default_factory=new_local_id)
    idempotency_key: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: WriteStatus = "pending"
    attempts: int = 0
    next_attempt_at: datetime | None = None
    last_error: str | None = None


class WriteQueue(ABC):
    """
    Port: durable, per-user buffer of writes awaiting replay.

    claim() is the only way into in_flight and must be atomic, so that a
    single write is never replayed twice at the same time.
    """

    @abstractmethod
    async def enqueue(self, write: QueuedWrite) -> QueuedWrite:
        """Persist a new pending write and return it."""
        ...

    @abstractmethod
    async def get(self, local_id: str) -> QueuedWrite | None:
        ...

    @abstractmethod
    async def list_writes(
        self,
        user_id: str | None = None,
        family: str | None = None,
        status: str | None = None,
    ) -> list[QueuedWrite]:
        """Return matching writes, oldest first. None means 'any'."""
        ...

    @abstractmethod
    async def claim(self, local_id: str) -> bool:
        """pending → in_flight. False if the write is not pending."""
        ...

    @abstractmethod
    async def release(
        self,
        local_id: str,
        error: str,
        next_attempt_at: datetime | None = None,
    ) -> None:
        """in_flight → pending after a failed replay; bumps attempts."""
        ...

    @abstractmethod
    async def remove(self, local_id: str) -> bool:
        """Drop a write once the server accepted it."""
        ...

    @abstractmethod
    async def cancel(self, local_id: str) -> bool:
        """pending → cancelled. False if not pending (e.g. already in flight)."""
        ...

    @abstractmethod
    async def reset_in_flight(self) -> int:
        """Every in_flight write back to pending, attempts unchanged.

        For startup only: claims left behind by a process that died mid-send.
        Returns how many writes were reset.
        """
        ...

    @abstractmethod
    async def purge_cancelled(self, family: str | None = None) -> int:
        """Delete cancelled writes (of one family, or all). Returns how many."""
        ...
