"""
Replay of queued writes once connectivity returns.

Triggered by a sync tag ("sync-bookings", "sync-favorites") or by a
reconnect.  For each pending write of the targeted families:

1. claim it (pending → in_flight); a write already in flight is skipped,
   so the same write is never sent twice at once;
2. re-send it with its Idempotency-Key so a replay after a lost response
   does not create a duplicate booking/favorite on the server;
3. on 2xx remove it from the queue and drop the matching api-store entry;
   otherwise put it back to pending with exponential backoff.

Cancelled writes of the targeted families are purged first.

Distinct writes are replayed concurrently; no ordering between them.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from costa_offline.adapters.ports import NetworkGateway
from costa_offline.config import API, CacheConfig
from costa_offline.domain.cache_storage import CacheStorage
from costa_offline.domain.http import NetworkError, Request
from costa_offline.domain.write_queue import QueuedWrite, WriteQueue

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def matches_route(path: str, prefix: str) -> bool:
    """Path-prefix match on a segment boundary: /api/bookings matches
    /api/bookings and /api/bookings/42/cancel but not /api/bookingsummary."""
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


@dataclass
class ReplayReport:
    synced: dict[str, str | None] = field(default_factory=dict)   # local_id → server id
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def merge(self, other: "ReplayReport") -> None:
        self.synced.update(other.synced)
        self.failed.extend(other.failed)
        self.skipped.extend(other.skipped)


class ReplayCoordinator:

    def __init__(
        self,
        config: CacheConfig,
        queue: WriteQueue,
        network: NetworkGateway,
        storage: CacheStorage,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._config = config
        self._queue = queue
        self._network = network
        self._storage = storage
        self._clock = clock

    def family_for_tag(self, tag: str) -> str | None:
        target = self._config.sync_tags.get(tag)
        return target[0] if target else None

    async def replay_tag(self, tag: str) -> ReplayReport:
        family = self.family_for_tag(tag)
        if family is None:
            log.warning("unknown sync tag %r, nothing to replay", tag)
            return ReplayReport()
        return await self.replay(family)

    async def replay(self, family: str | None = None) -> ReplayReport:
        """Replay every due pending write of `family` (all families if None)."""
        report = ReplayReport()
        now = self._clock()

        purged = await self._queue.purge_cancelled(family)
        if purged:
            log.info("purged %d cancelled write(s) family=%s", purged, family or "*")

        due: list[QueuedWrite] = []
        for write in await self._queue.list_writes(status="pending"):
            if not self._is_replayable(write, family):
                continue
            if write.next_attempt_at and write.next_attempt_at > now:
                report.skipped.append(write.local_id)
                continue
            due.append(write)

        if not due:
            return report

        log.info("replaying %d queued write(s) family=%s", len(due), family or "*")
        outcomes = await asyncio.gather(*(self._replay_one(w) for w in due))

        for write, (outcome, server_id) in zip(due, outcomes):
            if outcome == "synced":
                report.synced[write.local_id] = server_id
            elif outcome == "failed":
                report.failed.append(write.local_id)
            else:
                report.skipped.append(write.local_id)

        log.info(
            "replay done: synced=%d failed=%d skipped=%d",
            len(report.synced), len(report.failed), len(report.skipped),
        )
        return report

    def _is_replayable(self, write: QueuedWrite, family: str | None) -> bool:
        for fam, methods, prefix in self._config.sync_tags.values():
            if family is not None and fam != family:
                continue
            if (
                write.family == fam
                and write.method.upper() in methods
                and matches_route(write.path, prefix)
            ):
                return True
        return False

    async def _replay_one(self, write: QueuedWrite) -> tuple[str, str | None]:
        if not await self._queue.claim(write.local_id):
            return "skipped", None

        try:
            request = self.build_request(write)
            response = await self._network.fetch(request)
        except NetworkError as exc:
            await self._retry_later(write, f"network: {exc}")
            return "failed", None
        except Exception as exc:
            await self._retry_later(write, f"unexpected: {exc}")
            return "failed", None
        except BaseException:
            # cancelled or torn down mid-send: hand the claim back
            await self._queue.release(write.local_id, "interrupted")
            raise

        if not response.ok:
            await self._retry_later(write, f"http {response.status}")
            return "failed", None

        await self._queue.remove(write.local_id)
        await self._prune_api_cache(write, request)

        server_id = _server_id(response.body)
        log.info("synced %s %s local=%s → server=%s", write.method, write.path, write.local_id, server_id)
        return "synced", server_id

    async def recover_interrupted(self) -> int:
        """Return writes orphaned in_flight by a previous process to pending."""
        count = await self._queue.reset_in_flight()
        if count:
            log.warning("recovered %d write(s) left in flight", count)
        return count

    def build_request(self, write: QueuedWrite) -> Request:
        return Request(
            url=self._config.absolute_url(write.path),
            method=write.method.upper(),
            headers={
                "Content-Type": "application/json",
                "Idempotency-Key": write.idempotency_key,
            },
            body=json.dumps(write.payload).encode("utf-8"),
        )

    def backoff(self, attempts: int) -> timedelta:
        """Delay before the next try, given how many attempts already failed."""
        seconds = self._config.retry_base_seconds * (2 ** max(attempts - 1, 0))
        return timedelta(seconds=min(seconds, self._config.retry_max_seconds))

    async def _retry_later(self, write: QueuedWrite, error: str) -> None:
        next_at = self._clock() + self.backoff(write.attempts + 1)
        log.warning(
            "replay failed local=%s attempt=%d: %s — retry after %s",
            write.local_id, write.attempts + 1, error, next_at.isoformat(),
        )
        await self._queue.release(write.local_id, error, next_at)

    async def _prune_api_cache(self, write: QueuedWrite, request: Request) -> None:
        """Drop the entry for this exact request and every cached GET of the
        same route family, which still reflects the pre-sync state."""
        name = self._config.store_name(API)
        prefixes = [
            prefix for fam, _, prefix in self._config.sync_tags.values()
            if fam == write.family
        ]
        try:
            if not await self._storage.has(name):
                return
            store = await self._storage.open(name)
            await store.delete(request.cache_key)
            for key in await store.list_keys():
                method, _, url = key.partition(" ")
                if method == "GET" and any(
                    matches_route(Request(url=url).path, p) for p in prefixes
                ):
                    await store.delete(key)
        except Exception as exc:
            log.error("could not prune store=%s after %s: %s", name, write.local_id, exc)


def _server_id(body: bytes) -> str | None:
    try:
        data = json.loads(body) if body else None
    except ValueError:
        return None
    if isinstance(data, dict) and data.get("id") is not None:
        return str(data["id"])
    return None
