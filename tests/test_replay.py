"""
Replay coordinator tests: claim gating, backoff, idempotent re-send and
api-store pruning.  Simulators and a hand-driven clock only.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from costa_offline.adapters.memory_cache_storage import InMemoryCacheStorage
from costa_offline.adapters.memory_write_queue import InMemoryWriteQueue
from costa_offline.adapters.ports import NetworkGateway
from costa_offline.adapters.simulator_network import SimulatorNetwork
from costa_offline.config import CacheConfig
from costa_offline.domain.write_queue import QueuedWrite
from costa_offline.replay import ReplayCoordinator, matches_route

ORIGIN = "http://localhost:3000"
T0 = datetime(2024, 5, 20, 12, 0, tzinfo=timezone.utc)


class _Clock:

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _booking(user_id="u1", boat_id="b1") -> QueuedWrite:
    return QueuedWrite(
        user_id=user_id, family="bookings", method="POST", path="/api/bookings",
        payload={
            "boat_id": boat_id, "start_date": "2024-06-01",
            "end_date": "2024-06-03", "userId": user_id,
        },
    )


def _favorite(boat_id="b1", method="POST") -> QueuedWrite:
    path = "/api/favorites" if method == "POST" else f"/api/favorites/{boat_id}"
    payload = {"boat_id": boat_id, "userId": "u1"} if method == "POST" else {"userId": "u1"}
    return QueuedWrite(user_id="u1", family="favorites", method=method, path=path, payload=payload)


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def queue():
    return InMemoryWriteQueue()


@pytest.fixture
def network():
    return SimulatorNetwork(ORIGIN)


@pytest.fixture
def storage():
    return InMemoryCacheStorage()


@pytest.fixture
def coordinator(queue, network, storage, clock):
    return ReplayCoordinator(CacheConfig(origin=ORIGIN), queue, network, storage, clock=clock)


# ---------------------------------------------------------------------------
# Route matching
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("path,prefix,expected", [
    ("/api/bookings", "/api/bookings", True),
    ("/api/bookings/42/cancel", "/api/bookings", True),
    ("/api/bookingsummary", "/api/bookings", False),
    ("/api/favorites/b1", "/api/favorites/", True),
    ("/v2/api/bookings", "/api/bookings", False),
])
def test_matches_route(path, prefix, expected):
    assert matches_route(path, prefix) is expected


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_replay_sends_and_removes(coordinator, queue, network):
    write = await queue.enqueue(_booking())

    report = await coordinator.replay_tag("sync-bookings")

    assert report.synced == {write.local_id: "bk_1"}
    assert await queue.get(write.local_id) is None
    assert len(network.bookings) == 1
    sent = network.calls_to("/api/bookings", "POST")[0]
    assert sent.headers["Idempotency-Key"] == write.idempotency_key
    assert sent.headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_replay_only_targets_tag_family(coordinator, queue, network):
    booking = await queue.enqueue(_booking())
    favorite = await queue.enqueue(_favorite())

    report = await coordinator.replay_tag("sync-favorites")

    assert list(report.synced) == [favorite.local_id]
    assert (await queue.get(booking.local_id)).status == "pending"
    assert network.bookings == []


@pytest.mark.asyncio
async def test_replay_all_families(coordinator, queue, network):
    await queue.enqueue(_booking())
    await queue.enqueue(_favorite("b2"))
    await queue.enqueue(_favorite("b3", method="DELETE"))

    report = await coordinator.replay()

    assert len(report.synced) == 3
    assert await queue.list_writes() == []


@pytest.mark.asyncio
async def test_unknown_tag_is_a_no_op(coordinator, queue, network):
    await queue.enqueue(_booking())

    report = await coordinator.replay_tag("sync-payments")

    assert report.synced == {} and report.failed == [] and report.skipped == []
    assert network.calls == []


@pytest.mark.asyncio
async def test_writes_outside_the_route_family_are_left_alone(coordinator, queue, network):
    stray = await queue.enqueue(QueuedWrite(
        user_id="u1", family="bookings", method="POST",
        path="/api/bookingsummary", payload={},
    ))
    wrong_method = await queue.enqueue(QueuedWrite(
        user_id="u1", family="bookings", method="DELETE",
        path="/api/bookings/bk_9", payload={},
    ))

    await coordinator.replay_tag("sync-bookings")

    assert network.calls == []
    assert (await queue.get(stray.local_id)).status == "pending"
    assert (await queue.get(wrong_method.local_id)).status == "pending"


@pytest.mark.asyncio
async def test_cancelled_writes_are_not_replayed(coordinator, queue, network):
    write = await queue.enqueue(_booking())
    await queue.cancel(write.local_id)

    await coordinator.replay_tag("sync-bookings")

    assert network.calls == []


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_concurrent_replays_send_each_write_once(coordinator, queue, network):
    write = await queue.enqueue(_booking())

    first, second = await asyncio.gather(
        coordinator.replay_tag("sync-bookings"),
        coordinator.replay_tag("sync-bookings"),
    )

    synced = {**first.synced, **second.synced}
    assert list(synced) == [write.local_id]
    assert len(network.calls_to("/api/bookings", "POST")) == 1
    assert len(network.bookings) == 1


@pytest.mark.asyncio
async def test_in_flight_write_is_not_replayed(coordinator, queue, network):
    write = await queue.enqueue(_booking())
    await queue.claim(write.local_id)

    report = await coordinator.replay_tag("sync-bookings")

    assert report.synced == {}
    assert network.calls == []


# ---------------------------------------------------------------------------
# Failures and backoff
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("attempts,seconds", [(1, 5), (2, 10), (3, 20), (6, 160), (7, 300), (20, 300)])
def test_backoff_doubles_up_to_ceiling(coordinator, attempts, seconds):
    assert coordinator.backoff(attempts) == timedelta(seconds=seconds)


@pytest.mark.asyncio
async def test_network_failure_keeps_write_pending(coordinator, queue, network):
    write = await queue.enqueue(_booking())
    network.set_online(False)

    report = await coordinator.replay_tag("sync-bookings")

    assert report.failed == [write.local_id]
    stored = await queue.get(write.local_id)
    assert stored.status == "pending"
    assert stored.attempts == 1
    assert stored.next_attempt_at == T0 + timedelta(seconds=5)
    assert stored.last_error.startswith("network:")


@pytest.mark.asyncio
async def test_http_error_keeps_write_pending(coordinator, queue):
    write = await queue.enqueue(QueuedWrite(
        user_id="u1", family="bookings", method="POST", path="/api/bookings",
        payload={"boat_id": "b1"},
    ))

    report = await coordinator.replay_tag("sync-bookings")

    assert report.failed == [write.local_id]
    stored = await queue.get(write.local_id)
    assert stored.status == "pending"
    assert stored.last_error == "http 400"


@pytest.mark.asyncio
async def test_backoff_defers_retry_until_due(coordinator, queue, network, clock):
    write = await queue.enqueue(_booking())
    network.set_online(False)
    await coordinator.replay_tag("sync-bookings")
    network.set_online(True)

    early = await coordinator.replay_tag("sync-bookings")
    assert early.skipped == [write.local_id]
    assert network.bookings == []

    clock.advance(5)
    due = await coordinator.replay_tag("sync-bookings")
    assert list(due.synced) == [write.local_id]


@pytest.mark.asyncio
async def test_repeated_failures_never_drop_the_write(coordinator, queue, network, clock):
    write = await queue.enqueue(_booking())
    network.set_online(False)

    for _ in range(12):
        await coordinator.replay_tag("sync-bookings")
        clock.advance(301)

    stored = await queue.get(write.local_id)
    assert stored.status == "pending"
    assert stored.attempts == 12


@pytest.mark.asyncio
async def test_lost_response_replay_does_not_duplicate(coordinator, queue, network, clock):
    write = await queue.enqueue(_booking())
    network.lose_next_responses(1)

    first = await coordinator.replay_tag("sync-bookings")
    assert first.failed == [write.local_id]
    assert len(network.bookings) == 1

    clock.advance(5)
    second = await coordinator.replay_tag("sync-bookings")

    assert second.synced == {write.local_id: "bk_1"}
    assert len(network.bookings) == 1
    assert await queue.get(write.local_id) is None


# ---------------------------------------------------------------------------
# Cache pruning
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_successful_replay_prunes_family_listings(coordinator, queue, storage):
    store = await storage.open("api-v1")
    await store.put(f"GET {ORIGIN}/api/bookings?userId=u1", b"stale")
    await store.put(f"GET {ORIGIN}/api/boats", b"boats")
    await store.put(f"GET {ORIGIN}/api/favorites?userId=u1", b"favs")
    await queue.enqueue(_booking())

    await coordinator.replay_tag("sync-bookings")

    assert await store.list_keys() == [
        f"GET {ORIGIN}/api/boats",
        f"GET {ORIGIN}/api/favorites?userId=u1",
    ]


@pytest.mark.asyncio
async def test_failed_replay_leaves_cache_alone(coordinator, queue, network, storage):
    store = await storage.open("api-v1")
    await store.put(f"GET {ORIGIN}/api/bookings?userId=u1", b"cached")
    await queue.enqueue(_booking())
    network.set_online(False)

    await coordinator.replay_tag("sync-bookings")

    assert await store.key_count() == 1


# ---------------------------------------------------------------------------
# Interruption and cleanup
# ---------------------------------------------------------------------------


class _HangingNetwork(NetworkGateway):
    """Accepts the request and never answers."""

    def __init__(self):
        self.started = asyncio.Event()

    async def fetch(self, request):
        self.started.set()
        await asyncio.Event().wait()


@pytest.mark.asyncio
async def test_cancelled_replay_returns_write_to_pending(coordinator, queue, storage, clock, network):
    write = await queue.enqueue(_booking())
    hanging = _HangingNetwork()
    stalled = ReplayCoordinator(CacheConfig(origin=ORIGIN), queue, hanging, storage, clock=clock)

    task = asyncio.create_task(stalled.replay_tag("sync-bookings"))
    await hanging.started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    stored = await queue.get(write.local_id)
    assert stored.status == "pending"
    assert stored.last_error == "interrupted"

    report = await coordinator.replay_tag("sync-bookings")
    assert list(report.synced) == [write.local_id]
    assert len(network.bookings) == 1


@pytest.mark.asyncio
async def test_recover_interrupted_resets_orphaned_claims(coordinator, queue, network):
    write = await queue.enqueue(_booking())
    await queue.claim(write.local_id)

    assert await coordinator.recover_interrupted() == 1

    report = await coordinator.replay_tag("sync-bookings")
    assert list(report.synced) == [write.local_id]


@pytest.mark.asyncio
async def test_replay_purges_cancelled_writes_of_its_family(coordinator, queue):
    booking = await queue.enqueue(_booking())
    favorite = await queue.enqueue(_favorite())
    await queue.cancel(booking.local_id)
    await queue.cancel(favorite.local_id)

    await coordinator.replay_tag("sync-bookings")

    assert await queue.get(booking.local_id) is None
    assert (await queue.get(favorite.local_id)).status == "cancelled"
