"""
End-to-end: a user books offline, connectivity returns, the booking
reaches the server exactly once.  Everything goes through CacheManager.
"""

import pytest
import pytest_asyncio

from costa_offline.adapters.manual_scheduler import ManualReplayScheduler
from costa_offline.adapters.memory_cache_storage import InMemoryCacheStorage
from costa_offline.adapters.memory_write_queue import InMemoryWriteQueue
from costa_offline.adapters.simulator_clients import InMemoryClients
from costa_offline.adapters.simulator_network import SimulatorNetwork
from costa_offline.config import DEFAULT_STATIC_ASSETS, CacheConfig
from costa_offline.domain.http import Request
from costa_offline.domain.write_queue import is_local_id
from costa_offline.notifications.console_display import ConsoleNotificationDisplay
from costa_offline.offline_writes import OfflineBookings, OfflineFavorites
from costa_offline.worker import CacheManager, ManagerConfig

ORIGIN = "http://localhost:3000"

BOOKING = {"boat_id": "b1", "start_date": "2024-06-01", "end_date": "2024-06-03", "total_price": 1200}


@pytest.fixture
def network():
    sim = SimulatorNetwork(ORIGIN)
    sim.inject_app_shell(DEFAULT_STATIC_ASSETS)
    sim.inject_boat({"id": "b1", "name": "Veleiro Azul"})
    return sim


@pytest.fixture
def scheduler():
    return ManualReplayScheduler(online=True)


@pytest.fixture
def cfg(network, scheduler):
    return ManagerConfig(
        settings=CacheConfig(origin=ORIGIN),
        storage=InMemoryCacheStorage(),
        network=network,
        queue=InMemoryWriteQueue(),
        clients=InMemoryClients(),
        display=ConsoleNotificationDisplay(),
        scheduler=scheduler,
    )


@pytest_asyncio.fixture
async def manager(cfg):
    manager = CacheManager(cfg)
    await manager.start()
    return manager


@pytest.fixture
def bookings(manager, cfg, scheduler):
    return OfflineBookings("u1", cfg.queue, manager, scheduler, cfg.settings)


@pytest.mark.asyncio
async def test_offline_booking_synced_once(manager, bookings, cfg, network, scheduler):
    await scheduler.set_online(False)
    network.set_online(False)

    local = await bookings.create_booking(BOOKING)

    assert is_local_id(local["id"])
    [write] = await cfg.queue.list_writes(status="pending")
    assert (write.method, write.path) == ("POST", "/api/bookings")

    network.set_online(True)
    await scheduler.trigger("sync-bookings")

    assert await cfg.queue.list_writes() == []
    assert len(network.bookings) == 1
    assert network.bookings[0]["boat_id"] == "b1"
    assert network.bookings[0]["start_date"] == "2024-06-01"
    assert network.bookings[0]["end_date"] == "2024-06-03"

    await scheduler.set_online(True)
    listed = await bookings.list_bookings()
    assert [b["id"] for b in listed] == [network.bookings[0]["id"]]


@pytest.mark.asyncio
async def test_unreachable_server_behind_cache_layer_queues_and_reconnect_syncs(
    manager, bookings, cfg, network, scheduler,
):
    # the device believes it is online but every request fails
    network.set_online(False)

    local = await bookings.create_booking(BOOKING)
    assert is_local_id(local["id"])

    await scheduler.set_online(False)
    network.set_online(True)
    [report] = await scheduler.set_online(True)

    assert list(report.synced) == [local["id"]]
    assert len(network.bookings) == 1


@pytest.mark.asyncio
async def test_stale_booking_listing_dropped_after_sync(manager, bookings, cfg, network, scheduler):
    listing = Request(url=f"{ORIGIN}/api/bookings?userId=u1")
    await manager.fetch(listing)
    assert await cfg.storage.match(listing.cache_key) is not None

    network.set_online(False)
    await bookings.create_booking(BOOKING)
    network.set_online(True)
    await scheduler.trigger("sync-bookings")

    assert await cfg.storage.match(listing.cache_key) is None
    fresh = await manager.fetch(listing)
    assert [b["boat_id"] for b in fresh.json()] == ["b1"]


@pytest.mark.asyncio
async def test_boat_list_readable_offline_after_first_visit(manager, network):
    await manager.fetch(Request(url=f"{ORIGIN}/api/boats"))
    network.set_online(False)

    response = await manager.fetch(Request(url=f"{ORIGIN}/api/boats"))

    assert response.json() == [{"id": "b1", "name": "Veleiro Azul"}]


@pytest.mark.asyncio
async def test_offline_favorite_toggle_never_reaches_server(manager, cfg, network, scheduler):
    favorites = OfflineFavorites("u1", cfg.queue, manager, scheduler, cfg.settings)
    await scheduler.set_online(False)

    await favorites.add("b1")
    await favorites.remove("b1")
    await scheduler.set_online(True)

    assert network.favorites == []
    assert network.calls_to("/api/favorites") == []
    assert await cfg.queue.list_writes() == []
