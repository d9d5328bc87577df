"""
Local process runner for the costa-offline replay daemon.

Installs and activates the cache stores for the configured origin, then
probes the origin every POLL_INTERVAL seconds and replays queued
bookings/favorites each time connectivity comes back.

Usage:
    source .env && python scripts/run.py

Environment variables (all optional unless noted):
    COSTA_ORIGIN            - marketplace origin, e.g. https://costaverde.app (required)
    COSTA_CACHE_VERSION     - store version suffix (default: v1)
    CACHE_BACKEND           - "sqlite" or "memory" (default: sqlite)
    DB_PATH                 - SQLite database path (default: data/costa_offline.db)
    POLL_INTERVAL           - seconds between connectivity probes (default: 15)
    LOG_LEVEL               - logging level (default: INFO)
"""

import asyncio
import logging
import os
import sys

# Make sure project root is on sys.path when run as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from costa_offline.adapters.factory import create_cache_storage, create_write_queue
from costa_offline.adapters.polling_scheduler import PollingReplayScheduler
from costa_offline.adapters.requests_network import RequestsNetwork
from costa_offline.adapters.simulator_clients import BrowserClients
from costa_offline.config import CacheConfig
from costa_offline.lifecycle import InstallError
from costa_offline.notifications.console_display import ConsoleNotificationDisplay
from costa_offline.worker import CacheManager, ManagerConfig

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s  %(levelname)-7s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        print(f"ERROR: environment variable {name!r} is not set.", file=sys.stderr)
        sys.exit(1)
    return value


def build_manager() -> tuple[CacheManager, PollingReplayScheduler]:
    _require_env("COSTA_ORIGIN")
    settings = CacheConfig.from_env()
    poll_interval = float(os.environ.get("POLL_INTERVAL", "15"))

    network = RequestsNetwork(origin=settings.origin)
    scheduler = PollingReplayScheduler(probe=network.probe, interval=poll_interval)

    config = ManagerConfig(
        settings=settings,
        storage=create_cache_storage(),
        network=network,
        queue=create_write_queue(),
        clients=BrowserClients(origin=settings.origin),
        display=ConsoleNotificationDisplay(),
        scheduler=scheduler,
    )
    return CacheManager(config), scheduler


async def main() -> None:
    manager, scheduler = build_manager()

    try:
        await manager.start()
    except InstallError as exc:
        # replay still works without a pre-cached shell
        log.error("Install failed, continuing without app shell cache: %s", exc)

    log.info("Daemon started — active=%s", manager.is_active)
    await scheduler.run()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Daemon stopped.")
