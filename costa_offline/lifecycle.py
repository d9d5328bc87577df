"""
Store lifecycle: install (open stores, pre-cache the app shell) and
activate (purge stores from previous versions, claim clients).

    installing ──▶ installed ──▶ activating ──▶ active ──▶ superseded
        │
        └──(pre-cache failed)──▶ redundant

skip_waiting=True means a freshly installed version activates right away
instead of waiting for the previous one to release its clients.
"""

import asyncio
import enum
import logging

from costa_offline.adapters.ports import Clients, NetworkGateway
from costa_offline.config import CATEGORIES, STATIC, CacheConfig
from costa_offline.domain.cache_storage import CacheStorage
from costa_offline.domain.http import NetworkError, Request

log = logging.getLogger(__name__)


class LifecycleState(enum.Enum):
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVE = "active"
    SUPERSEDED = "superseded"
    REDUNDANT = "redundant"


class LifecycleError(Exception):
    """A lifecycle step was requested from the wrong state."""


class InstallError(Exception):
    """The app shell could not be pre-cached."""


class StoreLifecycle:

    def __init__(
        self,
        config: CacheConfig,
        storage: CacheStorage,
        network: NetworkGateway,
        clients: Clients,
        skip_waiting: bool = True,
    ):
        self._config = config
        self._storage = storage
        self._network = network
        self._clients = clients
        self.skip_waiting = skip_waiting
        self.state: LifecycleState | None = None

    async def install(self) -> None:
        if self.state is not None:
            raise LifecycleError(f"cannot install from state {self.state.value}")
        self.state = LifecycleState.INSTALLING
        log.info("install version=%s", self._config.version)

        try:
            for category in CATEGORIES:
                await self._storage.open(self._config.store_name(category))
            await self._precache_app_shell()
        except Exception:
            self.state = LifecycleState.REDUNDANT
            raise

        self.state = LifecycleState.INSTALLED

    async def _precache_app_shell(self) -> None:
        # all-or-nothing: fetch every asset before writing any of them
        requests = [
            Request(url=self._config.absolute_url(path))
            for path in self._config.static_assets
        ]
        try:
            responses = await asyncio.gather(*(self._network.fetch(r) for r in requests))
        except NetworkError as exc:
            raise InstallError(f"app shell fetch failed: {exc}") from exc

        failed = [r.path for r, resp in zip(requests, responses) if not resp.ok]
        if failed:
            raise InstallError(f"app shell fetch returned non-2xx for {failed}")

        store = await self._storage.open(self._config.store_name(STATIC))
        for request, response in zip(requests, responses):
            await store.put(request.cache_key, response.to_blob())
        log.info("pre-cached %d app shell asset(s)", len(requests))

    async def activate(self) -> list[str]:
        """Delete stores that belong to other versions. Returns the purged names."""
        if self.state is not LifecycleState.INSTALLED:
            state = self.state.value if self.state else "new"
            raise LifecycleError(f"cannot activate from state {state}")
        self.state = LifecycleState.ACTIVATING

        current = set(self._config.current_store_names)
        purged = []
        for name in await self._storage.names():
            if name not in current:
                await self._storage.delete(name)
                purged.append(name)
        if purged:
            log.info("purged %d stale store(s): %s", len(purged), ", ".join(purged))

        await self._clients.claim()
        self.state = LifecycleState.ACTIVE
        return purged

    def supersede(self) -> None:
        if self.state is not LifecycleState.ACTIVE:
            state = self.state.value if self.state else "new"
            raise LifecycleError(f"cannot supersede from state {state}")
        self.state = LifecycleState.SUPERSEDED
