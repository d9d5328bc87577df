"""
CacheManager — the offline layer as one object, built once per process.

Wires together all ports:

  fetch  → StrategyRouter      (serve a response for a request)
  sync   → ReplayCoordinator   (replay queued writes for a tag)
  push   → NotificationDisplay (show a notification)
  click  → Clients             (open the notification's URL)

install/activate go through StoreLifecycle.  Until the lifecycle is
active, requests bypass the cache entirely, the way an uncontrolled page
talks to the network directly.

CacheManager is itself a NetworkGateway, so client code (OfflineBookings,
OfflineFavorites) can send its requests through the cache layer.
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable

from costa_offline.adapters.ports import Clients, NetworkGateway, ReplayScheduler
from costa_offline.config import CacheConfig
from costa_offline.domain.cache_storage import CacheStorage
from costa_offline.domain.http import Request, Response
from costa_offline.domain.write_queue import WriteQueue
from costa_offline.lifecycle import LifecycleState, StoreLifecycle
from costa_offline.notifications.ports import (
    Notification,
    NotificationAction,
    NotificationDisplay,
    PushMessage,
)
from costa_offline.replay import ReplayCoordinator, ReplayReport
from costa_offline.router import StrategyRouter

log = logging.getLogger(__name__)

VIEW_ACTION = NotificationAction(action="view", title="Ver detalhes")


@dataclass
class ManagerConfig:
    settings: CacheConfig
    storage: CacheStorage
    network: NetworkGateway
    queue: WriteQueue
    clients: Clients
    display: NotificationDisplay
    scheduler: ReplayScheduler | None = None
    skip_waiting: bool = True


class ExtendableEvent:
    """
    An event whose lifetime is extended by the work handed to wait_until().

    The host must not consider the event finished until settled() returns.
    Failures of that work are logged, never raised.
    Only constructible inside a running event loop.
    """

    def __init__(self, name: str):
        # raises RuntimeError outside a running loop, before any work is created
        self._loop = asyncio.get_running_loop()
        self.name = name
        self._pending: list[asyncio.Future] = []

    def wait_until(self, work: Awaitable[Any]) -> None:
        self._pending.append(asyncio.ensure_future(work, loop=self._loop))

    async def settled(self) -> list[Any]:
        results = await asyncio.gather(*self._pending, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                log.error("event=%s work failed: %s", self.name, result)
        return results


class CacheManager(NetworkGateway):

    def __init__(self, config: ManagerConfig):
        self._cfg = config
        settings = config.settings
        self.lifecycle = StoreLifecycle(
            settings, config.storage, config.network, config.clients,
            skip_waiting=config.skip_waiting,
        )
        self.router = StrategyRouter(settings, config.storage, config.network)
        self.replay = ReplayCoordinator(settings, config.queue, config.network, config.storage)

        if config.scheduler is not None:
            for tag in settings.sync_tags:
                config.scheduler.on_explicit_trigger(tag, partial(self.handle_sync, tag))
            config.scheduler.on_reconnect(self.replay_all)

    # -- lifecycle -----------------------------------------------------------

    async def install(self) -> None:
        await self.lifecycle.install()

    async def activate(self) -> list[str]:
        return await self.lifecycle.activate()

    async def start(self) -> None:
        """Recover interrupted replays, install, then activate when skip_waiting is set."""
        await self.replay.recover_interrupted()
        await self.install()
        if self.lifecycle.skip_waiting:
            await self.activate()

    @property
    def is_active(self) -> bool:
        return self.lifecycle.state is LifecycleState.ACTIVE

    # -- fetch ---------------------------------------------------------------

    async def handle_fetch(self, request: Request) -> Response:
        if not self.is_active:
            return await self._cfg.network.fetch(request)
        return await self.router.handle(request)

    async def fetch(self, request: Request) -> Response:
        return await self.handle_fetch(request)

    # -- background sync -----------------------------------------------------

    async def handle_sync(self, tag: str) -> ReplayReport:
        log.info("sync event tag=%s", tag)
        return await self.replay.replay_tag(tag)

    async def replay_all(self) -> ReplayReport:
        return await self.replay.replay()

    def dispatch_sync(self, tag: str) -> ExtendableEvent:
        """Must be called from inside the running event loop."""
        event = ExtendableEvent(f"sync:{tag}")
        event.wait_until(self.handle_sync(tag))
        return event

    # -- notifications -------------------------------------------------------

    async def handle_push(self, payload: bytes | str | None) -> Notification | None:
        if not payload:
            return None
        try:
            message = PushMessage.from_payload(payload)
        except ValueError as exc:
            log.error("unreadable push payload: %s", exc)
            return None

        icon = self._cfg.settings.notification_icon
        notification = Notification(
            title=message.title,
            body=message.description,
            icon=icon,
            badge=icon,
            data=message.url,
            actions=[VIEW_ACTION],
        )
        await self._cfg.display.show(notification)
        return notification

    def dispatch_push(self, payload: bytes | str | None) -> ExtendableEvent:
        """Must be called from inside the running event loop."""
        event = ExtendableEvent("push")
        event.wait_until(self.handle_push(payload))
        return event

    async def handle_notification_click(self, notification: Notification, action: str) -> None:
        notification.close()
        if action == VIEW_ACTION.action and notification.data:
            await self._cfg.clients.open_window(notification.data)
