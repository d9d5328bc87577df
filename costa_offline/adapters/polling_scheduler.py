"""
Polling connectivity monitor.

Probes the marketplace origin every `interval` seconds and fires the
reconnect callbacks on each offline → online transition.  This is the
production stand-in for the browser's "online" and background-sync events.
"""

import asyncio
import logging
from typing import Callable

from .ports import ReplayCallback, ReplayScheduler

log = logging.getLogger(__name__)


class PollingReplayScheduler(ReplayScheduler):

    def __init__(self, probe: Callable[[], bool], interval: float = 15.0):
        self._probe = probe
        self._interval = interval
        self._online = False
        self._reconnect: list[ReplayCallback] = []
        self._tagged: dict[str, list[ReplayCallback]] = {}

    def on_reconnect(self, callback: ReplayCallback) -> None:
        self._reconnect.append(callback)

    def on_explicit_trigger(self, tag: str, callback: ReplayCallback) -> None:
        self._tagged.setdefault(tag, []).append(callback)

    def is_online(self) -> bool:
        return self._online

    async def check_once(self) -> bool:
        """Probe once; fire reconnect callbacks if we just came back online."""
        online = await asyncio.to_thread(self._probe)
        came_back = online and not self._online
        if online != self._online:
            log.info("connectivity changed: %s", "online" if online else "offline")
        self._online = online
        if came_back:
            await self._fire(self._reconnect, "reconnect")
        return online

    async def trigger(self, tag: str) -> None:
        await self._fire(self._tagged.get(tag, []), tag)

    async def run(self, stop: asyncio.Event | None = None) -> None:
        stop = stop or asyncio.Event()
        while not stop.is_set():
            await self.check_once()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

    @staticmethod
    async def _fire(callbacks: list[ReplayCallback], reason: str) -> None:
        for cb in callbacks:
            try:
                await cb()
            except Exception as exc:
                log.error("replay callback failed (%s): %s", reason, exc)
