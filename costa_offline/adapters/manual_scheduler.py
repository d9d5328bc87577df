import logging

from .ports import ReplayCallback, ReplayScheduler

log = logging.getLogger(__name__)


class ManualReplayScheduler(ReplayScheduler):
    """
    Adapter: connectivity driven by hand. For tests and dev.

    set_online(True) after being offline fires every reconnect callback;
    trigger(tag) fires the callbacks registered for that sync tag.
    """

    def __init__(self, online: bool = True):
        self._online = online
        self._reconnect: list[ReplayCallback] = []
        self._tagged: dict[str, list[ReplayCallback]] = {}

    def on_reconnect(self, callback: ReplayCallback) -> None:
        self._reconnect.append(callback)

    def on_explicit_trigger(self, tag: str, callback: ReplayCallback) -> None:
        self._tagged.setdefault(tag, []).append(callback)

    def is_online(self) -> bool:
        return self._online

    async def set_online(self, online: bool) -> list:
        was_online = self._online
        self._online = online
        if online and not was_online:
            log.info("connectivity restored — %d reconnect callback(s)", len(self._reconnect))
            return [await cb() for cb in self._reconnect]
        return []

    async def trigger(self, tag: str) -> list:
        callbacks = self._tagged.get(tag, [])
        if not callbacks:
            log.warning("sync tag %r has no registered callback", tag)
        return [await cb() for cb in callbacks]
