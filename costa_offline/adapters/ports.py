from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from costa_offline.domain.http import Request, Response

ReplayCallback = Callable[[], Awaitable[object]]


class NetworkGateway(ABC):
    """
    Port: how the cache layer reaches the network.

    The strategies depend ONLY on this interface.
    They don't know or care whether requests go to the real
    marketplace over HTTP or to an in-memory simulator.
    """

    @abstractmethod
    async def fetch(self, request: Request) -> Response:
        """
        Send the request and return whatever the server answered.

        Raises NetworkError when no response at all could be obtained.
        4xx/5xx answers are returned, not raised.
        """
        ...


class ReplayScheduler(ABC):
    """
    Port: connectivity signals that trigger replay of queued writes.

    Stands in for the platform's background-sync event and for the page's
    "online" event, so replay can be driven directly from tests.
    """

    @abstractmethod
    def on_reconnect(self, callback: ReplayCallback) -> None:
        """Register a callback fired on every offline → online transition."""
        ...

    @abstractmethod
    def on_explicit_trigger(self, tag: str, callback: ReplayCallback) -> None:
        """Register a callback fired when a sync tag is triggered."""
        ...

    @abstractmethod
    def is_online(self) -> bool:
        ...


class Clients(ABC):
    """Port: the pages/windows controlled by the cache manager."""

    @abstractmethod
    async def claim(self) -> None:
        """Take control of every open client immediately."""
        ...

    @abstractmethod
    async def open_window(self, url: str) -> None:
        ...
