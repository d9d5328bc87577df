"""
Clients adapters: an in-memory recorder for tests and a desktop one that
opens notification targets in the default web browser.
"""

import asyncio
import webbrowser

from .ports import Clients


class InMemoryClients(Clients):
    """Records what the cache manager asked the clients to do."""

    def __init__(self):
        self.claimed = 0
        self.opened: list[str] = []

    async def claim(self) -> None:
        self.claimed += 1

    async def open_window(self, url: str) -> None:
        self.opened.append(url)


class BrowserClients(Clients):

    def __init__(self, origin: str):
        self._origin = origin.rstrip("/")

    async def claim(self) -> None:
        # a desktop process has no pages to take over
        return None

    async def open_window(self, url: str) -> None:
        if url.startswith("/"):
            url = f"{self._origin}{url}"
        await asyncio.to_thread(webbrowser.open, url)
