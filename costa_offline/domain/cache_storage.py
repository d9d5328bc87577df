"""
CacheStorage port — named, versioned stores of request → response blobs.

Each store is an ordered key/value collection.  Order is insertion order
and is what eviction relies on: the first key listed is the oldest.
"""

from abc import ABC, abstractmethod


class BlobStore(ABC):
    """
    Port: one named store.

    put() on an existing key replaces the entry AND moves it to the newest
    position, the same way the browser Cache API re-appends a replaced entry.
    """

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the stored blob, or None if absent."""
        ...

    @abstractmethod
    async def put(self, key: str, blob: bytes) -> None:
        """Insert or replace an entry."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove an entry. Returns True if something was deleted."""
        ...

    @abstractmethod
    async def list_keys(self) -> list[str]:
        """All keys, oldest first."""
        ...

    @abstractmethod
    async def key_count(self) -> int:
        ...


class CacheStorage(ABC):
    """
    Port: the set of all named stores for one origin.

    Shared by every client of the origin.  Individual put/delete calls are
    atomic; nothing larger than that is.
    """

    @abstractmethod
    async def open(self, name: str) -> BlobStore:
        """Return the named store, creating it if it does not exist."""
        ...

    @abstractmethod
    async def has(self, name: str) -> bool:
        ...

    @abstractmethod
    async def names(self) -> list[str]:
        """Names of all existing stores, in creation order."""
        ...

    @abstractmethod
    async def delete(self, name: str) -> bool:
        """Drop a whole store. Returns True if it existed."""
        ...

    async def match(self, key: str) -> bytes | None:
        """Look the key up in every store, oldest store first."""
        for name in await self.names():
            store = await self.open(name)
            blob = await store.get(key)
            if blob is not None:
                return blob
        return None
