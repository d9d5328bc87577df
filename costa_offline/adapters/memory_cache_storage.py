"""
In-memory CacheStorage for testing — no database required.
"""

from costa_offline.domain.cache_storage import BlobStore, CacheStorage


class InMemoryBlobStore(BlobStore):

    def __init__(self):
        # dicts keep insertion order; that order is the eviction order
        self._entries: dict[str, bytes] = {}

    async def get(self, key: str) -> bytes | None:
        return self._entries.get(key)

    async def put(self, key: str, blob: bytes) -> None:
        self._entries.pop(key, None)
        self._entries[key] = blob

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def list_keys(self) -> list[str]:
        return list(self._entries)

    async def key_count(self) -> int:
        return len(self._entries)


class InMemoryCacheStorage(CacheStorage):

    def __init__(self):
        self._stores: dict[str, InMemoryBlobStore] = {}

    async def open(self, name: str) -> BlobStore:
        if name not in self._stores:
            self._stores[name] = InMemoryBlobStore()
        return self._stores[name]

    async def has(self, name: str) -> bool:
        return name in self._stores

    async def names(self) -> list[str]:
        return list(self._stores)

    async def delete(self, name: str) -> bool:
        return self._stores.pop(name, None) is not None
