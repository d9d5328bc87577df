import os

from costa_offline.domain.cache_storage import CacheStorage
from costa_offline.domain.write_queue import WriteQueue

DEFAULT_DB_PATH = "data/costa_offline.db"


def _backend(backend: str | None) -> str:
    return backend or os.environ.get("CACHE_BACKEND", "sqlite")


def _db_path(db_path: str | None) -> str:
    path = db_path or os.environ.get("DB_PATH", DEFAULT_DB_PATH)
    if path != ":memory:" and os.path.dirname(path):
        os.makedirs(os.path.dirname(path), exist_ok=True)
    return path


def create_cache_storage(backend: str | None = None, db_path: str | None = None) -> CacheStorage:
    """
    Factory: create the right CacheStorage adapter based on config.

    The backend can be passed explicitly or read from the
    CACHE_BACKEND env var. Defaults to "sqlite".
    """
    backend = _backend(backend)

    if backend == "sqlite":
        from .sqlite_cache_storage import SqliteCacheStorage

        return SqliteCacheStorage(db_path=_db_path(db_path))

    if backend == "memory":
        from .memory_cache_storage import InMemoryCacheStorage

        return InMemoryCacheStorage()

    raise ValueError(f"Unknown cache backend: {backend!r}")


def create_write_queue(backend: str | None = None, db_path: str | None = None) -> WriteQueue:
    """Same selection rules as create_cache_storage()."""
    backend = _backend(backend)

    if backend == "sqlite":
        from .sqlite_write_queue import SqliteWriteQueue

        return SqliteWriteQueue(db_path=_db_path(db_path))

    if backend == "memory":
        from .memory_write_queue import InMemoryWriteQueue

        return InMemoryWriteQueue()

    raise ValueError(f"Unknown cache backend: {backend!r}")
