"""
Store size limit: oldest-inserted entries go first (FIFO, not LRU).

Reads never refresh an entry's position.  Two concurrent passes over the
same store may both see it over the limit and each delete one key; the
result can be one entry short of the limit, never over it.
"""

import logging

from costa_offline.domain.cache_storage import BlobStore

log = logging.getLogger(__name__)


async def limit_store_size(store: BlobStore, max_items: int | None, name: str = "") -> int:
    """Delete oldest keys until the store holds at most max_items. Returns how many were evicted."""
    if max_items is None:
        return 0

    evicted = 0
    keys = await store.list_keys()
    while len(keys) > max_items:
        await store.delete(keys[0])
        evicted += 1
        keys = await store.list_keys()

    if evicted:
        log.debug("store=%s evicted=%d size=%d max=%d", name, evicted, len(keys), max_items)
    return evicted
