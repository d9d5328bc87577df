#!/usr/bin/env python3
"""
Offline queue CLI: inspect and replay queued writes.

Usage (from project root):
    python scripts/queue_status.py                     # list queued writes
    python scripts/queue_status.py show offline_ab12   # show full details
    python scripts/queue_status.py cancel offline_ab12 # cancel a pending write
    python scripts/queue_status.py replay              # replay everything now
    python scripts/queue_status.py replay sync-bookings

USER_ID limits the listing to one user. replay needs COSTA_ORIGIN.
"""

import asyncio
import json
import os
import sys

# Allow running as `python scripts/queue_status.py` from project root.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from costa_offline.adapters.requests_network import RequestsNetwork
from costa_offline.adapters.sqlite_cache_storage import SqliteCacheStorage
from costa_offline.adapters.sqlite_write_queue import SqliteWriteQueue
from costa_offline.config import CacheConfig
from costa_offline.replay import ReplayCoordinator

DB_PATH = os.environ.get("DB_PATH", "data/costa_offline.db")


async def list_writes(queue: SqliteWriteQueue) -> None:
    writes = await queue.list_writes(user_id=os.environ.get("USER_ID") or None)
    if not writes:
        print("Queue is empty.")
        return

    print(f"\n{'Local ID':<18}  {'Status':<10}  {'Method':<6}  {'Tries':>5}  Path")
    print("-" * 80)
    for w in writes:
        print(f"{w.local_id[:18]:<18}  {w.status:<10}  {w.method:<6}  {w.attempts:>5}  {w.path}")
    print()


async def _find(queue: SqliteWriteQueue, prefix: str):
    matches = [w for w in await queue.list_writes() if w.local_id.startswith(prefix)]
    if len(matches) != 1:
        print(f"{len(matches)} write(s) match {prefix!r}.")
        return None
    return matches[0]


async def show_write(queue: SqliteWriteQueue, prefix: str) -> None:
    w = await _find(queue, prefix)
    if not w:
        return
    print(f"\n{'=' * 60}")
    print(f"  {w.local_id}  |  {w.family}  |  {w.status}")
    print(f"  User: {w.user_id}")
    print(f"  Request: {w.method} {w.path}")
    print(f"  Idempotency key: {w.idempotency_key}")
    print(f"  Created: {w.created_at}")
    print(f"  Attempts: {w.attempts}")
    if w.next_attempt_at:
        print(f"  Next attempt: {w.next_attempt_at}")
    if w.last_error:
        print(f"  Last error: {w.last_error}")
    print(f"{'=' * 60}")
    print(json.dumps(w.payload, indent=2, ensure_ascii=False))
    print()


async def cancel_write(queue: SqliteWriteQueue, prefix: str) -> None:
    w = await _find(queue, prefix)
    if not w:
        return
    if await queue.cancel(w.local_id):
        print(f"{w.local_id} cancelled.")
    else:
        print(f"{w.local_id} cannot be cancelled ({w.status}).")


async def replay(queue: SqliteWriteQueue, tag: str | None) -> None:
    if not os.environ.get("COSTA_ORIGIN"):
        print("ERROR: environment variable 'COSTA_ORIGIN' is not set.", file=sys.stderr)
        sys.exit(1)
    settings = CacheConfig.from_env()
    coordinator = ReplayCoordinator(
        settings, queue, RequestsNetwork(settings.origin), SqliteCacheStorage(DB_PATH),
    )
    report = await (coordinator.replay_tag(tag) if tag else coordinator.replay())
    print(f"synced={len(report.synced)}  failed={len(report.failed)}  skipped={len(report.skipped)}")
    for local_id, server_id in report.synced.items():
        print(f"  {local_id} → {server_id or '?'}")


async def main() -> None:
    os.makedirs(os.path.dirname(DB_PATH) or ".", exist_ok=True)
    queue = SqliteWriteQueue(DB_PATH)

    if len(sys.argv) < 2:
        await list_writes(queue)
        return

    cmd = sys.argv[1]

    if cmd == "show" and len(sys.argv) >= 3:
        await show_write(queue, sys.argv[2])
    elif cmd == "cancel" and len(sys.argv) >= 3:
        await cancel_write(queue, sys.argv[2])
    elif cmd == "replay":
        await replay(queue, sys.argv[2] if len(sys.argv) >= 3 else None)
    else:
        print(__doc__)


if __name__ == "__main__":
    asyncio.run(main())
