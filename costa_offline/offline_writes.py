"""
Client-side offline writes for bookings and favorites.

Online, a write goes straight to the network.  Offline, or when the
network turns out to be unreachable, it is queued for the owning user
and the caller gets back a local record whose id starts with "offline_".
That id is never durable: only the server id assigned at replay is.

The network given here may be the raw gateway or the CacheManager itself;
both "NetworkError" and the cache layer's offline answer
(503 {"error": "Offline", "cached": true}) count as offline.
"""

import json
import logging
from typing import Any

from costa_offline.adapters.ports import NetworkGateway, ReplayScheduler
from costa_offline.config import CacheConfig
from costa_offline.domain.http import NetworkError, Request, Response
from costa_offline.domain.write_queue import QueuedWrite, WriteQueue, is_local_id

log = logging.getLogger(__name__)

BOOKINGS_PATH = "/api/bookings"
FAVORITES_PATH = "/api/favorites"


class WriteRejected(Exception):
    """The server answered a direct (online) write with a non-2xx status."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


def is_offline_response(response: Response) -> bool:
    if response.status != 503:
        return False
    try:
        data = response.json()
    except ValueError:
        return False
    return isinstance(data, dict) and data.get("cached") is True


class _OfflineWriter:

    family = ""

    def __init__(
        self,
        user_id: str,
        queue: WriteQueue,
        network: NetworkGateway,
        scheduler: ReplayScheduler,
        config: CacheConfig,
    ):
        self.user_id = user_id
        self._queue = queue
        self._network = network
        self._scheduler = scheduler
        self._config = config

    async def _send_or_queue(
        self,
        method: str,
        path: str,
        payload: dict[str, Any],
        error_message: str,
    ) -> tuple[Response | None, QueuedWrite | None]:
        """Returns (response, None) when sent, (None, queued write) when queued."""
        write = QueuedWrite(
            user_id=self.user_id,
            family=self.family,
            method=method,
            path=path,
            payload=payload,
        )

        if self._scheduler.is_online():
            request = Request(
                url=self._config.absolute_url(path),
                method=method,
                headers={
                    "Content-Type": "application/json",
                    "Idempotency-Key": write.idempotency_key,
                },
                body=json.dumps(payload).encode("utf-8"),
            )
            try:
                response = await self._network.fetch(request)
            except NetworkError as exc:
                log.info("user=%s %s %s unreachable (%s), queuing", self.user_id, method, path, exc)
            else:
                if not is_offline_response(response):
                    if not response.ok:
                        raise WriteRejected(error_message, response.status)
                    return response, None
                log.info("user=%s %s %s answered offline, queuing", self.user_id, method, path)

        # same idempotency key whether sent now or replayed later
        queued = await self._queue.enqueue(write)
        log.info("user=%s queued %s %s local=%s", self.user_id, method, path, queued.local_id)
        return None, queued

    async def _local_writes(self, include_cancelled: bool = False) -> list[QueuedWrite]:
        writes = await self._queue.list_writes(user_id=self.user_id, family=self.family)
        if include_cancelled:
            return writes
        return [w for w in writes if w.status != "cancelled"]


class OfflineBookings(_OfflineWriter):

    family = "bookings"

    async def create_booking(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        data: boat_id, start_date, end_date, total_price.

        Returns the server booking, or a local pending booking when queued.
        """
        payload = {**data, "userId": self.user_id}
        response, queued = await self._send_or_queue(
            "POST", BOOKINGS_PATH, payload, "Erro ao criar reserva",
        )
        if response is not None:
            return response.json()
        return self._local_booking(queued)

    async def cancel_booking(self, booking_id: str) -> None:
        if is_local_id(booking_id):
            if not await self._queue.cancel(booking_id):
                raise WriteRejected(f"Reserva {booking_id} não pode ser cancelada", 409)
            log.info("user=%s cancelled local booking %s", self.user_id, booking_id)
            return

        await self._send_or_queue(
            "POST", f"{BOOKINGS_PATH}/{booking_id}/cancel", {"userId": self.user_id},
            "Erro ao cancelar reserva",
        )

    async def list_bookings(self) -> list[dict[str, Any]]:
        """Server bookings plus local ones not yet synced; local only when offline."""
        local = [
            self._local_booking(w)
            for w in await self._local_writes(include_cancelled=True)
            if w.method == "POST" and w.path == BOOKINGS_PATH
        ]
        if not self._scheduler.is_online():
            return local

        request = Request(url=self._config.absolute_url(f"{BOOKINGS_PATH}?userId={self.user_id}"))
        try:
            response = await self._network.fetch(request)
        except NetworkError:
            return local
        if is_offline_response(response):
            return local
        if not response.ok:
            raise WriteRejected("Erro ao buscar reservas", response.status)
        return response.json() + [b for b in local if b["status"] != "cancelled"]

    async def has_offline_bookings(self) -> bool:
        return bool(await self._local_writes())

    def _local_booking(self, write: QueuedWrite) -> dict[str, Any]:
        booking = {k: v for k, v in write.payload.items() if k != "userId"}
        booking.update(
            id=write.local_id,
            user_id=write.user_id,
            status="cancelled" if write.status == "cancelled" else "pending",
            created_at=write.created_at.isoformat(),
        )
        return booking


class OfflineFavorites(_OfflineWriter):

    family = "favorites"

    async def add(self, boat_id: str) -> dict[str, Any]:
        response, queued = await self._send_or_queue(
            "POST", FAVORITES_PATH, {"boat_id": boat_id, "userId": self.user_id},
            "Erro ao adicionar favorito",
        )
        if response is not None:
            return response.json()
        return {"id": queued.local_id, "boat_id": boat_id, "user_id": self.user_id, "status": "pending"}

    async def remove(self, boat_id: str) -> None:
        # an add that never left the device is simply cancelled
        for write in await self._local_writes():
            if (
                write.method == "POST"
                and write.payload.get("boat_id") == boat_id
                and await self._queue.cancel(write.local_id)
            ):
                log.info("user=%s dropped pending favorite boat=%s", self.user_id, boat_id)
                return

        await self._send_or_queue(
            "DELETE", f"{FAVORITES_PATH}/{boat_id}", {"userId": self.user_id},
            "Erro ao remover favorito",
        )

    async def pending(self) -> list[QueuedWrite]:
        return await self._local_writes()