import json
import re
from urllib.parse import parse_qs, urlsplit

from costa_offline.domain.http import NetworkError, Request, Response, json_response, text_response

from .ports import NetworkGateway

_BOOKING_CANCEL = re.compile(r"^/api/bookings/([^/]+)/cancel$")
_FAVORITE_ITEM = re.compile(r"^/api/favorites/([^/]+)$")


class SimulatorNetwork(NetworkGateway):
    """
    In-memory fake of the marketplace origin. No mocking framework needed.

    Serves injected static resources plus a tiny bookings/favorites API that
    de-duplicates writes on the Idempotency-Key header, like the real
    route handlers are required to.

    Test helpers:
        set_online()            — toggle connectivity (offline → NetworkError)
        inject_resource()       — serve a fixed body at a path
        inject_app_shell()      — serve a small HTML page for each given path
        inject_boat()           — add a boat to GET /api/boats
        lose_next_responses()   — process the next n requests server-side but
                                  fail them client-side (response lost)
        calls                   — every request that reached fetch()
        bookings / favorites    — server-side state
    """

    def __init__(self, origin: str = "http://localhost:3000"):
        self.origin = origin.rstrip("/")
        self.online = True
        self.calls: list[Request] = []
        self.bookings: list[dict] = []
        self.favorites: list[dict] = []
        self.boats: list[dict] = []
        self._resources: dict[tuple[str, str], Response] = {}
        self._idempotent: dict[str, Response] = {}
        self._lose_responses = 0
        self._next_id = 1

    # -- test helpers --------------------------------------------------------

    def set_online(self, online: bool) -> None:
        self.online = online

    def inject_resource(
        self,
        path: str,
        body: bytes | str,
        status: int = 200,
        content_type: str = "text/html; charset=utf-8",
        method: str = "GET",
    ) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._resources[(method.upper(), path)] = Response(
            status=status,
            headers={"Content-Type": content_type},
            body=body,
        )

    def inject_app_shell(self, paths) -> None:
        for path in paths:
            self.inject_resource(path, f"<html><body>{path}</body></html>")

    def inject_boat(self, boat: dict) -> None:
        self.boats.append(boat)

    def lose_next_responses(self, n: int = 1) -> None:
        self._lose_responses = n

    def calls_to(self, path: str, method: str | None = None) -> list[Request]:
        return [
            r for r in self.calls
            if r.path == path and (method is None or r.method.upper() == method.upper())
        ]

    # -- NetworkGateway ------------------------------------------------------

    async def fetch(self, request: Request) -> Response:
        self.calls.append(request)
        if not self.online:
            raise NetworkError("simulated network unavailable")

        response = self._route(request)

        parts = urlsplit(request.url)
        response.type = "basic" if f"{parts.scheme}://{parts.netloc}" == self.origin else "cors"
        response.url = request.url

        if self._lose_responses > 0:
            self._lose_responses -= 1
            raise NetworkError("simulated connection drop after server processed request")
        return response

    # -- fake server ---------------------------------------------------------

    def _route(self, request: Request) -> Response:
        method = request.method.upper()
        path = request.path

        key = request.headers.get("Idempotency-Key")
        if key and key in self._idempotent:
            return self._idempotent[key].clone()

        response = self._dispatch(method, path, request)
        if key and method in ("POST", "DELETE") and response.ok:
            self._idempotent[key] = response.clone()
        return response

    def _dispatch(self, method: str, path: str, request: Request) -> Response:
        resource = self._resources.get((method, path))
        if resource is not None:
            return resource.clone()

        if path == "/api/boats" and method == "GET":
            return json_response(list(self.boats))

        if path == "/api/bookings":
            if method == "GET":
                user_id = self._query(request, "userId")
                if not user_id:
                    return json_response({"error": "UserId é obrigatório"}, status=400)
                return json_response([b for b in self.bookings if b["user_id"] == user_id])
            if method == "POST":
                return self._create_booking(request)

        match = _BOOKING_CANCEL.match(path)
        if match and method == "POST":
            for booking in self.bookings:
                if booking["id"] == match.group(1):
                    booking["status"] = "cancelled"
                    return json_response(booking)
            return json_response({"error": "Reserva não encontrada"}, status=404)

        if path == "/api/favorites":
            if method == "GET":
                user_id = self._query(request, "userId")
                return json_response([f for f in self.favorites if f["user_id"] == user_id])
            if method == "POST":
                data = json.loads(request.body or b"{}")
                favorite = {"user_id": data.get("userId", ""), "boat_id": data.get("boat_id", "")}
                if favorite not in self.favorites:
                    self.favorites.append(favorite)
                return json_response(favorite, status=201)

        match = _FAVORITE_ITEM.match(path)
        if match and method == "DELETE":
            data = json.loads(request.body or b"{}")
            favorite = {"user_id": data.get("userId", ""), "boat_id": match.group(1)}
            if favorite in self.favorites:
                self.favorites.remove(favorite)
            return Response(status=204)

        return text_response("Not Found", status=404)

    def _create_booking(self, request: Request) -> Response:
        data = json.loads(request.body or b"{}")
        missing = [f for f in ("boat_id", "start_date", "end_date", "userId") if not data.get(f)]
        if missing:
            return json_response({"error": f"Campos obrigatórios: {', '.join(missing)}"}, status=400)
        booking = {
            "id": f"bk_{self._next_id}",
            "boat_id": data["boat_id"],
            "user_id": data["userId"],
            "start_date": data["start_date"],
            "end_date": data["end_date"],
            "total_price": data.get("total_price", 0),
            "status": "pending",
        }
        self._next_id += 1
        self.bookings.append(booking)
        return json_response(booking, status=201)

    @staticmethod
    def _query(request: Request, name: str) -> str:
        values = parse_qs(urlsplit(request.url).query).get(name, [])
        return values[0] if values else ""
