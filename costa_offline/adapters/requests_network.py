import asyncio
import logging
from urllib.parse import urlsplit

import requests

from costa_offline.domain.http import NetworkError, Request, Response

from .ports import NetworkGateway

log = logging.getLogger(__name__)


class RequestsNetwork(NetworkGateway):
    """Adapter: real HTTP via a requests.Session, run off the event loop."""

    def __init__(self, origin: str, timeout: float | None = 30.0):
        self._origin = origin.rstrip("/")
        self._timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Cache-Control": "no-cache"})

    async def fetch(self, request: Request) -> Response:
        return await asyncio.to_thread(self._send, request)

    def _send(self, request: Request) -> Response:
        try:
            resp = self.session.request(
                request.method,
                request.url,
                headers=request.headers,
                data=request.body or None,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            log.debug("fetch failed %s %s: %s", request.method, request.url, exc)
            raise NetworkError(str(exc)) from exc

        return Response(
            status=resp.status_code,
            headers=dict(resp.headers),
            body=resp.content,
            type=self._response_type(resp.url or request.url),
            url=resp.url or request.url,
        )

    def _response_type(self, url: str) -> str:
        parts = urlsplit(url)
        return "basic" if f"{parts.scheme}://{parts.netloc}" == self._origin else "cors"

    def probe(self, path: str = "/") -> bool:
        """True if the origin answers at all (any status)."""
        try:
            self.session.head(f"{self._origin}{path}", timeout=self._timeout)
        except requests.RequestException:
            return False
        return True
