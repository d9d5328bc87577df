"""
Adapter contract for NetworkGateway.

Any implementation (real HTTP client, in-memory simulator, ...) must pass
these tests.  Subclass this and provide create_gateway() and origin().
"""

from abc import ABC, abstractmethod

import pytest

from costa_offline.adapters.ports import NetworkGateway
from costa_offline.domain.http import Request, Response


class NetworkGatewayContract(ABC):

    @abstractmethod
    def create_gateway(self) -> NetworkGateway:
        ...

    @abstractmethod
    def origin(self) -> str:
        ...

    @pytest.mark.asyncio
    async def test_fetch_returns_response(self):
        gw = self.create_gateway()
        resp = await gw.fetch(Request(url=f"{self.origin()}/"))
        assert isinstance(resp, Response)
        assert isinstance(resp.status, int)

    @pytest.mark.asyncio
    async def test_unknown_path_is_a_response_not_an_error(self):
        gw = self.create_gateway()
        resp = await gw.fetch(Request(url=f"{self.origin()}/definitely-not-here-404"))
        assert resp.status == 404
        assert resp.ok is False

    @pytest.mark.asyncio
    async def test_same_origin_response_is_basic(self):
        gw = self.create_gateway()
        resp = await gw.fetch(Request(url=f"{self.origin()}/"))
        assert resp.type == "basic"

    @pytest.mark.asyncio
    async def test_boats_endpoint_returns_json(self):
        gw = self.create_gateway()
        resp = await gw.fetch(Request(url=f"{self.origin()}/api/boats"))
        assert resp.ok
        assert isinstance(resp.json(), list)
