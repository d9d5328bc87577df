"""
Cache strategy router.

Every intercepted request is classified, in priority order, into one of
four strategies:

  STATIC    exact app-shell path        cache-first, never re-cached
  API       path contains an API route  network-first → api store → 503 JSON
  IMAGE     image file extension        cache-first → image store → 503 text
  FALLBACK  anything else               network-first → dynamic store
                                        → offline page (navigations) → 503 text

Network failures never escape handle(): each strategy turns them into a
cached copy or a synthesized response.  Cache writes that fail are logged
and skipped; the live response is still returned.
"""

import asyncio
import enum
import logging

from costa_offline.adapters.ports import NetworkGateway
from costa_offline.config import API, DYNAMIC, IMAGE, CacheConfig
from costa_offline.domain.cache_storage import CacheStorage
from costa_offline.domain.http import (
    NetworkError,
    Request,
    Response,
    json_response,
    text_response,
)
from costa_offline.eviction import limit_store_size

log = logging.getLogger(__name__)

OFFLINE_API_BODY = {"error": "Offline", "cached": True}
IMAGE_UNAVAILABLE = "Imagem indisponível"
RESOURCE_UNAVAILABLE = "Recurso indisponível"


class RouteKind(enum.Enum):
    STATIC = "static"
    API = "api"
    IMAGE = "image"
    FALLBACK = "fallback"


def classify(request: Request, config: CacheConfig) -> RouteKind:
    path = request.path
    if path in config.static_assets:
        return RouteKind.STATIC
    if any(route in path for route in config.api_routes):
        return RouteKind.API
    if path.lower().endswith(config.image_extensions):
        return RouteKind.IMAGE
    return RouteKind.FALLBACK


def offline_api_response() -> Response:
    return json_response(OFFLINE_API_BODY, status=503)


class StrategyRouter:

    def __init__(self, config: CacheConfig, storage: CacheStorage, network: NetworkGateway):
        self._config = config
        self._storage = storage
        self._network = network

    async def handle(self, request: Request) -> Response:
        kind = classify(request, self._config)
        log.debug("%s %s → %s", request.method, request.path, kind.value)

        if kind is RouteKind.STATIC:
            return await self._cache_first_static(request)
        if kind is RouteKind.API:
            return await self._network_first_api(request)
        if kind is RouteKind.IMAGE:
            return await self._cache_first_image(request)
        return await self._network_first_fallback(request)

    # -- strategies ----------------------------------------------------------

    async def _cache_first_static(self, request: Request) -> Response:
        cached = await self._match(request.cache_key)
        if cached is not None:
            return cached
        # install pre-populates the shell; a miss is served live and not stored
        try:
            return await self._network.fetch(request)
        except NetworkError:
            return await self._unavailable(request)

    async def _network_first_api(self, request: Request) -> Response:
        try:
            response = await self._network.fetch(request)
        except NetworkError as exc:
            log.info("offline api %s %s: %s", request.method, request.path, exc)
            cached = await self._match(request.cache_key)
            return cached if cached is not None else offline_api_response()

        await self._write_through(API, request, response)
        return response

    async def _cache_first_image(self, request: Request) -> Response:
        cached = await self._match(request.cache_key)
        if cached is not None:
            return cached

        try:
            response = await self._network.fetch(request)
        except NetworkError:
            return text_response(IMAGE_UNAVAILABLE, status=503)

        await self._write_through(IMAGE, request, response)
        return response

    async def _network_first_fallback(self, request: Request) -> Response:
        try:
            response = await self._network.fetch(request)
        except NetworkError:
            cached = await self._match(request.cache_key)
            if cached is not None:
                return cached
            return await self._unavailable(request)

        if response.status == 200 and response.type == "basic":
            await self._write_through(DYNAMIC, request, response)
        return response

    # -- helpers -------------------------------------------------------------

    async def _unavailable(self, request: Request) -> Response:
        if request.is_navigation:
            offline_key = Request(url=self._config.absolute_url(self._config.offline_path)).cache_key
            offline_page = await self._match(offline_key)
            if offline_page is not None:
                return offline_page
            log.warning("navigation to %s failed and no offline page is cached", request.path)
        return text_response(RESOURCE_UNAVAILABLE, status=503)

    async def _match(self, key: str) -> Response | None:
        try:
            blob = await self._storage.match(key)
        except Exception as exc:
            log.error("cache lookup failed key=%s: %s", key, exc)
            return None
        return Response.from_blob(blob) if blob is not None else None

    async def _write_through(self, category: str, request: Request, response: Response) -> None:
        # shielded: a request abandoned mid-way still lets the cache write finish
        await asyncio.shield(self._store(category, request, response.clone()))

    async def _store(self, category: str, request: Request, response: Response) -> None:
        name = self._config.store_name(category)
        if request.method.upper() != "GET":
            # Cache API semantics: only GET responses are storable
            log.debug("not caching %s %s", request.method, request.path)
            return
        try:
            store = await self._storage.open(name)
            await store.put(request.cache_key, response.to_blob())
            await limit_store_size(store, self._config.store_limit(category), name)
        except Exception as exc:
            log.error("cache write failed store=%s key=%s: %s", name, request.cache_key, exc)
