"""
Cache layer configuration.

One CacheConfig is built per process and handed to CacheManager; nothing
in the package reads module-level cache names.
"""

import os
from dataclasses import dataclass, field

STATIC = "static"
DYNAMIC = "dynamic"
API = "api"
IMAGE = "image"

CATEGORIES = (STATIC, DYNAMIC, API, IMAGE)

DEFAULT_STATIC_ASSETS = (
    "/",
    "/offline",
    "/manifest.json",
    "/icon-192x192.png",
    "/icon-384x384.png",
    "/icon-512x512.png",
)

DEFAULT_API_ROUTES = (
    "/api/boats",
    "/api/bookings",
    "/api/favorites",
)

DEFAULT_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")

# None = unbounded
DEFAULT_STORE_LIMITS: dict[str, int | None] = {
    STATIC: None,
    DYNAMIC: 75,
    API: 50,
    IMAGE: 100,
}

# sync tag → (write family, methods replayed, route prefix)
DEFAULT_SYNC_TAGS: dict[str, tuple[str, tuple[str, ...], str]] = {
    "sync-bookings": ("bookings", ("POST",), "/api/bookings"),
    "sync-favorites": ("favorites", ("POST", "DELETE"), "/api/favorites"),
}


@dataclass
class CacheConfig:
    origin: str = "http://localhost:3000"
    version: str = "v1"
    static_assets: tuple[str, ...] = DEFAULT_STATIC_ASSETS
    api_routes: tuple[str, ...] = DEFAULT_API_ROUTES
    image_extensions: tuple[str, ...] = DEFAULT_IMAGE_EXTENSIONS
    store_limits: dict[str, int | None] = field(
        default_factory=lambda: dict(DEFAULT_STORE_LIMITS)
    )
    offline_path: str = "/offline"
    sync_tags: dict[str, tuple[str, tuple[str, ...], str]] = field(
        default_factory=lambda: dict(DEFAULT_SYNC_TAGS)
    )
    retry_base_seconds: float = 5.0
    retry_max_seconds: float = 300.0
    notification_icon: str = "/icon-192x192.png"

    def __post_init__(self):
        self.origin = self.origin.rstrip("/")

    def store_name(self, category: str) -> str:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown store category: {category!r}")
        return f"{category}-{self.version}"

    @property
    def current_store_names(self) -> list[str]:
        return [self.store_name(c) for c in CATEGORIES]

    def store_limit(self, category: str) -> int | None:
        return self.store_limits.get(category)

    def absolute_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.origin}{path}"

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """
        Build a config from environment variables.

            COSTA_ORIGIN              - marketplace origin (default: http://localhost:3000)
            COSTA_CACHE_VERSION       - store version suffix (default: v1)
            COSTA_RETRY_BASE_SECONDS  - first replay backoff (default: 5)
            COSTA_RETRY_MAX_SECONDS   - backoff ceiling (default: 300)
        """
        return cls(
            origin=os.environ.get("COSTA_ORIGIN", "http://localhost:3000"),
            version=os.environ.get("COSTA_CACHE_VERSION", "v1"),
            retry_base_seconds=float(os.environ.get("COSTA_RETRY_BASE_SECONDS", "5")),
            retry_max_seconds=float(os.environ.get("COSTA_RETRY_MAX_SECONDS", "300")),
        )
