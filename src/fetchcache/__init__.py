"""fetchcache -- a request-result cache with stale-while-revalidate and bounded eviction.

:class:`~fetchcache.cache.RequestCache` sits in front of an async transport
(by default :class:`~fetchcache.transport.HttpxTransport`). It answers fresh
requests from memory, serves stale values while refreshing them in the
background, retries failed fetches with exponential backoff, and writes
results through to a durable tier. In pro mode the durable tier is a bounded
store trimmed by an LRU, LFU or FIFO eviction strategy.

Typical use::

    import asyncio
    from fetchcache import RequestCache

    async def main():
        async with RequestCache() as cache:
            response = await cache.fetch("https://api.example.com/users", ttl=30_000)
            print(response.body)

    asyncio.run(main())

Modules:
    cache: The request coordinator.
    retry: Fetch-with-retry and backoff delays.
    eviction: Eviction strategies and the eviction manager.
    storage: Durable-tier store interface and backends.
    inspector: Read-only diagnostics.
    keys: Cache key derivation.
    config: Option resolution and cache directory.
    models: Pydantic models shared across the package.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer command line over a disk-backed cache.
"""

from fetchcache.cache import RequestCache
from fetchcache.config import PREFIX
from fetchcache.exceptions import (
    ActivationError,
    FetchCacheError,
    InvalidConfiguration,
    NetworkError,
    StorageUnavailable,
    TransportError,
)
from fetchcache.inspector import NOT_ENABLED, CacheInspector
from fetchcache.keys import derive_cache_key
from fetchcache.models import (
    CachedResponse,
    CacheEntry,
    CacheOptions,
    PersistentRecord,
    ProOptions,
    RequestDescriptor,
    StoreKind,
    StrategyName,
)

__version__ = "0.3.0"

__all__ = [
    "ActivationError",
    "CacheEntry",
    "CacheInspector",
    "CacheOptions",
    "CachedResponse",
    "FetchCacheError",
    "InvalidConfiguration",
    "NOT_ENABLED",
    "NetworkError",
    "PREFIX",
    "PersistentRecord",
    "ProOptions",
    "RequestCache",
    "RequestDescriptor",
    "StorageUnavailable",
    "StoreKind",
    "StrategyName",
    "TransportError",
    "derive_cache_key",
]
