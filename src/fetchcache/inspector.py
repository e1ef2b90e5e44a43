"""Read-only diagnostics over a :class:`~fetchcache.cache.RequestCache`.

The inspector is disabled by default. While disabled, every method returns
:data:`NOT_ENABLED` instead of data so that diagnostics code can call it
unconditionally. It is enabled through
``RequestCache.enable_pro(enable_inspector=True)`` or :meth:`CacheInspector.enable`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Union

import pydantic_core

from fetchcache.keys import strip_prefix
from fetchcache.models import CacheEntry

if TYPE_CHECKING:
    from fetchcache.cache import RequestCache

logger = logging.getLogger(__name__)

NOT_ENABLED = "Inspector not enabled"


def serialized_size(obj: Any) -> int:
    """Return the size in bytes of the JSON form of *obj*."""
    return len(pydantic_core.to_json(obj, fallback=str))


class CacheInspector:
    """Aggregate counts, per-entry listing and clear-all for one cache.

    Args:
        cache: The cache to observe.
        enabled: Start enabled.
    """

    def __init__(self, cache: RequestCache, enabled: bool = False) -> None:
        self._cache = cache
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        if not self._enabled:
            logger.info("Cache inspector enabled")
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    async def stats(self) -> Union[dict[str, Any], str]:
        """Return tier sizes, the active store and strategy, and hit counters."""
        if not self._enabled:
            return NOT_ENABLED

        cache = self._cache
        memory_entries = len(cache.memory_items())
        persistent_entries = 0
        if cache.store is not None:
            persistent_entries = len(await cache.store.list_all())

        return {
            "memory_entries": memory_entries,
            "persistent_entries": persistent_entries,
            "total_entries": memory_entries + persistent_entries,
            "store": cache.store_name,
            "strategy": cache.strategy_name,
            "max_entries": cache.max_entries,
            "pro_enabled": cache.pro_enabled,
            "counters": dict(cache.counters),
        }

    async def list_entries(self) -> Union[dict[str, list[dict[str, Any]]], str]:
        """List every fast-tier and durable-tier entry with its serialised size."""
        if not self._enabled:
            return NOT_ENABLED

        cache = self._cache
        memory = [
            {
                "key": key,
                "expires_at": entry.expires_at,
                "size": serialized_size(entry),
            }
            for key, entry in cache.memory_items()
        ]

        persistent = []
        if cache.store is not None:
            for record in await cache.store.list_all():
                item: dict[str, Any] = {
                    "key": strip_prefix(record.key, cache.prefix),
                    "timestamp": record.timestamp,
                    "metadata": record.metadata,
                    "size": serialized_size(record),
                }
                if isinstance(record.value, CacheEntry):
                    item["expires_at"] = record.value.expires_at
                persistent.append(item)

        return {"memory": memory, "persistent": persistent}

    async def clear_all(self) -> str:
        """Empty both tiers (namespaced durable keys only)."""
        if not self._enabled:
            return NOT_ENABLED
        await self._cache.clear()
        return "Cache cleared"
