"""Adapter for caller-supplied store objects.

A custom store is any object with ``get``, ``set``, ``delete`` and ``clear``
methods plus ``list_all`` or ``get_all``. Methods may be plain or ``async``.
``get`` may return a full record (model or dict) or just the stored value;
``get_all`` / ``list_all`` return records as models or dicts with at least
``key`` and ``value``.
"""

from __future__ import annotations

import inspect
from typing import Any, Optional

from fetchcache.clock import Clock
from fetchcache.models import CacheEntry, PersistentRecord
from fetchcache.storage.base import PersistentStore


def _to_record(key: str, item: Any) -> Optional[PersistentRecord]:
    if item is None:
        return None
    if isinstance(item, PersistentRecord):
        return item
    if isinstance(item, dict) and "value" in item and ("key" in item or "timestamp" in item):
        return PersistentRecord(
            key=item.get("key", key),
            value=item["value"],
            metadata=item.get("metadata") or {},
            timestamp=item.get("timestamp", 0),
        )
    # Plain values carry no metadata or timestamp of their own.
    return PersistentRecord(key=key, value=item, timestamp=0)


class CustomStoreAdapter(PersistentStore):
    """Expose a caller-supplied store through the :class:`PersistentStore` API.

    Args:
        store: The caller's store object.
        clock: Millisecond clock used for record timestamps.
    """

    name = "custom"

    def __init__(self, store: Any, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self._store = store

    async def _call(self, method: str, *args: Any) -> Any:
        result = getattr(self._store, method)(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _get(self, key: str) -> Optional[PersistentRecord]:
        record = _to_record(key, await self._call("get", key))
        if record is not None and isinstance(record.value, dict) and "expires_at" in record.value:
            record = record.model_copy(update={"value": CacheEntry.model_validate(record.value)})
        return record

    async def _set(self, record: PersistentRecord) -> Any:
        return await self._call("set", record.key, record.value, record.metadata)

    async def _delete(self, key: str) -> Any:
        return await self._call("delete", key)

    async def _clear(self) -> Any:
        return await self._call("clear")

    async def _keys(self) -> list[str]:
        if hasattr(self._store, "keys"):
            return list(await self._call("keys") or [])
        return await super()._keys()

    async def _list_all(self) -> list[PersistentRecord]:
        method = "list_all" if hasattr(self._store, "list_all") else "get_all"
        items = await self._call(method) or []
        records = []
        for item in items:
            key = item.key if isinstance(item, PersistentRecord) else item.get("key", "")
            record = _to_record(key, item)
            if record is not None:
                records.append(record)
        return records
