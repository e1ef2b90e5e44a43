"""Asynchronous object store persisted with :mod:`diskcache`.

:class:`DiskStore` is the default durable backend in pro mode. Each record is
stored whole under its key in a :class:`diskcache.Cache` directory; the
blocking SQLite calls run in a worker thread via :func:`asyncio.to_thread` so
that the event loop keeps serving other requests.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional, Union

import diskcache

from fetchcache.clock import Clock
from fetchcache.exceptions import StorageUnavailable
from fetchcache.models import PersistentRecord
from fetchcache.storage.base import PersistentStore


class DiskStore(PersistentStore):
    """Disk-backed record store.

    Args:
        directory: Directory of the underlying :class:`diskcache.Cache`.
        clock: Millisecond clock used for record timestamps.

    Raises:
        StorageUnavailable: If the directory cannot be opened.

    Example::

        store = DiskStore("/tmp/fetchcache-store")
        await store.set("fetchcache:/users", entry, {"last_accessed": 0})
        records = await store.list_all()
    """

    name = "disk"

    def __init__(self, directory: Union[str, Path], clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self._directory = Path(directory)
        try:
            self._cache = diskcache.Cache(str(self._directory))
        except Exception as exc:
            raise StorageUnavailable(f"Cannot open disk store at {self._directory}: {exc}") from exc

    @property
    def directory(self) -> Path:
        return self._directory

    async def _get(self, key: str) -> Optional[PersistentRecord]:
        item = await asyncio.to_thread(self._cache.get, key)
        return item if isinstance(item, PersistentRecord) else None

    async def _set(self, record: PersistentRecord) -> bool:
        return await asyncio.to_thread(self._cache.set, record.key, record)

    async def _delete(self, key: str) -> None:
        await asyncio.to_thread(self._cache.delete, key)

    async def _clear(self) -> None:
        await asyncio.to_thread(self._cache.clear)

    async def _list_all(self) -> list[PersistentRecord]:
        return await asyncio.to_thread(self._scan)

    async def _keys(self) -> list[str]:
        return await asyncio.to_thread(
            lambda: [key for key in self._cache.iterkeys() if isinstance(key, str)]
        )

    def _scan(self) -> list[PersistentRecord]:
        records = []
        for key in self._cache.iterkeys():
            # Keys can disappear between iteration and lookup.
            item = self._cache.get(key)
            if isinstance(item, PersistentRecord):
                records.append(item)
        return records

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        self._cache.close()
