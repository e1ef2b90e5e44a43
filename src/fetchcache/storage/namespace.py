"""Record storage inside a synchronous key/value namespace.

:class:`NamespaceStore` keeps one :class:`~fetchcache.models.PersistentRecord`
per key in a :class:`~fetchcache.storage.base.KeyValueNamespace`. The
namespace may hold unrelated data, so the store only ever lists or clears
keys carrying its prefix.

Two namespaces ship with the package: :class:`MemoryNamespace`, a plain dict,
and :class:`DiskNamespace`, which persists items with :mod:`diskcache` and
opens its directory lazily on first use.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Optional, Union

import diskcache

from fetchcache.clock import Clock
from fetchcache.config import PREFIX, get_cache_dir
from fetchcache.exceptions import StorageUnavailable
from fetchcache.models import PersistentRecord
from fetchcache.storage.base import KeyValueNamespace, PersistentStore


class MemoryNamespace(KeyValueNamespace):
    """Dict-backed namespace. Contents vanish with the process."""

    def __init__(self, items: Optional[dict[str, Any]] = None) -> None:
        self._items: dict[str, Any] = dict(items or {})

    def get_item(self, key: str) -> Any:
        return self._items.get(key)

    def set_item(self, key: str, value: Any) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


class DiskNamespace(KeyValueNamespace):
    """Namespace persisted in a :class:`diskcache.Cache` directory.

    The directory is opened on first access so that constructing a cache
    never touches the filesystem. Without an explicit *directory* the
    ``namespace/`` subdirectory of :func:`~fetchcache.config.get_cache_dir`
    is used.

    Raises:
        StorageUnavailable: From any method, when the directory cannot be
            opened.
    """

    def __init__(self, directory: Union[str, Path, None] = None) -> None:
        self._directory = Path(directory) if directory is not None else None
        self._cache: Optional[diskcache.Cache] = None
        self._lock = threading.Lock()

    @property
    def directory(self) -> Optional[Path]:
        return self._directory

    def _open(self) -> diskcache.Cache:
        with self._lock:
            if self._cache is None:
                try:
                    if self._directory is None:
                        self._directory = get_cache_dir() / "namespace"
                    self._cache = diskcache.Cache(str(self._directory))
                except Exception as exc:
                    raise StorageUnavailable(
                        f"Cannot open namespace at {self._directory}: {exc}"
                    ) from exc
            return self._cache

    def get_item(self, key: str) -> Any:
        return self._open().get(key)

    def set_item(self, key: str, value: Any) -> None:
        self._open().set(key, value)

    def remove_item(self, key: str) -> None:
        self._open().delete(key)

    def keys(self) -> list[str]:
        return list(self._open().iterkeys())

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` if it was opened."""
        with self._lock:
            if self._cache is not None:
                self._cache.close()
                self._cache = None


class NamespaceStore(PersistentStore):
    """:class:`PersistentStore` over a :class:`KeyValueNamespace`.

    Calls into the namespace are synchronous; the base class turns any
    exception they raise into a logged, fail-soft result.

    Args:
        namespace: The backing namespace.
        prefix: Only keys starting with this prefix are listed or cleared.
        clock: Millisecond clock used for record timestamps.
    """

    name = "namespace"

    def __init__(
        self,
        namespace: KeyValueNamespace,
        prefix: str = PREFIX,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(clock)
        self._namespace = namespace
        self._prefix = prefix

    @property
    def namespace(self) -> KeyValueNamespace:
        return self._namespace

    async def _get(self, key: str) -> Optional[PersistentRecord]:
        item = self._namespace.get_item(key)
        return item if isinstance(item, PersistentRecord) else None

    async def _set(self, record: PersistentRecord) -> None:
        self._namespace.set_item(record.key, record)

    async def _delete(self, key: str) -> None:
        self._namespace.remove_item(key)

    async def _clear(self) -> None:
        for key in await self._keys():
            self._namespace.remove_item(key)

    async def _keys(self) -> list[str]:
        return [key for key in self._namespace.keys() if key.startswith(self._prefix)]

    async def _list_all(self) -> list[PersistentRecord]:
        records = []
        for key in self._namespace.keys():
            if not key.startswith(self._prefix):
                continue
            item = self._namespace.get_item(key)
            if isinstance(item, PersistentRecord):
                records.append(item)
        return records

    def close(self) -> None:
        if isinstance(self._namespace, DiskNamespace):
            self._namespace.close()
