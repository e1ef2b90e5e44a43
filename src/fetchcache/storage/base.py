"""Storage interfaces for the durable tier.

Two interfaces live here:

* :class:`PersistentStore` -- the asynchronous record store the coordinator
  and the eviction manager talk to. Subclasses implement the underscore
  methods; the public methods wrap them so that a backend failure is logged
  and turned into ``None`` / ``False`` / ``[]`` instead of propagating.
* :class:`KeyValueNamespace` -- a synchronous string-keyed namespace shared
  with unrelated data (the model of a browser's local storage), used by
  :class:`~fetchcache.storage.namespace.NamespaceStore`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from fetchcache.clock import Clock, now_ms
from fetchcache.models import PersistentRecord

logger = logging.getLogger(__name__)


class PersistentStore(ABC):
    """Base class for durable-tier backends.

    Args:
        clock: Returns the current time in milliseconds; used to stamp
            :attr:`~fetchcache.models.PersistentRecord.timestamp` on writes.
    """

    name: str = "store"

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or now_ms

    # ------------------------------------------------------------------ #
    # Public, fail-soft API
    # ------------------------------------------------------------------ #

    async def get(self, key: str) -> Optional[PersistentRecord]:
        """Return the record stored under *key*, or ``None`` if absent or unreadable."""
        try:
            return await self._get(key)
        except Exception as exc:
            logger.warning("%s store: reading %r failed: %s", self.name, key, exc)
            return None

    async def set(self, key: str, value: Any, metadata: Optional[dict[str, Any]] = None) -> bool:
        """Store *value* under *key*, stamping the record with the current time.

        Returns:
            ``True`` on success, ``False`` if the backend failed.
        """
        record = PersistentRecord(
            key=key,
            value=value,
            metadata=dict(metadata or {}),
            timestamp=self._clock(),
        )
        try:
            return await self._set(record) is not False
        except Exception as exc:
            logger.warning("%s store: writing %r failed: %s", self.name, key, exc)
            return False

    async def delete(self, key: str) -> bool:
        """Remove *key*. Deleting a missing key counts as success."""
        try:
            return await self._delete(key) is not False
        except Exception as exc:
            logger.warning("%s store: deleting %r failed: %s", self.name, key, exc)
            return False

    async def clear(self) -> bool:
        """Remove every record this store can see."""
        try:
            return await self._clear() is not False
        except Exception as exc:
            logger.warning("%s store: clear failed: %s", self.name, exc)
            return False

    async def list_all(self) -> list[PersistentRecord]:
        """Return every record, or an empty list if the backend cannot be scanned."""
        try:
            return list(await self._list_all())
        except Exception as exc:
            logger.warning("%s store: listing records failed: %s", self.name, exc)
            return []

    async def keys(self) -> list[str]:
        """Return every key held by the store, whatever its value.

        Unlike :meth:`list_all`, keys whose values cannot be decoded into a
        record are included, so callers can remove them.
        """
        try:
            return list(await self._keys())
        except Exception as exc:
            logger.warning("%s store: listing keys failed: %s", self.name, exc)
            return []

    def close(self) -> None:
        """Release backend resources. The default implementation does nothing."""

    # ------------------------------------------------------------------ #
    # Backend hooks
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def _get(self, key: str) -> Optional[PersistentRecord]:
        ...

    @abstractmethod
    async def _set(self, record: PersistentRecord) -> Optional[bool]:
        ...

    @abstractmethod
    async def _delete(self, key: str) -> Optional[bool]:
        ...

    @abstractmethod
    async def _clear(self) -> Optional[bool]:
        ...

    @abstractmethod
    async def _list_all(self) -> Iterable[PersistentRecord]:
        ...

    async def _keys(self) -> Iterable[str]:
        return [record.key for record in await self._list_all()]


class KeyValueNamespace(ABC):
    """A synchronous key/value namespace, possibly shared with other data."""

    @abstractmethod
    def get_item(self, key: str) -> Any:
        """Return the value under *key* or ``None``."""

    @abstractmethod
    def set_item(self, key: str, value: Any) -> None:
        """Store *value* under *key*."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove *key* if present."""

    @abstractmethod
    def keys(self) -> list[str]:
        """Return a snapshot of all keys in the namespace."""
