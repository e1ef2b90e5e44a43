"""Durable-tier storage backends for fetchcache.

Every backend implements :class:`~fetchcache.storage.base.PersistentStore`,
whose public methods never raise: failures are logged and reported as
``None``, ``False`` or an empty list, because the durable tier is always
optional relative to the in-memory fast tier.

* :class:`NamespaceStore` -- records kept in a synchronous key/value
  namespace (:class:`MemoryNamespace` or the diskcache-backed
  :class:`DiskNamespace`). Used by the default, non-pro cache.
* :class:`DiskStore` -- an asynchronous object store over
  :class:`diskcache.Cache`.
* :class:`MemoryStore` -- an in-process store.
* :class:`CustomStoreAdapter` -- wraps a caller-supplied store object.
"""

from fetchcache.storage.base import KeyValueNamespace, PersistentStore
from fetchcache.storage.custom import CustomStoreAdapter
from fetchcache.storage.disk import DiskStore
from fetchcache.storage.memory import MemoryStore
from fetchcache.storage.namespace import DiskNamespace, MemoryNamespace, NamespaceStore

__all__ = [
    "CustomStoreAdapter",
    "DiskNamespace",
    "DiskStore",
    "KeyValueNamespace",
    "MemoryNamespace",
    "MemoryStore",
    "NamespaceStore",
    "PersistentStore",
]
