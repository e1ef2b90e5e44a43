"""Request cache coordinator with a fast tier, a durable tier, and revalidation.

:class:`RequestCache` sits in front of a transport and decides, per request,
whether to answer from memory, from the durable tier, or from the network:

* **Fresh hit** -- the cached value is returned without any I/O.
* **Stale hit** with ``stale_while_revalidate`` -- the stale value is
  returned immediately and a background task repeats the fetch with zero
  retries. Its failures are logged and discarded.
* **Miss**, or stale without SWR -- the request is performed with
  retry-and-backoff, the result is written to both tiers, and a background
  eviction pass runs when a bounded store is active.

Background work (revalidations and eviction passes) runs as detached
:mod:`asyncio` tasks owned by the cache instance; :meth:`RequestCache.drain`
waits for all of them.

Example::

    async with HttpxTransport() as transport:
        cache = RequestCache(transport)
        await cache.enable_pro(strategy="LFU", max_entries=500)
        users = await cache.fetch(
            RequestDescriptor(url="https://api.example.com/users", params={"page": 1}),
            ttl=30_000,
        )
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, Optional, Union

from pydantic import ValidationError

from fetchcache.clock import Clock, now_ms
from fetchcache.config import (
    DEFAULT_RETRY_DELAY_MS,
    PREFIX,
    get_cache_dir,
    resolve_license_key,
    resolve_options,
    resolve_pro_options,
)
from fetchcache.eviction import EvictionManager, EvictionStrategy, get_strategy
from fetchcache.exceptions import ActivationError, StorageUnavailable
from fetchcache.inspector import CacheInspector
from fetchcache.keys import derive_cache_key, durable_key
from fetchcache.models import (
    CacheEntry,
    CacheOptions,
    ProOptions,
    RequestDescriptor,
    StoreKind,
)
from fetchcache.retry import Sleep, Transport, fetch_with_retry
from fetchcache.storage import (
    CustomStoreAdapter,
    DiskNamespace,
    DiskStore,
    KeyValueNamespace,
    MemoryStore,
    NamespaceStore,
    PersistentStore,
)

logger = logging.getLogger(__name__)

Activator = Callable[[Optional[str]], bool]
RequestLike = Union[RequestDescriptor, str, dict[str, Any]]


class RequestCache:
    """A request-result cache in front of a transport.

    Args:
        transport: Async callable performing one request. Defaults to a
            :class:`~fetchcache.transport.HttpxTransport`.
        namespace: Key/value namespace backing the default durable tier.
            Defaults to a :class:`~fetchcache.storage.DiskNamespace` in the
            user cache directory, opened on first use.
        store: A ready :class:`~fetchcache.storage.PersistentStore` to use as
            the durable tier instead of a namespace.
        clock: Returns the current time in milliseconds.
        sleep: Awaitable used for retry backoff (takes seconds).
        retry_delay: Delay in milliseconds before the first retry.
        max_retry_delay: Optional cap in milliseconds on each retry delay.
        prefix: Namespace prefix for durable keys.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        *,
        namespace: Optional[KeyValueNamespace] = None,
        store: Optional[PersistentStore] = None,
        clock: Optional[Clock] = None,
        sleep: Sleep = asyncio.sleep,
        retry_delay: float = DEFAULT_RETRY_DELAY_MS,
        max_retry_delay: Optional[float] = None,
        prefix: str = PREFIX,
    ) -> None:
        if transport is None:
            from fetchcache.transport import HttpxTransport

            transport = HttpxTransport()
        self._transport = transport
        self._clock = clock or now_ms
        self._sleep = sleep
        self._retry_delay = retry_delay
        self._max_retry_delay = max_retry_delay
        self._prefix = prefix

        self._memory: dict[str, CacheEntry] = {}
        if store is None:
            store = NamespaceStore(
                namespace if namespace is not None else DiskNamespace(),
                prefix=prefix,
                clock=self._clock,
            )
        self._store: Optional[PersistentStore] = store
        self._strategy: Optional[EvictionStrategy] = None
        self._evictor: Optional[EvictionManager] = None
        self._pro_enabled = False

        self._tasks: set[asyncio.Task] = set()
        self.counters = {
            "hits_fresh": 0,
            "hits_stale": 0,
            "misses": 0,
            "revalidations": 0,
            "revalidation_failures": 0,
        }
        self.inspector = CacheInspector(self)

    # ------------------------------------------------------------------ #
    # Read-only state
    # ------------------------------------------------------------------ #

    @property
    def store(self) -> Optional[PersistentStore]:
        """The durable-tier store, or ``None`` when running fast-tier-only."""
        return self._store

    @property
    def store_name(self) -> str:
        return self._store.name if self._store is not None else "none"

    @property
    def strategy(self) -> Optional[EvictionStrategy]:
        return self._strategy

    @property
    def strategy_name(self) -> str:
        return self._strategy.name.value if self._strategy is not None else "none"

    @property
    def max_entries(self) -> Optional[int]:
        return self._evictor.max_entries if self._evictor is not None else None

    @property
    def pro_enabled(self) -> bool:
        return self._pro_enabled

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def pending_tasks(self) -> int:
        """Number of background revalidations and eviction passes still running."""
        return len(self._tasks)

    def memory_items(self) -> list[tuple[str, CacheEntry]]:
        """Return a snapshot of the fast tier."""
        return list(self._memory.items())

    @staticmethod
    def key_for(request: RequestLike) -> str:
        """Return the cache key *request* is stored under."""
        return derive_cache_key(request)

    # ------------------------------------------------------------------ #
    # Request path
    # ------------------------------------------------------------------ #

    async def fetch(
        self,
        request: RequestLike,
        options: Union[CacheOptions, dict[str, Any], None] = None,
        **overrides: Any,
    ) -> Any:
        """Return the response for *request*, from cache when possible.

        Args:
            request: A :class:`~fetchcache.models.RequestDescriptor`, a URL,
                or a dict of descriptor fields.
            options: Per-call :class:`~fetchcache.models.CacheOptions` or a
                dict of them.
            **overrides: Individual option fields, e.g. ``ttl=5000``.

        Returns:
            The transport's payload, possibly a stale one while a background
            refresh is in flight.

        Raises:
            TransportError: When the value had to be fetched and every
                attempt failed.
        """
        descriptor = RequestDescriptor.coerce(request)
        opts = resolve_options(options, **overrides)
        key = derive_cache_key(descriptor)

        entry = self._memory.get(key)
        if entry is None and opts.use_durable_tier:
            entry = await self._read_durable(key)
            if entry is not None:
                self._memory[key] = entry

        if entry is not None:
            if not entry.is_expired(self._clock()):
                self.counters["hits_fresh"] += 1
                logger.debug("Cache hit (fresh): %s", key)
                return entry.value
            if opts.stale_while_revalidate:
                self.counters["hits_stale"] += 1
                logger.debug("Cache hit (stale, revalidating): %s", key)
                self._spawn(self._revalidate(descriptor, key, opts))
                return entry.value
            logger.debug("Cache expired: %s", key)
        else:
            logger.debug("Cache miss: %s", key)

        self.counters["misses"] += 1
        return await self._refresh(descriptor, key, opts, opts.retry)

    async def _refresh(
        self,
        descriptor: RequestDescriptor,
        key: str,
        opts: CacheOptions,
        retries: int,
    ) -> Any:
        """Fetch from the transport and write the result through both tiers."""
        value = await fetch_with_retry(
            self._transport,
            descriptor,
            retries,
            self._retry_delay,
            sleep=self._sleep,
            max_delay=self._max_retry_delay,
        )
        entry = CacheEntry(value=value, expires_at=self._clock() + opts.ttl)
        self._memory[key] = entry
        if opts.use_durable_tier:
            await self._write_durable(key, entry)
        return value

    async def _revalidate(
        self,
        descriptor: RequestDescriptor,
        key: str,
        opts: CacheOptions,
    ) -> None:
        try:
            await self._refresh(descriptor, key, opts, retries=0)
            self.counters["revalidations"] += 1
            logger.debug("Background revalidation complete: %s", key)
        except Exception as exc:
            # Nobody awaits this task; the stale value was already served.
            self.counters["revalidation_failures"] += 1
            logger.warning("Background revalidation failed: %s - %s", key, exc)

    # ------------------------------------------------------------------ #
    # Durable tier
    # ------------------------------------------------------------------ #

    async def _read_durable(self, key: str) -> Optional[CacheEntry]:
        """Read *key* from the durable tier, applying the strategy read-hook."""
        store = self._store
        if store is None:
            return None
        dkey = durable_key(key, self._prefix)
        record = await store.get(dkey)
        if record is None:
            return None
        try:
            entry = CacheEntry.model_validate(record.value)
        except ValidationError:
            logger.debug("Ignoring malformed durable record %r", dkey)
            return None

        if self._strategy is not None:
            metadata = self._strategy.on_read(record.metadata, self._clock())
            if metadata != record.metadata:
                await store.set(dkey, entry, metadata)
        logger.debug("Restored %s from the %s store", key, store.name)
        return entry

    async def _write_durable(self, key: str, entry: CacheEntry) -> None:
        """Write *entry* to the durable tier, best-effort, then schedule eviction."""
        store = self._store
        if store is None:
            return
        dkey = durable_key(key, self._prefix)
        metadata: dict[str, Any] = {}
        if self._strategy is not None:
            previous = await store.get(dkey)
            metadata = self._strategy.on_write(
                previous.metadata if previous is not None else None, self._clock()
            )
        if not await store.set(dkey, entry, metadata):
            logger.debug("Durable write skipped for %s", key)
            return
        if self._evictor is not None:
            self._spawn(self._evictor.evict(store))

    # ------------------------------------------------------------------ #
    # Invalidation
    # ------------------------------------------------------------------ #

    async def clear(self, key: Optional[str] = None) -> None:
        """Remove one entry, or every namespaced entry, from both tiers.

        Args:
            key: A cache key (see :meth:`key_for`). When ``None``, the fast
                tier is emptied and every durable key carrying the cache's
                prefix is deleted; unrelated keys in a shared namespace are
                left alone.
        """
        store = self._store
        if key is not None:
            self._memory.pop(key, None)
            if store is not None:
                await store.delete(durable_key(key, self._prefix))
            logger.debug("Cleared cache entry %s", key)
            return

        count = len(self._memory)
        self._memory.clear()
        if store is not None:
            for dkey in await store.keys():
                if dkey.startswith(self._prefix):
                    await store.delete(dkey)
        logger.info("Cleared %d in-memory cache entries and the durable tier", count)

    # ------------------------------------------------------------------ #
    # Pro mode
    # ------------------------------------------------------------------ #

    async def enable_pro(
        self,
        options: Union[ProOptions, dict[str, Any], None] = None,
        *,
        activator: Optional[Activator] = None,
        **overrides: Any,
    ) -> bool:
        """Switch the durable tier to a bounded, strategy-ranked store.

        Unknown ``store``/``strategy`` values fall back to ``disk``/``LRU``
        with a warning. If the store cannot be opened the cache keeps
        working fast-tier-only.

        Args:
            options: :class:`~fetchcache.models.ProOptions` or a dict of them.
            activator: Optional callable receiving the license key (or
                ``$FETCHCACHE_LICENSE_KEY``); returning ``False`` or raising
                :class:`~fetchcache.exceptions.ActivationError` aborts.
            **overrides: Individual option fields, e.g. ``strategy="LFU"``.

        Returns:
            ``True`` when pro features were enabled, ``False`` when
            activation was refused.
        """
        opts, store_kind, strategy_name = resolve_pro_options(options, **overrides)

        if activator is not None:
            license_key = resolve_license_key(opts.license_key)
            try:
                activated = bool(activator(license_key))
            except ActivationError as exc:
                logger.warning("Pro activation failed: %s", exc)
                return False
            if not activated:
                logger.warning("Pro features require a valid license key")
                return False

        store = self._open_store(store_kind, opts)
        previous = self._store
        if previous is not None and previous is not store:
            previous.close()

        self._store = store
        self._strategy = get_strategy(strategy_name)
        self._evictor = EvictionManager(self._strategy, opts.max_entries) if store is not None else None
        if opts.enable_inspector:
            self.inspector.enable()
        self._pro_enabled = True

        logger.info(
            "Pro features enabled (store=%s, strategy=%s, max_entries=%d, inspector=%s)",
            self.store_name,
            strategy_name.value,
            opts.max_entries,
            "enabled" if opts.enable_inspector else "disabled",
        )

        if self._evictor is not None and store is not None:
            await self._evictor.evict(store)
        return True

    def _open_store(self, kind: StoreKind, opts: ProOptions) -> Optional[PersistentStore]:
        try:
            if kind is StoreKind.MEMORY:
                return MemoryStore(clock=self._clock)
            if kind is StoreKind.CUSTOM:
                return CustomStoreAdapter(opts.custom_store, clock=self._clock)
            directory = opts.directory or get_cache_dir() / "store"
            return DiskStore(directory, clock=self._clock)
        except (StorageUnavailable, OSError) as exc:
            logger.warning("Durable store unavailable, continuing memory-only: %s", exc)
            return None

    # ------------------------------------------------------------------ #
    # Background tasks and lifecycle
    # ------------------------------------------------------------------ #

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        """Run *coro* as a detached task; its result is never delivered to anyone."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait until every background revalidation and eviction pass has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Drain background work and close the durable store."""
        await self.drain()
        if self._store is not None:
            self._store.close()

    async def __aenter__(self) -> RequestCache:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
