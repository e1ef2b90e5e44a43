"""Strategy-driven eviction for the bounded durable tier.

An :class:`EvictionStrategy` does three things:

* ranks records for removal (:meth:`~EvictionStrategy.rank_key`; lowest
  first, ties keep their listing order because the sort is stable),
* rewrites a record's metadata when it is read from the durable tier
  (:meth:`~EvictionStrategy.on_read`),
* produces the metadata for a record being written
  (:meth:`~EvictionStrategy.on_write`).

The built-in strategies are registered in :data:`STRATEGIES` and looked up
once, at configuration time, with :func:`get_strategy`.

:func:`evict` trims a store down to a bound; :class:`EvictionManager` binds a
strategy and bound together and serialises passes with an
:class:`asyncio.Lock`, so a pass triggered by one write never interleaves its
scan with another pass on the same manager.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from fetchcache.config import parse_strategy
from fetchcache.models import PersistentRecord, StrategyName
from fetchcache.storage.base import PersistentStore

logger = logging.getLogger(__name__)


class EvictionStrategy(ABC):
    """Base class for eviction policies."""

    name: StrategyName

    @abstractmethod
    def rank_key(self, record: PersistentRecord) -> float:
        """Return the keep priority of *record*; lowest is evicted first."""

    def on_read(self, metadata: dict[str, Any], now: float) -> dict[str, Any]:
        """Return the metadata to persist after *metadata*'s record was read."""
        return metadata

    def on_write(self, previous: Optional[dict[str, Any]], now: float) -> dict[str, Any]:
        """Return the metadata for a record being written.

        Args:
            previous: Metadata of the record being replaced, or ``None`` for
                a new key.
            now: Current time in milliseconds.
        """
        return {}

    def rank(self, records: list[PersistentRecord]) -> list[PersistentRecord]:
        """Return *records* ordered from first-to-evict to last."""
        return sorted(records, key=self.rank_key)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name.value}>"


class LRUStrategy(EvictionStrategy):
    """Least recently used: evicts the record read or written longest ago."""

    name = StrategyName.LRU

    def rank_key(self, record: PersistentRecord) -> float:
        last_accessed = record.metadata.get("last_accessed")
        return record.timestamp if last_accessed is None else last_accessed

    def on_read(self, metadata: dict[str, Any], now: float) -> dict[str, Any]:
        return {**metadata, "last_accessed": now}

    def on_write(self, previous: Optional[dict[str, Any]], now: float) -> dict[str, Any]:
        return {"last_accessed": now}


class LFUStrategy(EvictionStrategy):
    """Least frequently used: evicts the record with the fewest durable reads."""

    name = StrategyName.LFU

    def rank_key(self, record: PersistentRecord) -> float:
        return record.metadata.get("access_count") or 0

    def on_read(self, metadata: dict[str, Any], now: float) -> dict[str, Any]:
        return {**metadata, "access_count": (metadata.get("access_count") or 0) + 1}

    def on_write(self, previous: Optional[dict[str, Any]], now: float) -> dict[str, Any]:
        # Refreshing a value keeps its read history.
        count = (previous or {}).get("access_count") or 0
        return {"access_count": count}


class FIFOStrategy(EvictionStrategy):
    """First in, first out: evicts the record with the oldest write timestamp."""

    name = StrategyName.FIFO

    def rank_key(self, record: PersistentRecord) -> float:
        return record.timestamp


STRATEGIES: dict[StrategyName, EvictionStrategy] = {
    StrategyName.LRU: LRUStrategy(),
    StrategyName.LFU: LFUStrategy(),
    StrategyName.FIFO: FIFOStrategy(),
}


def get_strategy(name: Union[StrategyName, str]) -> EvictionStrategy:
    """Return the registered strategy for *name*.

    Raises:
        InvalidConfiguration: If *name* is not a known strategy.
    """
    return STRATEGIES[parse_strategy(name)]


async def evict(store: PersistentStore, strategy: EvictionStrategy, bound: int) -> int:
    """Trim *store* to at most *bound* records, lowest-ranked first.

    Deletion is best-effort: a failed delete is logged and skipped, and the
    remaining candidates are still removed. Calling this on a store already
    within its bound is a no-op.

    Returns:
        The number of records actually deleted.
    """
    records = await store.list_all()
    excess = len(records) - bound
    if excess <= 0:
        return 0

    candidates = strategy.rank(records)[:excess]
    removed = 0
    for record in candidates:
        if await store.delete(record.key):
            removed += 1
        else:
            logger.warning("Eviction could not delete %r, skipping", record.key)
    logger.debug(
        "Evicted %d of %d record(s) using %s (bound %d)",
        removed, len(records), strategy.name.value, bound,
    )
    return removed


class EvictionManager:
    """Runs :func:`evict` for one strategy and bound, one pass at a time.

    Args:
        strategy: The active eviction strategy.
        max_entries: Upper bound on the number of durable records.
    """

    def __init__(self, strategy: EvictionStrategy, max_entries: int) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.strategy = strategy
        self.max_entries = max_entries
        self._lock = asyncio.Lock()
        self.passes = 0

    async def evict(self, store: PersistentStore) -> int:
        """Trim *store* to :attr:`max_entries`. Never raises."""
        async with self._lock:
            self.passes += 1
            try:
                return await evict(store, self.strategy, self.max_entries)
            except Exception as exc:
                logger.warning("Eviction pass failed: %s", exc)
                return 0
