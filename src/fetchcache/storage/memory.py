"""In-process record store."""

from __future__ import annotations

from typing import Optional

from fetchcache.clock import Clock
from fetchcache.models import PersistentRecord
from fetchcache.storage.base import PersistentStore


class MemoryStore(PersistentStore):
    """Keeps records in a dict; nothing survives the process.

    Useful when only the bounded, strategy-ranked tier is wanted, and in tests.
    """

    name = "memory"

    def __init__(self, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self._records: dict[str, PersistentRecord] = {}

    async def _get(self, key: str) -> Optional[PersistentRecord]:
        return self._records.get(key)

    async def _set(self, record: PersistentRecord) -> None:
        self._records[record.key] = record

    async def _delete(self, key: str) -> None:
        self._records.pop(key, None)

    async def _clear(self) -> None:
        self._records.clear()

    async def _list_all(self) -> list[PersistentRecord]:
        return list(self._records.values())

    async def _keys(self) -> list[str]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)
