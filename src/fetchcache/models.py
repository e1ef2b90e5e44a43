"""Canonical Pydantic models shared across all fetchcache modules.

This is the single source of truth for data shapes in the project. The models
fall into three groups:

**Request models** -- what a caller hands to the cache and what the default
transport returns:
    :class:`RequestDescriptor` and :class:`CachedResponse`.

**Configuration models** -- per-call and pro-mode options, resolved by
:mod:`fetchcache.config`:
    :class:`CacheOptions`, :class:`ProOptions`, :class:`StrategyName` and
    :class:`StoreKind`.

**Storage models** -- what the two tiers hold:
    :class:`CacheEntry` (fast tier) and :class:`PersistentRecord` (durable
    tier).

All timestamps are absolute milliseconds since the Unix epoch.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# --- Request models ---


class RequestDescriptor(BaseModel):
    """Logical description of one upstream request.

    Only ``url`` and ``params`` take part in cache key derivation (see
    :func:`~fetchcache.keys.derive_cache_key`); ``method`` and ``headers``
    are passed through to the transport untouched.

    Example::

        RequestDescriptor(url="https://api.example.com/users", params={"page": 2})
    """

    url: str
    method: str = Field(default="GET", description="HTTP method for the transport")
    params: Optional[dict[str, Any]] = Field(
        default=None, description="Query parameters, serialised in insertion order"
    )
    headers: Optional[dict[str, str]] = None

    @classmethod
    def coerce(cls, request: Union[RequestDescriptor, str, dict[str, Any]]) -> RequestDescriptor:
        """Accept a descriptor, a bare URL string, or a dict of descriptor fields."""
        if isinstance(request, cls):
            return request
        if isinstance(request, str):
            return cls(url=request)
        return cls.model_validate(request)


class CachedResponse(BaseModel):
    """A response payload as produced by :class:`~fetchcache.transport.HttpxTransport`."""

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None


# --- Configuration models ---


class StrategyName(str, enum.Enum):
    """Eviction strategies understood by :mod:`fetchcache.eviction`."""

    LRU = "LRU"
    LFU = "LFU"
    FIFO = "FIFO"


class StoreKind(str, enum.Enum):
    """Durable backends selectable in pro mode."""

    DISK = "disk"
    MEMORY = "memory"
    CUSTOM = "custom"


class CacheOptions(BaseModel):
    """Per-call cache options.

    Multi-word options also accept their camelCase names (``staleWhileRevalidate``).
    Unknown keys are dropped; :func:`~fetchcache.config.resolve_options` logs
    a warning naming them.
    """

    model_config = ConfigDict(extra="ignore")

    ttl: int = Field(default=60000, ge=0, description="Freshness window in milliseconds")
    stale_while_revalidate: bool = Field(
        default=True,
        validation_alias=AliasChoices("stale_while_revalidate", "staleWhileRevalidate"),
        description="Serve stale entries while refreshing in the background",
    )
    retry: int = Field(default=2, ge=0, description="Extra attempts after the first failure")
    use_durable_tier: bool = Field(
        default=True,
        validation_alias=AliasChoices("use_durable_tier", "useDurableTier"),
        description="Whether the durable tier takes part in lookups and writes",
    )


class ProOptions(BaseModel):
    """Options for :meth:`~fetchcache.cache.RequestCache.enable_pro`.

    ``store`` and ``strategy`` are left unvalidated here so that
    :func:`~fetchcache.config.resolve_pro_options` can fall back to the
    defaults with a warning instead of failing validation. As with
    :class:`CacheOptions`, camelCase names such as ``maxEntries`` are accepted.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    store: Any = Field(default=StoreKind.DISK.value, description="disk, memory or custom")
    strategy: Any = Field(default=StrategyName.LRU.value, description="LRU, LFU or FIFO")
    max_entries: int = Field(
        default=1000,
        gt=0,
        validation_alias=AliasChoices("max_entries", "maxEntries"),
        description="Bound of the durable tier",
    )
    enable_inspector: bool = Field(
        default=False, validation_alias=AliasChoices("enable_inspector", "enableInspector")
    )
    license_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("license_key", "licenseKey")
    )
    directory: Optional[Path] = Field(
        default=None, description="Location of the disk store (defaults to the cache dir)"
    )
    custom_store: Any = Field(
        default=None,
        validation_alias=AliasChoices("custom_store", "customStore"),
        description="Caller-supplied store object, used when store='custom'",
    )


# --- Storage models ---


class CacheEntry(BaseModel):
    """A fast-tier entry. Always replaced whole, never partially updated."""

    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Return True once *now* is strictly past :attr:`expires_at`."""
        return now > self.expires_at


class PersistentRecord(BaseModel):
    """A durable-tier record.

    ``metadata`` is opaque to the coordinator and shaped by the active
    eviction strategy: ``{"last_accessed": ms}`` for LRU,
    ``{"access_count": n}`` for LFU and ``{}`` for FIFO.
    """

    key: str
    value: Any
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: float
