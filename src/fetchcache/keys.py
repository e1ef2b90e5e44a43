"""Deterministic cache key derivation.

A cache key is the request URL followed by the compact JSON form of its query
parameters. Only a missing ``params`` leaves the URL bare; an empty mapping
appends ``{}``. Parameters are serialised in insertion order and are *not*
sorted, so ``{"a": 1, "b": 2}`` and ``{"b": 2, "a": 1}`` produce different
keys. This is a known limitation kept for compatibility with keys already
written to durable storage.
"""

from __future__ import annotations

import json
from typing import Any, Union

from fetchcache.config import PREFIX
from fetchcache.models import RequestDescriptor


def derive_cache_key(request: Union[RequestDescriptor, str, dict[str, Any]]) -> str:
    """Return the cache key for *request*.

    Example::

        >>> derive_cache_key(RequestDescriptor(url="/users", params={"page": 2}))
        '/users{"page":2}'
    """
    descriptor = RequestDescriptor.coerce(request)
    if descriptor.params is None:
        return descriptor.url
    serialised = json.dumps(
        descriptor.params, separators=(",", ":"), ensure_ascii=False, default=str
    )
    return f"{descriptor.url}{serialised}"


def durable_key(key: str, prefix: str = PREFIX) -> str:
    """Namespace a cache key for the durable tier."""
    return f"{prefix}{key}"


def strip_prefix(durable: str, prefix: str = PREFIX) -> str:
    """Inverse of :func:`durable_key`; keys without the prefix are returned unchanged."""
    if durable.startswith(prefix):
        return durable[len(prefix):]
    return durable
