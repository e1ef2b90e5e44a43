"""Fetch-with-retry using exponential backoff.

:func:`fetch_with_retry` calls a transport, and on any failure waits and
tries again with the delay doubled: 300 ms, 600 ms, 1200 ms, ... There is no
jitter. The wait goes through an awaitable ``sleep`` (``asyncio.sleep`` by
default) so other cache operations keep running while a request backs off.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from fetchcache.config import DEFAULT_RETRY_DELAY_MS
from fetchcache.exceptions import TransportError
from fetchcache.models import RequestDescriptor

logger = logging.getLogger(__name__)

Transport = Callable[[RequestDescriptor], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[Any]]


def backoff_delays(retries: int, base_delay: float, max_delay: Optional[float] = None) -> list[float]:
    """Return the delays (in ms) slept before each of *retries* retries.

    Example::

        >>> backoff_delays(3, 300)
        [300, 600, 1200]
    """
    delays = []
    delay = base_delay
    for _ in range(retries):
        delays.append(min(delay, max_delay) if max_delay is not None else delay)
        delay *= 2
    return delays


async def fetch_with_retry(
    transport: Transport,
    request: RequestDescriptor,
    retries: int,
    base_delay: float = DEFAULT_RETRY_DELAY_MS,
    *,
    sleep: Sleep = asyncio.sleep,
    max_delay: Optional[float] = None,
) -> Any:
    """Perform *request* through *transport*, retrying failed attempts.

    Any exception raised by the transport counts as a failure; there is no
    branching on error type or status code.

    Args:
        transport: Async callable performing one request.
        request: The request to perform.
        retries: Additional attempts after the first failure. ``0`` means
            exactly one attempt.
        base_delay: Delay in milliseconds before the first retry.
        sleep: Awaitable taking seconds, injectable for tests.
        max_delay: Optional cap in milliseconds applied to each delay.

    Returns:
        Whatever the transport returned on the first successful attempt.

    Raises:
        TransportError: When the last allowed attempt fails. The transport's
            exception is chained as ``__cause__``.
    """
    delays = backoff_delays(retries, base_delay, max_delay)
    attempt = 0
    while True:
        try:
            return await transport(request)
        except Exception as exc:
            if attempt >= retries:
                raise TransportError(
                    f"Request to {request.url} failed after {attempt + 1} attempt(s): {exc}",
                    cause=exc,
                    attempts=attempt + 1,
                ) from exc
            delay = delays[attempt]
            attempt += 1
            logger.debug(
                "Request to %s failed: %s, retrying in %sms (attempt %d/%d)",
                request.url, exc, delay, attempt, retries,
            )
            await sleep(delay / 1000)
