"""Default transport collaborator built on :class:`httpx.AsyncClient`.

A transport is any async callable taking a
:class:`~fetchcache.models.RequestDescriptor` and returning a response
payload, or raising on failure. The cache never inspects the error: every
exception counts as a failed attempt for the retry loop.

:class:`HttpxTransport` performs one request, treats non-2xx statuses as
failures (via :meth:`httpx.Response.raise_for_status`) and returns a
:class:`~fetchcache.models.CachedResponse` so that what gets cached is plain,
picklable data rather than a live :class:`httpx.Response`.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from fetchcache.models import CachedResponse, RequestDescriptor


def extract_response_data(response: httpx.Response) -> Any:
    """Extract the body from an HTTP response.

    Attempts to parse the body as JSON first. If that fails (e.g. the
    response is HTML or plain text), returns the raw text. Returns ``None``
    for responses with no content.
    """
    if not response.content:
        return None

    try:
        return response.json()
    except ValueError:
        pass

    return response.text


class HttpxTransport:
    """Perform requests with :class:`httpx.AsyncClient`.

    Args:
        client: An existing client to use. When ``None``, a client is created
            on first use and closed by :meth:`aclose`.
        timeout: Per-request timeout in seconds for a created client.
        verify_ssl: Verify SSL certificates for a created client.

    Example::

        async with HttpxTransport() as transport:
            cache = RequestCache(transport)
            response = await cache.fetch("https://api.example.com/users")
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        verify_ssl: bool = True,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._verify_ssl = verify_ssl

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> HttpxTransport:
        self._ensure_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Transport call
    # ------------------------------------------------------------------ #

    async def __call__(self, request: RequestDescriptor) -> CachedResponse:
        """Perform *request* once.

        Raises:
            httpx.HTTPStatusError: On a non-2xx response.
            httpx.HTTPError: On connection, timeout or protocol failures.
        """
        client = self._ensure_client()
        response = await client.request(
            request.method.upper(),
            request.url,
            params=request.params,
            headers=request.headers,
        )
        response.raise_for_status()
        return CachedResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=extract_response_data(response),
        )

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                verify=self._verify_ssl,
                follow_redirects=True,
            )
        return self._client
