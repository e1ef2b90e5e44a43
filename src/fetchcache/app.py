"""Typer application and CLI entry point for fetchcache.

The ``fetchcache`` command runs requests through a disk-backed pro cache so
that cached responses, strategy metadata, and eviction survive between
invocations:

* ``fetchcache get URL -P key=value`` -- fetch through the cache.
* ``fetchcache stats`` / ``fetchcache list`` -- inspector output.
* ``fetchcache clear [KEY]`` -- drop one key or every cached entry.

:func:`main` is the console-script entry point declared in
``pyproject.toml``. Unhandled exceptions are written to a crash log under
the cache directory.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from fetchcache import __version__
from fetchcache.exit_codes import EXIT_GENERIC_FAILURE
from fetchcache.output import (
    OutputFormat,
    OutputManager,
    debug,
    error,
    format_response,
    get_output,
    info,
    print_table,
    set_output,
    success,
)

app = typer.Typer(
    name="fetchcache",
    help="Fetch HTTP resources through a persistent TTL cache.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def create_transport() -> Any:
    """Return the transport used by CLI commands."""
    from fetchcache.transport import HttpxTransport

    return HttpxTransport()


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"fetchcache {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    cache_dir: Optional[Path] = typer.Option(
        None, "--cache-dir", help="Directory of the persistent store."
    ),
    strategy: str = typer.Option("LRU", "--strategy", help="Eviction strategy: LRU, LFU or FIFO."),
    max_entries: int = typer.Option(
        1000, "--max-entries", min=1, help="Maximum number of persisted entries."
    ),
) -> None:
    """Install the output manager and logging, and stash shared options in ``ctx.obj``."""
    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    ctx.ensure_object(dict)
    ctx.obj["cache_dir"] = cache_dir
    ctx.obj["strategy"] = strategy
    ctx.obj["max_entries"] = max_entries


async def _open_cache(settings: dict[str, Any], transport: Any):  # noqa: ANN202
    """Create a cache whose durable tier is the disk store in the cache directory."""
    from fetchcache.cache import RequestCache
    from fetchcache.config import get_cache_dir

    directory = settings.get("cache_dir") or get_cache_dir()
    cache = RequestCache(transport)
    await cache.enable_pro(
        store="disk",
        directory=Path(directory) / "store",
        strategy=settings.get("strategy"),
        max_entries=settings.get("max_entries"),
        enable_inspector=True,
    )
    return cache


def _parse_params(pairs: list[str]) -> dict[str, str]:
    """Turn ``key=value`` strings into a dict, preserving their order."""
    params: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}", param_hint="--param")
        params[key] = value
    return params


@app.command("get")
def get_command(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to fetch."),
    param: list[str] = typer.Option(
        [], "--param", "-P", help="Query parameter as key=value (repeatable)."
    ),
    ttl: Optional[int] = typer.Option(None, "--ttl", min=0, help="Freshness window in ms."),
    retry: Optional[int] = typer.Option(None, "--retry", min=0, help="Retries after a failure."),
    no_swr: bool = typer.Option(
        False, "--no-swr", help="Refetch expired entries instead of serving them stale."
    ),
) -> None:
    """Fetch URL, answering from the cache when the entry is still fresh.

    Example::

        fetchcache get https://api.example.com/users -P page=2 --ttl 30000
    """
    from fetchcache.exceptions import FetchCacheError
    from fetchcache.models import CachedResponse, RequestDescriptor

    descriptor = RequestDescriptor(url=url, params=_parse_params(param) or None)
    overrides: dict[str, Any] = {"ttl": ttl, "retry": retry}
    if no_swr:
        overrides["stale_while_revalidate"] = False

    async def _run() -> tuple[Any, dict[str, int]]:
        transport = create_transport()
        cache = await _open_cache(ctx.obj, transport)
        try:
            payload = await cache.fetch(descriptor, **overrides)
            return payload, dict(cache.counters)
        finally:
            await cache.aclose()
            aclose = getattr(transport, "aclose", None)
            if aclose is not None:
                await aclose()

    try:
        payload, counters = asyncio.run(_run())
    except FetchCacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if counters["hits_fresh"]:
        debug("cache: fresh")
    elif counters["hits_stale"]:
        debug("cache: stale")
    else:
        debug("cache: miss")

    if isinstance(payload, CachedResponse):
        info(f"HTTP {payload.status_code}")
        if payload.body is not None:
            format_response(payload.body)
    elif payload is not None:
        format_response(payload)


@app.command("stats")
def stats_command(ctx: typer.Context) -> None:
    """Show entry counts, the store, and the eviction strategy."""

    async def _run() -> Any:
        cache = await _open_cache(ctx.obj, create_transport())
        try:
            return await cache.inspector.stats()
        finally:
            await cache.aclose()

    format_response(asyncio.run(_run()))


@app.command("list")
def list_command(ctx: typer.Context) -> None:
    """List persisted entries with their size and strategy metadata."""

    async def _run() -> Any:
        cache = await _open_cache(ctx.obj, create_transport())
        try:
            return await cache.inspector.list_entries()
        finally:
            await cache.aclose()

    listing = asyncio.run(_run())
    if get_output().format == OutputFormat.JSON:
        format_response(listing)
        return

    rows = [
        [
            entry["key"],
            str(entry["size"]),
            datetime.fromtimestamp(entry["timestamp"] / 1000).isoformat(timespec="seconds"),
            ", ".join(f"{k}={v}" for k, v in entry["metadata"].items()) or "-",
        ]
        for entry in listing["persistent"]
    ]
    print_table(["Key", "Bytes", "Written", "Metadata"], rows, title=f"Cached entries ({len(rows)})")


@app.command("clear")
def clear_command(
    ctx: typer.Context,
    key: Optional[str] = typer.Argument(None, help="Cache key to remove; all entries when omitted."),
) -> None:
    """Remove one cached entry, or all of them."""

    async def _run() -> None:
        cache = await _open_cache(ctx.obj, create_transport())
        try:
            if key is None:
                await cache.inspector.clear_all()
            else:
                await cache.clear(key)
        finally:
            await cache.aclose()

    asyncio.run(_run())
    success("Cache cleared" if key is None else f"Removed {key}")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback under the cache directory and return its path."""
    from fetchcache.config import get_cache_dir

    logs_dir = get_cache_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``fetchcache`` console script.

    :class:`~fetchcache.exceptions.FetchCacheError` instances cause a clean
    exit with the error's ``exit_code``; any other exception produces a
    crash log and a generic failure exit.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from fetchcache.exceptions import FetchCacheError

        if isinstance(exc, FetchCacheError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
