"""Shared test fixtures for fetchcache.

Provides a controllable millisecond clock, a recording sleep, scripted
transports, isolated cache directories and output state, and a CLI runner.
These fixtures are automatically discovered by pytest and available to all
test modules without explicit imports.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from fetchcache.cache import RequestCache
from fetchcache.models import RequestDescriptor
from fetchcache.output import OutputFormat, OutputManager, reset_output, set_output
from fetchcache.storage import KeyValueNamespace, MemoryNamespace


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_000_000) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records requested delays (seconds)."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class ScriptedTransport:
    """Transport returning scripted outcomes, then ``"response-<n>"``.

    An outcome that is an exception instance is raised instead of returned.
    """

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[RequestDescriptor] = []

    async def __call__(self, request: RequestDescriptor) -> Any:
        self.calls.append(request)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
        else:
            outcome = f"response-{len(self.calls)}"
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def call_count(self) -> int:
        return len(self.calls)


class FailingTransport:
    """Transport whose every call fails."""

    def __init__(self, exc_factory: Optional[Callable[[], Exception]] = None) -> None:
        self.exc_factory = exc_factory or (lambda: ConnectionError("connection refused"))
        self.call_count = 0

    async def __call__(self, request: RequestDescriptor) -> Any:
        self.call_count += 1
        raise self.exc_factory()


class BrokenNamespace(KeyValueNamespace):
    """Namespace whose every operation raises, like a full or disabled storage."""

    def get_item(self, key: str) -> Any:
        raise OSError("storage disabled")

    def set_item(self, key: str, value: Any) -> None:
        raise OSError("quota exceeded")

    def remove_item(self, key: str) -> None:
        raise OSError("storage disabled")

    def keys(self) -> list[str]:
        raise OSError("storage disabled")


# ---------------------------------------------------------------------------
# Environment isolation (autouse)
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every cache directory at tmp_path and clear FETCHCACHE_* variables.

    Returns:
        The directory used as ``$FETCHCACHE_CACHE_DIR``.
    """
    for var in [
        "FETCHCACHE_TTL",
        "FETCHCACHE_RETRY",
        "FETCHCACHE_STALE_WHILE_REVALIDATE",
        "FETCHCACHE_USE_DURABLE_TIER",
        "FETCHCACHE_LICENSE_KEY",
    ]:
        monkeypatch.delenv(var, raising=False)

    cache_dir = tmp_path / "cache"
    monkeypatch.setenv("FETCHCACHE_CACHE_DIR", str(cache_dir))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    return cache_dir


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Cache fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def namespace() -> MemoryNamespace:
    return MemoryNamespace()


@pytest.fixture
def make_cache(clock: FakeClock, sleep: RecordingSleep, namespace: MemoryNamespace):
    """Factory building a RequestCache on the fake clock and recording sleep.

    The durable tier defaults to the shared in-memory ``namespace`` fixture,
    so two caches built by the same test see the same persisted records.
    """

    def _make(transport: Any = None, **kwargs: Any) -> RequestCache:
        kwargs.setdefault("namespace", namespace)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("sleep", sleep)
        return RequestCache(transport if transport is not None else ScriptedTransport(), **kwargs)

    return _make


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def failing_transport() -> FailingTransport:
    return FailingTransport()


@pytest.fixture
def broken_namespace() -> BrokenNamespace:
    return BrokenNamespace()


@pytest.fixture
def scripted():
    """Factory for :class:`ScriptedTransport` with the given outcomes."""
    return ScriptedTransport
