"""Tests for the fetchcache CLI: get, stats, list and clear."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from fetchcache import __version__
from fetchcache.app import app
from fetchcache.models import CachedResponse, RequestDescriptor


class RecordingTransport:
    """Returns a CachedResponse echoing the request, or fails every call."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.requests: list[RequestDescriptor] = []

    async def __call__(self, request: RequestDescriptor) -> CachedResponse:
        self.requests.append(request)
        if self.fail:
            raise ConnectionError("connection refused")
        return CachedResponse(
            status_code=200,
            headers={"content-type": "application/json"},
            body={"url": request.url, "params": request.params, "n": len(self.requests)},
        )


@pytest.fixture()
def use_transport(monkeypatch: pytest.MonkeyPatch):
    """Install a RecordingTransport as the CLI transport and return it."""

    def _install(transport: RecordingTransport) -> RecordingTransport:
        monkeypatch.setattr("fetchcache.app.create_transport", lambda: transport)
        return transport

    return _install


def _invoke(cli_runner, cache_dir: Path, *args: str):
    return cli_runner.invoke(app, ["--json", "--quiet", "--cache-dir", str(cache_dir), *args])


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


class TestGlobal:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self, cli_runner) -> None:
        result = cli_runner.invoke(app, [])
        assert "get" in result.output
        assert "stats" in result.output


# ---------------------------------------------------------------------------
# get
# ---------------------------------------------------------------------------


class TestGet:
    def test_fetch_prints_body(self, cli_runner, tmp_path: Path, use_transport) -> None:
        transport = use_transport(RecordingTransport())
        result = _invoke(cli_runner, tmp_path, "get", "https://api.example.com/users", "-P", "page=2")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {
            "url": "https://api.example.com/users",
            "params": {"page": "2"},
            "n": 1,
        }
        assert transport.requests[0].params == {"page": "2"}

    def test_second_run_served_from_disk(self, cli_runner, tmp_path: Path, use_transport) -> None:
        use_transport(RecordingTransport())
        _invoke(cli_runner, tmp_path, "get", "https://api.example.com/users")

        offline = use_transport(RecordingTransport(fail=True))
        result = _invoke(cli_runner, tmp_path, "get", "https://api.example.com/users")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["n"] == 1
        assert offline.requests == []

    def test_transport_failure_exit_code(self, cli_runner, tmp_path: Path, use_transport) -> None:
        transport = use_transport(RecordingTransport(fail=True))
        result = _invoke(cli_runner, tmp_path, "get", "https://api.example.com/users", "--retry", "0")
        assert result.exit_code == 6
        assert len(transport.requests) == 1

    def test_bad_param(self, cli_runner, tmp_path: Path, use_transport) -> None:
        use_transport(RecordingTransport())
        result = _invoke(cli_runner, tmp_path, "get", "https://api.example.com/users", "-P", "oops")
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# stats / list / clear
# ---------------------------------------------------------------------------


class TestInspection:
    def _seed(self, cli_runner, cache_dir: Path, *urls: str) -> None:
        for url in urls:
            result = _invoke(cli_runner, cache_dir, "get", url)
            assert result.exit_code == 0, result.output

    def test_stats(self, cli_runner, tmp_path: Path, use_transport) -> None:
        use_transport(RecordingTransport())
        self._seed(cli_runner, tmp_path, "https://a.example/1", "https://a.example/2")

        result = _invoke(cli_runner, tmp_path, "stats")
        assert result.exit_code == 0, result.output
        stats = json.loads(result.stdout)
        assert stats["persistent_entries"] == 2
        assert stats["memory_entries"] == 0
        assert stats["store"] == "disk"
        assert stats["strategy"] == "LRU"
        assert stats["pro_enabled"] is True

    def test_strategy_and_bound_options(self, cli_runner, tmp_path: Path, use_transport) -> None:
        use_transport(RecordingTransport())
        for url in ("https://a.example/1", "https://a.example/2", "https://a.example/3"):
            result = cli_runner.invoke(
                app,
                ["--json", "-q", "--cache-dir", str(tmp_path),
                 "--strategy", "fifo", "--max-entries", "2", "get", url],
            )
            assert result.exit_code == 0, result.output

        result = cli_runner.invoke(
            app, ["--json", "-q", "--cache-dir", str(tmp_path), "--strategy", "FIFO", "stats"]
        )
        stats = json.loads(result.stdout)
        assert stats["strategy"] == "FIFO"
        assert stats["persistent_entries"] == 2

    def test_list(self, cli_runner, tmp_path: Path, use_transport) -> None:
        use_transport(RecordingTransport())
        self._seed(cli_runner, tmp_path, "https://a.example/1")

        result = _invoke(cli_runner, tmp_path, "list")
        assert result.exit_code == 0, result.output
        listing = json.loads(result.stdout)
        [entry] = listing["persistent"]
        assert entry["key"] == "https://a.example/1"
        assert "last_accessed" in entry["metadata"]
        assert entry["size"] > 0

    def test_list_plain_table(self, cli_runner, tmp_path: Path, use_transport) -> None:
        use_transport(RecordingTransport())
        self._seed(cli_runner, tmp_path, "https://a.example/1")

        result = cli_runner.invoke(app, ["--plain", "--cache-dir", str(tmp_path), "list"])
        assert result.exit_code == 0, result.output
        lines = result.stdout.strip().splitlines()
        assert lines[0] == "Key\tBytes\tWritten\tMetadata"
        assert lines[1].startswith("https://a.example/1\t")

    def test_clear_one(self, cli_runner, tmp_path: Path, use_transport) -> None:
        use_transport(RecordingTransport())
        self._seed(cli_runner, tmp_path, "https://a.example/1", "https://a.example/2")

        result = _invoke(cli_runner, tmp_path, "clear", "https://a.example/1")
        assert result.exit_code == 0, result.output

        listing = json.loads(_invoke(cli_runner, tmp_path, "list").stdout)
        assert [e["key"] for e in listing["persistent"]] == ["https://a.example/2"]

    def test_clear_all(self, cli_runner, tmp_path: Path, use_transport) -> None:
        use_transport(RecordingTransport())
        self._seed(cli_runner, tmp_path, "https://a.example/1", "https://a.example/2")

        result = _invoke(cli_runner, tmp_path, "clear")
        assert result.exit_code == 0, result.output

        stats = json.loads(_invoke(cli_runner, tmp_path, "stats").stdout)
        assert stats["total_entries"] == 0


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


class TestMain:
    def test_unexpected_error_writes_crash_log(
        self, monkeypatch: pytest.MonkeyPatch, isolated_env: Path, quiet_output
    ) -> None:
        from fetchcache import app as app_module

        def _boom(*args: Any, **kwargs: Any) -> None:
            raise RuntimeError("kaboom")

        monkeypatch.setattr(app_module, "app", _boom)
        monkeypatch.setattr(app_module, "_setup_signal_handlers", lambda: None)
        with pytest.raises(SystemExit) as exc_info:
            app_module.main()
        assert exc_info.value.code == 1
        logs = list((isolated_env / "logs").glob("crash-*.log"))
        assert len(logs) == 1
        assert "kaboom" in logs[0].read_text()

    def test_fetchcache_error_maps_exit_code(
        self, monkeypatch: pytest.MonkeyPatch, quiet_output
    ) -> None:
        from fetchcache import app as app_module
        from fetchcache.exceptions import StorageUnavailable

        def _unavailable(*args: Any, **kwargs: Any) -> None:
            raise StorageUnavailable("read-only filesystem")

        monkeypatch.setattr(app_module, "app", _unavailable)
        monkeypatch.setattr(app_module, "_setup_signal_handlers", lambda: None)
        with pytest.raises(SystemExit) as exc_info:
            app_module.main()
        assert exc_info.value.code == 5
