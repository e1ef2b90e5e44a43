"""Tests for fetchcache.config -- XDG paths, option precedence, pro-option fallbacks."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from fetchcache.config import (
    get_cache_dir,
    parse_store,
    parse_strategy,
    resolve_license_key,
    resolve_options,
    resolve_pro_options,
)
from fetchcache.exceptions import InvalidConfiguration
from fetchcache.models import CacheOptions, ProOptions, StoreKind, StrategyName


# ---------------------------------------------------------------------------
# Cache directory
# ---------------------------------------------------------------------------


class TestCacheDir:
    def test_env_override(self, isolated_env: Path) -> None:
        path = get_cache_dir()
        assert path == isolated_env
        assert path.is_dir()

    def test_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FETCHCACHE_CACHE_DIR", raising=False)
        monkeypatch.setattr("fetchcache.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg"))
        assert get_cache_dir() == tmp_path / "xdg" / "fetchcache"

    def test_xdg_home_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FETCHCACHE_CACHE_DIR", raising=False)
        monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
        monkeypatch.setattr("fetchcache.config._is_xdg_platform", lambda: True)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert get_cache_dir() == tmp_path / ".cache" / "fetchcache"

    def test_non_xdg_platform(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FETCHCACHE_CACHE_DIR", raising=False)
        monkeypatch.setattr("fetchcache.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        path = get_cache_dir()
        assert path == tmp_path / ".fetchcache" / "cache"
        assert path.is_dir()


# ---------------------------------------------------------------------------
# Per-call options
# ---------------------------------------------------------------------------


class TestResolveOptions:
    def test_defaults(self) -> None:
        opts = resolve_options()
        assert opts == CacheOptions(
            ttl=60000, stale_while_revalidate=True, retry=2, use_durable_tier=True
        )

    def test_dict_options(self) -> None:
        opts = resolve_options({"ttl": 10, "retry": 0})
        assert (opts.ttl, opts.retry) == (10, 0)
        assert opts.stale_while_revalidate is True

    def test_overrides_beat_options(self) -> None:
        opts = resolve_options(CacheOptions(ttl=10), ttl=20)
        assert opts.ttl == 20

    def test_none_override_ignored(self) -> None:
        assert resolve_options({"ttl": 10}, ttl=None).ttl == 10

    def test_unknown_keys_ignored_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="fetchcache.config"):
            assert resolve_options({"ttl": 5, "color": "blue"}).ttl == 5
        assert "Ignoring unknown option(s): color" in caplog.text

    def test_camel_case_names(self) -> None:
        opts = resolve_options({"staleWhileRevalidate": False}, useDurableTier=False)
        assert opts.stale_while_revalidate is False
        assert opts.use_durable_tier is False

    def test_camel_case_option_beats_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FETCHCACHE_STALE_WHILE_REVALIDATE", "off")
        assert resolve_options({"staleWhileRevalidate": True}).stale_while_revalidate is True

    def test_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FETCHCACHE_TTL", "1500")
        monkeypatch.setenv("FETCHCACHE_STALE_WHILE_REVALIDATE", "off")
        monkeypatch.setenv("FETCHCACHE_USE_DURABLE_TIER", "no")
        opts = resolve_options()
        assert opts.ttl == 1500
        assert opts.stale_while_revalidate is False
        assert opts.use_durable_tier is False

    def test_explicit_options_beat_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FETCHCACHE_TTL", "1500")
        assert resolve_options(CacheOptions(ttl=10)).ttl == 10

    def test_unset_model_fields_do_not_mask_environment(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FETCHCACHE_RETRY", "7")
        assert resolve_options(CacheOptions(ttl=10)).retry == 7

    @pytest.mark.parametrize("raw", ["soon", "-5", "1.5"])
    def test_bad_environment_value_ignored(
        self, raw: str, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.setenv("FETCHCACHE_TTL", raw)
        with caplog.at_level(logging.WARNING, logger="fetchcache.config"):
            assert resolve_options().ttl == 60000
        assert "Ignoring FETCHCACHE_TTL" in caplog.text

    def test_negative_values_rejected(self) -> None:
        with pytest.raises(ValidationError):
            resolve_options(retry=-1)
        with pytest.raises(ValidationError):
            resolve_options(ttl=-1)


# ---------------------------------------------------------------------------
# Pro options
# ---------------------------------------------------------------------------


class TestResolveProOptions:
    def test_defaults(self) -> None:
        opts, store, strategy = resolve_pro_options()
        assert store is StoreKind.DISK
        assert strategy is StrategyName.LRU
        assert opts.max_entries == 1000
        assert opts.enable_inspector is False

    def test_case_insensitive(self) -> None:
        opts, store, strategy = resolve_pro_options(store="MEMORY", strategy="fifo")
        assert store is StoreKind.MEMORY
        assert strategy is StrategyName.FIFO
        assert (opts.store, opts.strategy) == ("memory", "FIFO")

    def test_invalid_strategy_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="fetchcache.config"):
            _, _, strategy = resolve_pro_options(strategy="ARC")
        assert strategy is StrategyName.LRU
        assert "Invalid strategy option: ARC. Using 'LRU' instead." in caplog.text

    def test_non_string_strategy_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="fetchcache.config"):
            opts, store, strategy = resolve_pro_options(store=3.5, strategy=5)
        assert strategy is StrategyName.LRU
        assert store is StoreKind.DISK
        assert (opts.store, opts.strategy) == ("disk", "LRU")
        assert "Invalid strategy option: 5. Using 'LRU' instead." in caplog.text
        assert "Invalid store option: 3.5. Using 'disk' instead." in caplog.text

    def test_invalid_store_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="fetchcache.config"):
            _, store, _ = resolve_pro_options({"store": "cloud"})
        assert store is StoreKind.DISK
        assert "Invalid store option: cloud. Using 'disk' instead." in caplog.text

    def test_custom_without_store_falls_back(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="fetchcache.config"):
            _, store, _ = resolve_pro_options(store="custom")
        assert store is StoreKind.DISK
        assert "requires custom_store" in caplog.text

    def test_custom_with_store(self) -> None:
        backing = object()
        opts, store, _ = resolve_pro_options(store="custom", custom_store=backing)
        assert store is StoreKind.CUSTOM
        assert opts.custom_store is backing

    def test_model_input(self) -> None:
        opts, _, strategy = resolve_pro_options(ProOptions(strategy="LFU", max_entries=3))
        assert strategy is StrategyName.LFU
        assert opts.max_entries == 3

    def test_camel_case_names(self) -> None:
        backing = object()
        opts, store, _ = resolve_pro_options(
            {"maxEntries": 2, "enableInspector": True, "customStore": backing},
            store="custom",
            licenseKey="abc",
        )
        assert store is StoreKind.CUSTOM
        assert opts.max_entries == 2
        assert opts.enable_inspector is True
        assert opts.custom_store is backing
        assert opts.license_key == "abc"

    def test_unknown_keys_warn(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="fetchcache.config"):
            opts, _, _ = resolve_pro_options(max_entries=5, maxSize=10)
        assert opts.max_entries == 5
        assert "Ignoring unknown option(s): maxSize" in caplog.text

    def test_max_entries_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            resolve_pro_options(max_entries=0)


class TestParsers:
    def test_parse_strategy(self) -> None:
        assert parse_strategy("lfu") is StrategyName.LFU

    def test_parse_strategy_invalid(self) -> None:
        with pytest.raises(InvalidConfiguration) as exc_info:
            parse_strategy("nope")
        assert exc_info.value.exit_code == 2

    def test_parse_store(self) -> None:
        assert parse_store("Disk") is StoreKind.DISK
        with pytest.raises(InvalidConfiguration):
            parse_store("tape")


class TestLicenseKey:
    def test_explicit_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FETCHCACHE_LICENSE_KEY", "env")
        assert resolve_license_key("explicit") == "explicit"

    def test_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FETCHCACHE_LICENSE_KEY", "env")
        assert resolve_license_key(None) == "env"

    def test_missing(self) -> None:
        assert resolve_license_key(None) is None
