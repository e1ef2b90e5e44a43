"""Configuration resolution with XDG paths, environment overrides, and fallbacks.

This module turns whatever a caller passes into the fully-defaulted option
models from :mod:`fetchcache.models`:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.fetchcache/`` on macOS and Windows. See :func:`get_cache_dir`.
* **Per-call options** -- :func:`resolve_options` merges keyword overrides,
  an options object or dict, ``FETCHCACHE_*`` environment variables and the
  model defaults, in that order of precedence.
* **Pro options** -- :func:`resolve_pro_options` coerces ``strategy`` and
  ``store`` identifiers, falling back to ``LRU`` and ``disk`` with a logged
  warning rather than failing.
"""

from __future__ import annotations

import logging
import os
import platform
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel

from fetchcache.exceptions import InvalidConfiguration
from fetchcache.models import CacheOptions, ProOptions, StoreKind, StrategyName

logger = logging.getLogger(__name__)

_APP_NAME = "fetchcache"

PREFIX = "fetchcache:"
"""Namespace prefix of every durable key written by a cache."""

DEFAULT_RETRY_DELAY_MS = 300
"""Delay before the first retry; each further retry doubles it."""

LICENSE_KEY_ENV = "FETCHCACHE_LICENSE_KEY"

_ENV_OPTIONS: dict[str, str] = {
    "FETCHCACHE_TTL": "ttl",
    "FETCHCACHE_RETRY": "retry",
    "FETCHCACHE_STALE_WHILE_REVALIDATE": "stale_while_revalidate",
    "FETCHCACHE_USE_DURABLE_TIER": "use_durable_tier",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    ``$FETCHCACHE_CACHE_DIR`` wins when set. Otherwise on Linux/BSD:
    ``$XDG_CACHE_HOME/fetchcache/`` (default ``~/.cache/fetchcache/``), and
    on macOS/Windows: ``~/.fetchcache/cache/``.

    Returns:
        Absolute path to the cache directory (guaranteed to exist).
    """
    override = os.environ.get("FETCHCACHE_CACHE_DIR", "")
    if override:
        path = Path(override)
    elif _is_xdg_platform():
        xdg = os.environ.get("XDG_CACHE_HOME", "")
        base = Path(xdg) if xdg else Path.home() / ".cache"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Option resolution ---


def _parse_env_value(field: str, raw: str) -> Any:
    """Convert an environment string for *field*, raising ValueError when malformed."""
    if field in ("stale_while_revalidate", "use_durable_tier"):
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"expected a boolean, got {raw!r}")
    value = int(raw)
    if value < 0:
        raise ValueError(f"expected a non-negative integer, got {raw!r}")
    return value


def _env_options() -> dict[str, Any]:
    """Collect option values from ``FETCHCACHE_*`` environment variables."""
    values: dict[str, Any] = {}
    for env_var, field in _ENV_OPTIONS.items():
        raw = os.environ.get(env_var)
        if raw is None or raw == "":
            continue
        try:
            values[field] = _parse_env_value(field, raw)
        except ValueError as exc:
            logger.warning("Ignoring %s: %s", env_var, exc)
    return values


def _option_names(model: type[BaseModel]) -> dict[str, str]:
    """Map every accepted spelling of *model*'s options to its field name."""
    names: dict[str, str] = {}
    for field_name, info in model.model_fields.items():
        names[field_name] = field_name
        if isinstance(info.validation_alias, AliasChoices):
            for choice in info.validation_alias.choices:
                if isinstance(choice, str):
                    names[choice] = field_name
    return names


def _normalize_options(model: type[BaseModel], values: dict[str, Any]) -> dict[str, Any]:
    """Rename camelCase keys in *values* to field names, warning about unknown keys."""
    names = _option_names(model)
    unknown = sorted(str(key) for key in values if key not in names)
    if unknown:
        logger.warning("Ignoring unknown option(s): %s", ", ".join(unknown))
    return {names[key]: value for key, value in values.items() if key in names}


def resolve_options(
    options: Union[CacheOptions, dict[str, Any], None] = None,
    **overrides: Any,
) -> CacheOptions:
    """Resolve the effective per-call :class:`~fetchcache.models.CacheOptions`.

    Precedence (highest first): *overrides*, *options*, environment
    variables, model defaults.

    Args:
        options: An options model, a plain dict, or ``None``.
        **overrides: Individual option fields, e.g. ``ttl=5000``.

    Returns:
        A validated :class:`~fetchcache.models.CacheOptions`.
    """
    merged = _env_options()
    if isinstance(options, CacheOptions):
        merged.update(options.model_dump(exclude_unset=True))
    elif options:
        merged.update(_normalize_options(CacheOptions, options))
    overrides = {k: v for k, v in overrides.items() if v is not None}
    merged.update(_normalize_options(CacheOptions, overrides))
    return CacheOptions.model_validate(merged)


def parse_strategy(value: Union[StrategyName, str]) -> StrategyName:
    """Return the :class:`StrategyName` for *value* (case-insensitive).

    Raises:
        InvalidConfiguration: If *value* names no known strategy.
    """
    if isinstance(value, StrategyName):
        return value
    try:
        return StrategyName(str(value).upper())
    except ValueError:
        raise InvalidConfiguration(f"Invalid strategy option: {value}") from None


def parse_store(value: Union[StoreKind, str]) -> StoreKind:
    """Return the :class:`StoreKind` for *value* (case-insensitive).

    Raises:
        InvalidConfiguration: If *value* names no known store.
    """
    if isinstance(value, StoreKind):
        return value
    try:
        return StoreKind(str(value).lower())
    except ValueError:
        raise InvalidConfiguration(f"Invalid store option: {value}") from None


def resolve_pro_options(
    options: Union[ProOptions, dict[str, Any], None] = None,
    **overrides: Any,
) -> tuple[ProOptions, StoreKind, StrategyName]:
    """Resolve pro-mode options and the concrete store and strategy to use.

    Unknown identifiers never fail: they are logged as a warning and replaced
    by the defaults (``disk`` and ``LRU``). ``store="custom"`` without a
    ``custom_store`` is treated the same way.

    Returns:
        ``(options, store_kind, strategy_name)``.
    """
    merged: dict[str, Any] = {}
    if isinstance(options, ProOptions):
        merged.update(options.model_dump(exclude_unset=True))
    elif options:
        merged.update(_normalize_options(ProOptions, options))
    overrides = {k: v for k, v in overrides.items() if v is not None}
    merged.update(_normalize_options(ProOptions, overrides))
    resolved = ProOptions.model_validate(merged)

    try:
        strategy = parse_strategy(resolved.strategy)
    except InvalidConfiguration as exc:
        logger.warning("%s. Using '%s' instead.", exc, StrategyName.LRU.value)
        strategy = StrategyName.LRU

    try:
        store = parse_store(resolved.store)
    except InvalidConfiguration as exc:
        logger.warning("%s. Using '%s' instead.", exc, StoreKind.DISK.value)
        store = StoreKind.DISK
    if store is StoreKind.CUSTOM and resolved.custom_store is None:
        logger.warning(
            "Store 'custom' requires custom_store. Using '%s' instead.",
            StoreKind.DISK.value,
        )
        store = StoreKind.DISK

    resolved = resolved.model_copy(update={"strategy": strategy.value, "store": store.value})
    return resolved, store, strategy


def resolve_license_key(license_key: Optional[str]) -> Optional[str]:
    """Return *license_key*, or ``$FETCHCACHE_LICENSE_KEY`` when none was given."""
    if license_key:
        return license_key
    return os.environ.get(LICENSE_KEY_ENV) or None
