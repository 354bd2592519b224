"""
Booking Lifecycle — Environment Config Loader

Layered configuration, highest wins:
  1. Environment variable overrides (BL_ prefixed)
  2. Per-environment overlay file (config/{BL_ENV}.yaml)
  3. Base config file (lifecycle_config.yaml)
  4. Built-in DEFAULTS

Usage:
    from confirm.config import load_config, LifecycleSettings

    cfg = load_config(env="lab")
    settings = LifecycleSettings.from_config(cfg)

Environment variables:
    BL_ENV          — active profile (lab, staging, prod)
    BL_CONFIG_DIR   — directory for overlay files (default: config/)
    BL_*            — overrides; "__" separates nesting levels
                      (BL_POLLING__SETTLE_SECONDS=3 → polling.settle_seconds)
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from confirm.outcome import ConfigError
from confirm.params import RequestDefaults
from confirm.polling import DEFAULT_MARGIN_SECONDS, DEFAULT_SETTLE_SECONDS
from confirm.transport import DEFAULT_HEADERS, DEFAULT_PREFIX, DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger("booking_lifecycle.config")


ENV_PREFIX = "BL_"
_META_KEYS = {"BL_ENV", "BL_CONFIG_DIR", "BL_VERSION"}

DEFAULTS: dict[str, Any] = {
    "test": {
        "name": "RT_Booking_Life_Cycle",
        "description": "Regression Test to validate the basic life cycle of a ScheduAll Work Order Booking",
    },
    "transport": {
        "timeout_seconds": DEFAULT_TIMEOUT_SECONDS,
        "prefix": DEFAULT_PREFIX,
        "user_agent": DEFAULT_HEADERS["User-Agent"],
    },
    "polling": {
        "settle_seconds": DEFAULT_SETTLE_SECONDS,
        "margin_seconds": DEFAULT_MARGIN_SECONDS,
    },
    "request": {
        "shared_id": RequestDefaults.shared_id,
        "client": RequestDefaults.client,
        "service_description": RequestDefaults.service_description,
        "service_id": RequestDefaults.service_id,
    },
    "booking": {},
}


# ═══════════════════════════════════════════════════════════════════
# Deep Merge
# ═══════════════════════════════════════════════════════════════════

def deep_merge(base: dict, overlay: dict) -> dict:
    """
    Deep-merge overlay into base. Overlay values win.
    Lists are replaced (not appended). Dicts are recursed.
    """
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _set_nested(d: dict, keys: list[str], value: Any):
    for key in keys[:-1]:
        d = d.setdefault(key, {})
    d[keys[-1]] = value


def _parse_scalar(value: str) -> Any:
    try:
        return yaml.safe_load(value)
    except yaml.YAMLError:
        return value


# ═══════════════════════════════════════════════════════════════════
# Sources
# ═══════════════════════════════════════════════════════════════════

def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def _load_overlay_file(env: str = "", config_dir: str = "") -> dict[str, Any]:
    """Load config/{env}.yaml (or .yml). Returns {} when absent."""
    env = env or os.environ.get("BL_ENV", "")
    if not env:
        return {}

    config_dir = config_dir or os.environ.get("BL_CONFIG_DIR", "config")
    for path in (Path(config_dir) / f"{env}.yaml", Path(config_dir) / f"{env}.yml"):
        if path.exists():
            overlay = _read_yaml(path)
            logger.info("Loaded config overlay: %s (%d keys)", path, len(overlay))
            return overlay

    logger.debug("No config overlay found for env=%s", env)
    return {}


def _load_env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """
    BL_SECTION__KEY=value → {"section": {"key": value}}

    Values are parsed as YAML scalars (numbers, booleans, lists).
    """
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or key in _META_KEYS:
            continue
        path = [part for part in key[len(ENV_PREFIX):].lower().split("__") if part]
        if not path:
            continue
        _set_nested(overrides, path, _parse_scalar(value))

    if overrides:
        logger.debug("Loaded %d env var overrides", len(overrides))
    return overrides


# ═══════════════════════════════════════════════════════════════════
# Main Loader
# ═══════════════════════════════════════════════════════════════════

def load_config(
    base_path: str = "lifecycle_config.yaml",
    env: str = "",
    config_dir: str = "",
    include_env_vars: bool = True,
) -> dict[str, Any]:
    """Load and merge all configuration layers."""
    config = copy.deepcopy(DEFAULTS)

    if base_path and os.path.exists(base_path):
        config = deep_merge(config, _read_yaml(Path(base_path)))
        logger.debug("Loaded base config: %s", base_path)

    overlay = _load_overlay_file(env=env, config_dir=config_dir)
    if overlay:
        config = deep_merge(config, overlay)

    if include_env_vars:
        env_overrides = _load_env_overrides()
        if env_overrides:
            config = deep_merge(config, env_overrides)

    config["_active_env"] = env or os.environ.get("BL_ENV", "default")
    config["_config_source"] = base_path
    return config


def get_config_value(
    path: str,
    config: dict[str, Any] | None = None,
    default: Any = None,
) -> Any:
    """
    Get a nested config value by dotted path.

    Example:
        get_config_value("polling.settle_seconds", cfg, 11)
    """
    if config is None:
        config = load_config()

    current: Any = config
    for key in path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return default
    return current


# ═══════════════════════════════════════════════════════════════════
# Typed Settings
# ═══════════════════════════════════════════════════════════════════

def _number(config: dict[str, Any], path: str, minimum: float = 0.0) -> float:
    value = get_config_value(path, config)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{path} must be a number, got {value!r}") from None
    if number < minimum:
        raise ConfigError(f"{path} must be >= {minimum}, got {number}")
    return number


@dataclass
class LifecycleSettings:
    """Typed view over the merged config dict."""
    test_name: str
    test_description: str
    transport_timeout_seconds: float
    transport_prefix: str
    user_agent: str
    settle_seconds: float
    margin_seconds: float
    request_defaults: RequestDefaults
    booking: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> LifecycleSettings:
        request = get_config_value("request", config, {}) or {}
        booking = get_config_value("booking", config, {}) or {}
        if not isinstance(request, dict) or not isinstance(booking, dict):
            raise ConfigError("request and booking sections must be mappings")

        return cls(
            test_name=str(get_config_value("test.name", config, "")),
            test_description=str(get_config_value("test.description", config, "")),
            transport_timeout_seconds=_number(config, "transport.timeout_seconds", minimum=0.001),
            transport_prefix=str(get_config_value("transport.prefix", config, DEFAULT_PREFIX)),
            user_agent=str(get_config_value("transport.user_agent", config, "")),
            settle_seconds=_number(config, "polling.settle_seconds"),
            margin_seconds=_number(config, "polling.margin_seconds"),
            request_defaults=RequestDefaults(**{
                k: str(v) for k, v in request.items()
                if k in RequestDefaults.__dataclass_fields__
            }),
            booking=dict(booking),
        )
