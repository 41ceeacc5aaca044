"""Configuration loading and runtime file locations for rofi-wifi.

Settings come from a TOML file; every key is optional.  Search order:

1. Explicit ``path`` argument (``--config``)
2. ``$ROFI_WIFI_CONFIG``
3. ``$XDG_CONFIG_HOME/rofi-wifi/config.toml`` (``~/.config`` by default)
4. ``~/.config/rofi/wifi.toml``

Example::

    cache_ttl = 20
    max_retry = 5
    ping_host = "9.9.9.9"
    auto_vpn = [["work-vpn", "CorpGuest"]]
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field, fields
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from rofiwifi.wifi_common import RuntimeDirError

logger = logging.getLogger(__name__)

_CONFIG_ENV_VAR = "ROFI_WIFI_CONFIG"

CACHE_FILENAME = "rofi-wifi-cache.json"
PID_FILENAME = "rofi-wifi-daemon.pid"
LOCK_FILENAME = "rofi-wifi-scan.lock"
DEBUG_LOG_FILENAME = "rofi-wifi-debug.log"


@dataclass
class Config:
    """User-tunable settings."""

    font: str = "DejaVu Sans Mono 8"
    position: int = 0           # rofi -location (0-8)
    x_offset: int = 0
    y_offset: int = 0
    max_lines: int = 8
    connect_timeout: int = 15   # seconds, passed to nmcli --wait
    max_retry: int = 3          # password attempts per connect
    cache_ttl: int = 30         # seconds; also the daemon refresh period
    ping_host: str = "1.1.1.1"
    ping_count: int = 2
    auto_vpn: list[tuple[str, str]] = field(default_factory=list)  # (vpn, trigger ssid)
    stale_multiplier: int = 10  # TTL multiplier for the lock-contention fallback read
    interface: str | None = None


def config_candidates() -> list[str]:
    """Return the config file paths to try, most specific first."""
    env = os.environ.get(_CONFIG_ENV_VAR)
    if env:
        return [env]
    xdg = os.environ.get("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")
    return [
        os.path.join(xdg, "rofi-wifi", "config.toml"),
        os.path.expanduser("~/.config/rofi/wifi.toml"),
    ]


def load_config(path: str | None = None) -> Config:
    """Load configuration, falling back to defaults.

    A missing file is silent.  An unreadable or malformed file is logged
    and the defaults are used instead.
    """
    paths = [path] if path else config_candidates()
    for candidate in paths:
        if not os.path.isfile(candidate):
            continue
        try:
            with open(candidate, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning("ignoring config %s: %s", candidate, exc)
            return Config()
        logger.debug("loaded config from %s", candidate)
        return config_from_dict(data)
    return Config()


def config_from_dict(data: dict[str, Any]) -> Config:
    """Build a Config from parsed TOML, skipping unknown or mistyped keys."""
    cfg = Config()
    known = {f.name for f in fields(Config)}
    for key, value in data.items():
        if key not in known:
            logger.warning("unknown config key %r ignored", key)
            continue
        if key == "auto_vpn":
            pairs = _parse_auto_vpn(value)
            if pairs is None:
                logger.warning("config key 'auto_vpn' must be a list of [vpn, ssid] pairs")
                continue
            cfg.auto_vpn = pairs
            continue
        default = getattr(cfg, key)
        if key == "interface":
            if value is not None and not isinstance(value, str):
                logger.warning("config key 'interface' must be a string")
                continue
        elif isinstance(value, bool) or not isinstance(value, type(default)):
            logger.warning(
                "config key %r expects %s, got %r; using default",
                key, type(default).__name__, value,
            )
            continue
        setattr(cfg, key, value)

    if cfg.max_retry < 1:
        logger.warning("max_retry must be at least 1; using 1")
        cfg.max_retry = 1
    if cfg.cache_ttl < 1:
        logger.warning("cache_ttl must be at least 1; using 1")
        cfg.cache_ttl = 1
    return cfg


def _parse_auto_vpn(value: Any) -> list[tuple[str, str]] | None:
    if not isinstance(value, list):
        return None
    pairs: list[tuple[str, str]] = []
    for item in value:
        if (
            not isinstance(item, (list, tuple))
            or len(item) != 2
            or not all(isinstance(v, str) for v in item)
        ):
            return None
        pairs.append((item[0], item[1]))
    return pairs


# ---------------------------------------------------------------------------
# Runtime files
# ---------------------------------------------------------------------------

def runtime_dir() -> str:
    """Return the directory holding the cache, lock, and PID files.

    Raises:
        RuntimeDirError: if ``$XDG_RUNTIME_DIR`` (or ``/tmp``) is not an
            existing directory.
    """
    path = os.environ.get("XDG_RUNTIME_DIR") or "/tmp"
    if not os.path.isdir(path):
        raise RuntimeDirError(f"runtime directory {path!r} does not exist")
    return path


def cache_path() -> str:
    return os.path.join(runtime_dir(), CACHE_FILENAME)


def pid_path() -> str:
    return os.path.join(runtime_dir(), PID_FILENAME)


def lock_path() -> str:
    """Scan mutex file shared by the daemon and interactive refreshes."""
    return os.path.join(runtime_dir(), LOCK_FILENAME)


def debug_log_path() -> str:
    return os.path.join(runtime_dir(), DEBUG_LOG_FILENAME)
