"""Shared data structures and helpers for rofi-wifi."""

from __future__ import annotations

import enum
import logging
import os
import subprocess
from dataclasses import asdict, dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)

OPEN = "Open"
WEP = "WEP"
WPA = "WPA"
WPA2 = "WPA2"
WPA3 = "WPA3"
KNOWN_SECURITY = (OPEN, WEP, WPA, WPA2, WPA3)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class RofiWifiError(Exception):
    """Base class for rofi-wifi errors."""


class ScanError(RofiWifiError):
    """Listing access points failed (nmcli missing, timed out, or errored)."""


class ScanLockError(RofiWifiError):
    """The scan lock file could not be opened or locked (not merely busy)."""


class NetworkError(RofiWifiError):
    """A NetworkManager operation (disconnect, delete, hotspot...) failed."""


class RuntimeDirError(RofiWifiError):
    """No usable runtime directory for the cache, lock, and PID files."""


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class AccessPoint:
    """A discovered WiFi network as shown in the launcher."""

    ssid: str
    security: str = OPEN    # label from KNOWN_SECURITY, or the raw descriptor
    signal: int = 0         # quality, 0-100
    bars: str = ""          # display only, e.g. "▂▄▆_"
    in_use: bool = False    # currently associated

    def display_line(self) -> str:
        """Return the single launcher row for this network."""
        if self.security == OPEN:
            lock = "   "
        elif self.security == WEP:
            lock = "🔓 "
        else:
            lock = "🔒 "
        active = "● " if self.in_use else "  "
        return f"{active}{lock}{self.ssid:<20}  {self.bars}  {self.signal:>3}%"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccessPoint:
        """Build an AccessPoint from a cache record.

        Raises:
            KeyError, TypeError, ValueError: if the record is malformed.
        """
        ssid = data["ssid"]
        if not isinstance(ssid, str) or not ssid:
            raise ValueError(f"invalid ssid: {ssid!r}")
        return cls(
            ssid=ssid,
            security=str(data.get("security", OPEN)),
            signal=clamp_signal(int(data.get("signal", 0))),
            bars=str(data.get("bars", "")),
            in_use=bool(data.get("in_use", False)),
        )


@dataclass
class ConnectionDetails:
    """Read-only facts about the active connection for the details panel."""

    ssid: str
    ip: str = "N/A"
    gateway: str = "N/A"
    dns: str = "N/A"
    security: str = "--"
    signal: str = "--"
    ping_ms: float | None = None


class ConnectOutcome(enum.Enum):
    """Classification of a single connection attempt."""

    SUCCESS = "success"
    WRONG_CREDENTIAL = "wrong_credential"
    TIMEOUT = "timeout"
    FAILED = "failed"


@dataclass
class ConnectResult:
    """Outcome of one external connect call."""

    outcome: ConnectOutcome
    ip: str = ""        # set on SUCCESS
    message: str = ""   # set on FAILED


class Nav(enum.Enum):
    """What the top-level loop should do after an action resolves."""

    BACK = "back"           # redisplay using the current cache
    REFRESH = "refresh"     # redisplay after forcing a new scan
    QUIT = "quit"           # leave the interactive loop


# ---------------------------------------------------------------------------
# Collaborator protocols (composition seams)
# ---------------------------------------------------------------------------

class ScanExecutor(Protocol):
    """Triggers a rescan and fetches the resulting access-point list."""

    def rescan(self) -> None:
        """Ask the radio to rescan; results are fetched separately."""
        ...  # pragma: no cover

    def list_access_points(self) -> list[AccessPoint]:
        """Return the current access points, ordered and deduplicated.

        Raises:
            ScanError: if the list could not be obtained.
        """
        ...  # pragma: no cover


class CommandRunner(Protocol):
    """Protocol for running external commands.

    Provides an injection seam so callers can substitute a fake runner in
    tests instead of patching ``subprocess`` globally.
    """

    def run(
        self,
        cmd: list[str],
        *,
        capture_output: bool = True,
        text: bool = True,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
        input: str | None = None,
    ) -> subprocess.CompletedProcess[Any]:
        """Run *cmd* and return a CompletedProcess."""
        ...  # pragma: no cover


class SubprocessRunner:
    """Default CommandRunner that delegates to the real ``subprocess`` module."""

    def run(
        self,
        cmd: list[str],
        *,
        capture_output: bool = True,
        text: bool = True,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
        input: str | None = None,
    ) -> subprocess.CompletedProcess[Any]:
        """Run *cmd* via ``subprocess.run``.

        Text output is decoded with replacement characters so a stray
        non-UTF-8 byte (an SSID in Latin-1, say) cannot raise.
        """
        return subprocess.run(
            cmd,
            capture_output=capture_output,
            text=text,
            errors="replace" if text else None,
            timeout=timeout,
            env=env,
            input=input,
        )


def _minimal_env() -> dict[str, str]:
    """Build a minimal environment for subprocess calls.

    Only passes PATH, LC_ALL, and HOME so nmcli output stays in the C
    locale (the failure classifier matches English text) and the full user
    environment is not leaked into child processes.
    """
    return {
        "PATH": os.environ.get("PATH", "/usr/bin:/bin"),
        "LC_ALL": "C",
        "HOME": os.environ.get("HOME", ""),
    }


def _desktop_env() -> dict[str, str]:
    """Environment for GUI helpers (rofi, notify-send).

    These need the display and session bus variables that
    :func:`_minimal_env` deliberately drops.
    """
    env = _minimal_env()
    for key in ("DISPLAY", "WAYLAND_DISPLAY", "XDG_RUNTIME_DIR",
                "DBUS_SESSION_BUS_ADDRESS", "XAUTHORITY"):
        value = os.environ.get(key)
        if value:
            env[key] = value
    return env


# ---------------------------------------------------------------------------
# Signal / security helpers
# ---------------------------------------------------------------------------

def clamp_signal(pct: int) -> int:
    """Clamp a signal quality percentage to 0-100."""
    return max(0, min(100, pct))


def map_nmcli_security(security: str) -> str:
    """Map an nmcli SECURITY field to a short label.

    Unrecognised descriptors are returned unchanged so the raw value is
    still visible to the user.
    """
    s = security.strip().upper()
    if "WPA3" in s or "SAE" in s:
        return WPA3
    if "WPA2" in s:
        return WPA2
    if "WPA" in s:
        return WPA
    if "WEP" in s:
        return WEP
    if not s or s == "--":
        return OPEN
    return security.strip()


def needs_password(security: str) -> bool:
    """Return True unless *security* is an open network."""
    return security != OPEN


# ---------------------------------------------------------------------------
# Ordering and deduplication
# ---------------------------------------------------------------------------

def order_access_points(aps: list[AccessPoint]) -> list[AccessPoint]:
    """Associated network first, then strongest signal first (stable)."""
    return sorted(aps, key=lambda ap: (not ap.in_use, -ap.signal))


def dedupe_access_points(aps: list[AccessPoint]) -> list[AccessPoint]:
    """Collapse multi-channel duplicates of the same SSID.

    Expects *aps* already ordered by :func:`order_access_points`.  The
    associated entry is always kept; any other entry whose SSID has
    already been kept is dropped.
    """
    seen: set[str] = set()
    result: list[AccessPoint] = []
    for ap in aps:
        if not ap.in_use and ap.ssid in seen:
            continue
        seen.add(ap.ssid)
        result.append(ap)
    return result
