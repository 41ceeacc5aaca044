"""NetworkManager operations via nmcli: connect, profiles, radio, hotspot.

Every call goes through a :class:`~rofiwifi.wifi_common.CommandRunner`
with an explicit timeout so no caller waits indefinitely.  Query helpers
degrade to "unknown" values; state-changing helpers raise
:class:`~rofiwifi.wifi_common.NetworkError` so the menu can report them.
"""

from __future__ import annotations

import logging
import re
import subprocess
import time
from typing import Any, Callable

from rofiwifi.wifi_common import (
    CommandRunner,
    ConnectionDetails,
    ConnectOutcome,
    ConnectResult,
    NetworkError,
    SubprocessRunner,
    _minimal_env,
)

logger = logging.getLogger(__name__)

_DEFAULT_RUNNER = SubprocessRunner()

QUERY_TIMEOUT = 5           # seconds for read-only nmcli calls
CONNECT_MARGIN = 5          # extra seconds on top of nmcli --wait
PING_WAIT = 2               # ping -W, per reply
DHCP_SETTLE = 0.5           # seconds before reading the new address

HOTSPOT_PROFILE = "Hotspot"
_HOTSPOT_NAMES = ("hotspot",)

_CREDENTIAL_MARKERS = ("secrets", "password", "authentication", "802-11-wireless-security")
_TIMEOUT_MARKERS = ("timeout", "timed out")

# "rtt min/avg/max/mdev = 1.234/5.678/9.012/0.345 ms" (Linux) or
# "round-trip min/avg/max/stddev = ..." (BSD)
_RTT_RE = re.compile(r"(?:rtt|round-trip)[^=]*=\s*[\d.]+/([\d.]+)/")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def classify_connect_failure(stdout: str, stderr: str = "") -> ConnectResult:
    """Classify a failed ``nmcli device wifi connect`` from its output.

    Best-effort substring matching on the C-locale text:

    - credential problems (secrets required, bad password, 802.1X/PSK
      errors) -> WRONG_CREDENTIAL
    - activation timeouts -> TIMEOUT
    - anything else -> FAILED with the last stderr line as the message
    """
    combined = f"{stderr}\n{stdout}".lower()
    if any(marker in combined for marker in _CREDENTIAL_MARKERS):
        return ConnectResult(ConnectOutcome.WRONG_CREDENTIAL)
    if any(marker in combined for marker in _TIMEOUT_MARKERS):
        return ConnectResult(ConnectOutcome.TIMEOUT)
    lines = [line.strip() for line in stderr.splitlines() if line.strip()]
    if not lines:
        lines = [line.strip() for line in stdout.splitlines() if line.strip()]
    return ConnectResult(ConnectOutcome.FAILED, message=lines[-1] if lines else "unknown error")


def parse_ping_rtt(output: str) -> float | None:
    """Return the average round-trip time in ms from ping's summary line."""
    match = _RTT_RE.search(output)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def _terse_value(line: str) -> str:
    """Value part of a ``FIELD:value`` terse line (value may contain ':')."""
    return line.split(":", 1)[1] if ":" in line else ""


def _is_hotspot_name(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in _HOTSPOT_NAMES)


# ---------------------------------------------------------------------------
# nmcli client
# ---------------------------------------------------------------------------

class NmcliClient:
    """Connection management through nmcli.

    Args:
        connect_timeout: Seconds handed to ``nmcli --wait`` for activations.
        interface: Optional wireless interface for connects.
        runner: Optional CommandRunner for subprocess calls (testing seam).
        sleep: ``time.sleep`` replacement (testing seam).
    """

    def __init__(
        self,
        connect_timeout: int = 15,
        interface: str | None = None,
        runner: CommandRunner | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.connect_timeout = connect_timeout
        self._interface = interface
        self._runner = runner or _DEFAULT_RUNNER
        self._sleep = sleep

    # -- plumbing ---------------------------------------------------------

    def _run(self, cmd: list[str], timeout: float = QUERY_TIMEOUT) -> subprocess.CompletedProcess[Any]:
        return self._runner.run(cmd, capture_output=True, text=True, timeout=timeout, env=_minimal_env())

    def _query(self, cmd: list[str]) -> str:
        """Run a read-only query; any failure yields empty output."""
        try:
            result = self._run(cmd)
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError, ValueError) as exc:
            logger.debug("%s failed: %s", " ".join(cmd[:4]), exc)
            return ""
        if result.returncode != 0:
            logger.debug("%s exited %d", " ".join(cmd[:4]), result.returncode)
            return ""
        return result.stdout or ""

    def _action(self, cmd: list[str], what: str, timeout: float = QUERY_TIMEOUT) -> None:
        """Run a state-changing command, raising NetworkError on failure."""
        try:
            result = self._run(cmd, timeout=timeout)
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError, ValueError) as exc:
            raise NetworkError(f"{what} failed: {exc}") from exc
        if result.returncode != 0:
            detail = (result.stderr or "").strip().splitlines()
            raise NetworkError(f"{what} failed" + (f": {detail[-1]}" if detail else ""))

    # -- queries ----------------------------------------------------------

    def radio_enabled(self) -> bool:
        out = self._query(["nmcli", "-t", "-f", "WIFI", "general"])
        return out.strip().lower().startswith("enabled")

    def current_ssid(self) -> str | None:
        """SSID of the associated network, or None when not connected."""
        out = self._query(["nmcli", "-t", "-f", "ACTIVE,SSID", "device", "wifi"])
        for line in out.splitlines():
            if line.startswith("yes:"):
                ssid = line[4:].replace("\\:", ":")
                return ssid or None
        return None

    def saved_connections(self) -> list[str]:
        """Names of saved WiFi connection profiles."""
        out = self._query(["nmcli", "-t", "-f", "NAME,TYPE", "connection", "show"])
        names = []
        for line in out.splitlines():
            name, _, kind = line.rpartition(":")
            if "wireless" in kind and name:
                names.append(name.replace("\\:", ":"))
        return names

    def saved_password(self, ssid: str) -> str:
        """PSK of a saved profile; empty if unavailable (e.g. no polkit)."""
        out = self._query([
            "nmcli", "-s", "-t", "-f", "802-11-wireless-security.psk",
            "connection", "show", ssid,
        ])
        for line in out.splitlines():
            if line.startswith("802-11-wireless-security.psk"):
                return _terse_value(line)
        return ""

    def get_ip(self) -> str | None:
        """IPv4 address of the first device that has one."""
        self._sleep(DHCP_SETTLE)
        out = self._query(["nmcli", "-t", "-f", "IP4.ADDRESS", "device", "show"])
        for line in out.splitlines():
            if line.startswith("IP4.ADDRESS[1]"):
                return _terse_value(line) or None
        return None

    def ping_check(self, host: str, count: int) -> tuple[bool, float | None]:
        """Reachability probe: (reachable, average latency ms)."""
        cmd = ["ping", "-c", str(count), "-W", str(PING_WAIT), host]
        try:
            result = self._run(cmd, timeout=count * PING_WAIT + QUERY_TIMEOUT)
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError, ValueError) as exc:
            logger.debug("ping %s failed: %s", host, exc)
            return False, None
        if result.returncode != 0:
            return False, None
        return True, parse_ping_rtt(result.stdout or "")

    def details(self, ssid: str, ping_host: str) -> ConnectionDetails:
        """Collect the details panel contents for the active connection."""
        info = ConnectionDetails(ssid=ssid)
        out = self._query(["nmcli", "-t", "-f", "IP4.ADDRESS,IP4.GATEWAY,IP4.DNS", "device", "show"])
        dns: list[str] = []
        for line in out.splitlines():
            value = _terse_value(line)
            if line.startswith("IP4.ADDRESS[1]") and info.ip == "N/A" and value:
                info.ip = value
            elif line.startswith("IP4.GATEWAY") and info.gateway == "N/A" and value:
                info.gateway = value
            elif line.startswith("IP4.DNS") and value:
                dns.append(value)
        if dns:
            info.dns = ", ".join(dns)

        out = self._query(["nmcli", "-t", "-f", "IN-USE,SIGNAL,SECURITY", "device", "wifi"])
        for line in out.splitlines():
            if line.startswith("*:"):
                parts = line.split(":")
                if len(parts) >= 3:
                    info.signal = parts[1] or "--"
                    info.security = parts[2] or "--"
                break

        _, info.ping_ms = self.ping_check(ping_host, 1)
        return info

    def active_hotspot(self) -> str | None:
        """Name of an active hotspot connection, if any."""
        out = self._query(["nmcli", "-t", "-f", "NAME,DEVICE", "connection", "show", "--active"])
        for line in out.splitlines():
            name = line.split(":", 1)[0]
            if _is_hotspot_name(name):
                return name
        return None

    def hotspot_profile(self) -> str | None:
        """Name of a saved (inactive) hotspot profile, if any."""
        for name in self.saved_connections():
            if _is_hotspot_name(name):
                return name
        return None

    # -- actions ----------------------------------------------------------

    def connect_new(self, ssid: str, password: str | None) -> ConnectResult:
        """Create and activate a profile for *ssid*, classifying failure."""
        cmd = ["nmcli", "--wait", str(self.connect_timeout), "device", "wifi", "connect", ssid]
        if password:
            cmd += ["password", password]
        if self._interface:
            cmd += ["ifname", self._interface]

        try:
            result = self._run(cmd, timeout=self.connect_timeout + CONNECT_MARGIN)
        except subprocess.TimeoutExpired:
            self._delete_quietly(ssid)
            return ConnectResult(ConnectOutcome.TIMEOUT)
        except (FileNotFoundError, OSError, ValueError) as exc:
            return ConnectResult(ConnectOutcome.FAILED, message=str(exc))

        if result.returncode == 0:
            return ConnectResult(ConnectOutcome.SUCCESS, ip=self.get_ip() or "unknown")

        # nmcli leaves a half-created profile behind on failure
        self._delete_quietly(ssid)
        return classify_connect_failure(result.stdout or "", result.stderr or "")

    def connect_saved(self, ssid: str) -> bool:
        """Bring up an existing saved profile."""
        cmd = ["nmcli", "--wait", str(self.connect_timeout), "connection", "up", ssid]
        try:
            result = self._run(cmd, timeout=self.connect_timeout + CONNECT_MARGIN)
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError, ValueError) as exc:
            logger.info("bringing up %s failed: %s", ssid, exc)
            return False
        return result.returncode == 0

    def disconnect(self, ssid: str) -> None:
        self._action(["nmcli", "connection", "down", ssid], f"disconnect {ssid}")

    def delete_connection(self, name: str) -> None:
        self._action(["nmcli", "connection", "delete", name], f"delete {name}")

    def set_radio(self, enable: bool) -> None:
        self._action(["nmcli", "radio", "wifi", "on" if enable else "off"], "radio toggle")

    def connection_up(self, name: str) -> None:
        self._action(
            ["nmcli", "connection", "up", name], f"bring up {name}",
            timeout=self.connect_timeout + CONNECT_MARGIN,
        )

    def connection_down(self, name: str) -> None:
        self._action(["nmcli", "connection", "down", name], f"bring down {name}")

    def create_hotspot(self, ssid: str, password: str) -> None:
        """Create an access-point profile named ``Hotspot`` and start it."""
        self._action([
            "nmcli", "connection", "add",
            "type", "wifi",
            "ifname", self._interface or "*",
            "con-name", HOTSPOT_PROFILE,
            "autoconnect", "no",
            "ssid", ssid,
            "802-11-wireless.mode", "ap",
            "802-11-wireless-security.key-mgmt", "wpa-psk",
            "802-11-wireless-security.psk", password,
            "ipv4.method", "shared",
        ], "create hotspot")
        self.connection_up(HOTSPOT_PROFILE)

    def _delete_quietly(self, name: str) -> None:
        try:
            self._run(["nmcli", "connection", "delete", name])
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError, ValueError):
            pass
