"""WiFi access-point scanning via nmcli (NetworkManager CLI).

This is the scan executor used by the cache refresher.  It can also be
invoked as a standalone tool, bypassing the cache::

    python -m rofiwifi.scanning.nmcli                  # scan, print list
    python -m rofiwifi.scanning.nmcli -i wlan1         # specific interface
    python -m rofiwifi.scanning.nmcli --json           # JSON output
"""

from __future__ import annotations

import argparse
import json
import logging
import re
import subprocess
import sys

from rofiwifi.wifi_common import (
    AccessPoint,
    CommandRunner,
    ScanError,
    SubprocessRunner,
    _minimal_env,
    clamp_signal,
    dedupe_access_points,
    map_nmcli_security,
    order_access_points,
)

logger = logging.getLogger(__name__)

_DEFAULT_RUNNER = SubprocessRunner()

SCAN_TIMEOUT = 15  # seconds, per nmcli call


# ---------------------------------------------------------------------------
# nmcli output parsing
# ---------------------------------------------------------------------------

def _split_nmcli_line(line: str) -> list[str]:
    """Split a nmcli terse-mode line on unescaped colons.

    Colons inside field values are escaped as ``\\:``.  We split on
    unescaped colons and then unescape the fields.
    """
    parts = re.split(r"(?<!\\):", line)
    return [p.replace("\\:", ":").replace("\\\\", "\\") for p in parts]


def parse_ap_line(line: str) -> AccessPoint | None:
    """Parse one ``IN-USE:SSID:SECURITY:SIGNAL:BARS`` terse line.

    Returns None for truncated lines and hidden (empty or ``--``) SSIDs.
    """
    fields = _split_nmcli_line(line)
    if len(fields) < 5:
        return None

    ssid = fields[1].strip()
    if not ssid or ssid == "--":
        return None

    try:
        signal = int(fields[3].strip())
    except ValueError:
        signal = 0

    return AccessPoint(
        ssid=ssid,
        security=map_nmcli_security(fields[2]),
        signal=clamp_signal(signal),
        bars=fields[4].strip(),
        in_use=fields[0].strip() == "*",
    )


def parse_nmcli_output(output: str) -> list[AccessPoint]:
    """Parse nmcli terse output into an ordered, deduplicated list.

    The associated network comes first, then descending signal; duplicate
    SSIDs from multi-channel APs are collapsed.
    """
    access_points: list[AccessPoint] = []
    for line in output.strip().splitlines():
        line = line.strip()
        if not line:
            continue
        ap = parse_ap_line(line)
        if ap is not None:
            access_points.append(ap)
    return dedupe_access_points(order_access_points(access_points))


# ---------------------------------------------------------------------------
# Live scanning (requires nmcli on the system)
# ---------------------------------------------------------------------------

class NmcliScanExecutor:
    """Scan executor backed by ``nmcli device wifi``.

    Args:
        interface: Optional wireless interface name.
        runner: Optional CommandRunner for subprocess calls (testing seam).
    """

    def __init__(
        self,
        interface: str | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self._interface = interface
        self._runner = runner or _DEFAULT_RUNNER

    def rescan(self) -> None:
        """Trigger a rescan.  Failure is non-fatal; the list falls back to
        NetworkManager's cached results."""
        cmd = ["nmcli", "device", "wifi", "rescan"]
        if self._interface:
            cmd += ["ifname", self._interface]
        try:
            self._runner.run(cmd, capture_output=True, timeout=SCAN_TIMEOUT, env=_minimal_env())
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError, ValueError) as exc:
            logger.debug("rescan failed: %s", exc)

    def list_access_points(self) -> list[AccessPoint]:
        """Return the visible access points.

        Raises:
            ScanError: if nmcli is missing, times out, or exits non-zero.
        """
        cmd = [
            "nmcli", "-t",
            "-f", "IN-USE,SSID,SECURITY,SIGNAL,BARS",
            "device", "wifi", "list",
        ]
        if self._interface:
            cmd += ["ifname", self._interface]

        try:
            result = self._runner.run(
                cmd, capture_output=True, text=True, timeout=SCAN_TIMEOUT, env=_minimal_env(),
            )
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError, ValueError) as exc:
            raise ScanError(f"nmcli wifi list failed: {exc}") from exc

        if result.returncode != 0:
            raise ScanError(
                f"nmcli wifi list exited {result.returncode}: {(result.stderr or '').strip()}"
            )
        return parse_nmcli_output(result.stdout or "")


# ---------------------------------------------------------------------------
# Standalone CLI
# ---------------------------------------------------------------------------

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for standalone invocation."""
    parser = argparse.ArgumentParser(
        description="Scan WiFi networks via nmcli and print results (no cache).",
    )
    parser.add_argument(
        "-i", "--interface",
        help="Wireless interface to scan (default: all)",
    )
    parser.add_argument(
        "--json", action="store_true", dest="json_output",
        help="Output as JSON instead of a list",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Scan WiFi networks and print results to stdout."""
    args = _parse_args(argv)
    executor = NmcliScanExecutor(interface=args.interface)
    executor.rescan()
    try:
        access_points = executor.list_access_points()
    except ScanError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.json_output:
        print(json.dumps([ap.to_dict() for ap in access_points], indent=2, ensure_ascii=False))
        return
    if not access_points:
        print("No networks found.")
        return
    for ap in access_points:
        print(ap.display_line())
    print(f"\n{len(access_points)} network(s) found.")


if __name__ == "__main__":
    main()
