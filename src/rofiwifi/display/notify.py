"""Desktop notifications via notify-send, falling back to stderr."""

from __future__ import annotations

import enum
import logging
import subprocess
import sys

from rofiwifi.wifi_common import CommandRunner, SubprocessRunner, _desktop_env

logger = logging.getLogger(__name__)

_DEFAULT_RUNNER = SubprocessRunner()

NOTIFY_TIMEOUT = 3  # seconds


class Urgency(enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    CRITICAL = "critical"


class Notifier:
    """Send fire-and-forget notifications; never raises.

    Args:
        runner: Optional CommandRunner for subprocess calls (testing seam).
    """

    def __init__(self, runner: CommandRunner | None = None) -> None:
        self._runner = runner or _DEFAULT_RUNNER

    def send(self, urgency: Urgency, title: str, body: str = "") -> None:
        cmd = ["notify-send", "-u", urgency.value, f"Wi-Fi: {title}", body]
        try:
            result = self._runner.run(
                cmd, capture_output=True, text=True, timeout=NOTIFY_TIMEOUT, env=_desktop_env(),
            )
            if result.returncode == 0:
                return
            logger.debug("notify-send exited %d", result.returncode)
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as exc:
            logger.debug("notify-send failed: %s", exc)

        suffix = f": {body}" if body else ""
        print(f"[{urgency.value}] Wi-Fi: {title}{suffix}", file=sys.stderr)

    def low(self, title: str, body: str = "") -> None:
        self.send(Urgency.LOW, title, body)

    def normal(self, title: str, body: str = "") -> None:
        self.send(Urgency.NORMAL, title, body)

    def critical(self, title: str, body: str = "") -> None:
        self.send(Urgency.CRITICAL, title, body)
