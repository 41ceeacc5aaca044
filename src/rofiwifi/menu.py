"""Interactive launcher loop.

Each pass shows the network list, runs the chosen action, and gets back
a :class:`~rofiwifi.wifi_common.Nav` signal.  ``REFRESH`` makes the next
pass force a scan, ``BACK`` reuses the cache, and ``QUIT`` ends the loop.
``QUIT`` only comes from dismissing the top-level list.  Dismissing any
nested prompt goes back to the list instead.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable

from qrcode.exceptions import DataOverflowError

from rofiwifi.config import Config
from rofiwifi.connection.attempt import AttemptState, ConnectionAttemptMachine
from rofiwifi.connection.nmcli import NmcliClient
from rofiwifi.display.launcher import RofiLauncher
from rofiwifi.display.notify import Notifier
from rofiwifi.display.qr import wifi_qr_text
from rofiwifi.scanning.refresh import RefreshCoordinator
from rofiwifi.wifi_common import OPEN, WPA2, AccessPoint, Nav, NetworkError, needs_password

logger = logging.getLogger(__name__)

MENU_PROMPT = "📶 Wi-Fi: "
TOGGLE_PREFIX = "⚡"
REFRESH_PREFIX = "🔄"
MANUAL_LABEL = "✏️  manual"
DISCONNECT_LABEL = "❌ disconnect"
FORGET_LABEL = "🗑️  forget"
HOTSPOT_LABEL = "📡 hotspot"
DETAILS_LABEL = "📊 details"
QRCODE_LABEL = "📷 qrcode"
OPEN_NETWORK_WARNING = "⚠ Open (unencrypted) networks in range; connect with care"
HOTSPOT_MIN_PASSWORD = 8
RADIO_SETTLE = 1.0  # seconds after enabling the radio before rescanning


class ActionKind(enum.Enum):
    CONNECT = "connect"
    TOGGLE_RADIO = "toggle_radio"
    REFRESH = "refresh"
    MANUAL = "manual"
    DISCONNECT = "disconnect"
    FORGET = "forget"
    HOTSPOT = "hotspot"
    DETAILS = "details"
    QRCODE = "qrcode"


@dataclass
class MenuAction:
    kind: ActionKind
    access_point: AccessPoint | None = None


def parse_action(
    choice: str,
    access_points: list[AccessPoint],
    current_ssid: str | None,
) -> MenuAction:
    """Map the launcher's selected line to an action.

    Unknown text (rofi allows typing) connects to the network it names,
    else to the current network, else refreshes.
    """
    text = choice.strip()
    if text.startswith(TOGGLE_PREFIX):
        return MenuAction(ActionKind.TOGGLE_RADIO)
    if text.startswith(REFRESH_PREFIX):
        return MenuAction(ActionKind.REFRESH)
    fixed = {
        MANUAL_LABEL: ActionKind.MANUAL,
        DISCONNECT_LABEL: ActionKind.DISCONNECT,
        FORGET_LABEL: ActionKind.FORGET,
        HOTSPOT_LABEL: ActionKind.HOTSPOT,
        DETAILS_LABEL: ActionKind.DETAILS,
        QRCODE_LABEL: ActionKind.QRCODE,
    }
    if text in fixed:
        return MenuAction(fixed[text])

    for ap in access_points:
        if ap.display_line().strip() == text:
            return MenuAction(ActionKind.CONNECT, ap)
    named = [ap for ap in access_points if ap.ssid in choice]
    if named:
        return MenuAction(ActionKind.CONNECT, max(named, key=lambda ap: len(ap.ssid)))
    if current_ssid:
        for ap in access_points:
            if ap.ssid == current_ssid:
                return MenuAction(ActionKind.CONNECT, ap)
    return MenuAction(ActionKind.REFRESH)


class MenuLoop:
    """Drive the launcher until the user dismisses the network list.

    Args:
        config: User settings.
        coordinator: Source of access points (stale-while-revalidate).
        client: NetworkManager operations.
        launcher: rofi front end.
        notifier: Desktop notifications.
        machine: Connection attempt state machine.
        sleep: ``time.sleep`` replacement (testing seam).
    """

    def __init__(
        self,
        config: Config,
        coordinator: RefreshCoordinator,
        client: NmcliClient,
        launcher: RofiLauncher,
        notifier: Notifier,
        machine: ConnectionAttemptMachine,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._coordinator = coordinator
        self._client = client
        self._launcher = launcher
        self._notifier = notifier
        self._machine = machine
        self._sleep = sleep

    def run(self) -> None:
        force = False
        while True:
            nav = self.run_once(force)
            if nav is Nav.QUIT:
                return
            force = nav is Nav.REFRESH

    def run_once(self, force: bool) -> Nav:
        """Show the network list once and carry out the chosen action."""
        ttl = self._config.cache_ttl
        cache = self._coordinator.cache
        if force or cache.remaining(ttl) == 0:
            self._notifier.low("Scanning", "Searching for nearby networks…")
        access_points = self._coordinator.ensure_fresh(force, ttl)
        radio_on = self._client.radio_enabled()
        current_ssid = self._client.current_ssid()

        remaining = cache.remaining(ttl)
        items = [
            f"{TOGGLE_PREFIX} toggle off" if radio_on else f"{TOGGLE_PREFIX} toggle on",
            f"{REFRESH_PREFIX} refresh  (cache {remaining}s left)" if remaining
            else f"{REFRESH_PREFIX} refresh  (cache expired)",
            MANUAL_LABEL,
            DISCONNECT_LABEL,
            FORGET_LABEL,
            HOTSPOT_LABEL,
        ]
        if current_ssid:
            items += [DETAILS_LABEL, QRCODE_LABEL]
        ap_start = len(items)
        items += [ap.display_line() for ap in access_points]

        highlight = None
        if current_ssid:
            for i, ap in enumerate(access_points):
                if ap.ssid == current_ssid:
                    highlight = ap_start + i
                    break
        warning = OPEN_NETWORK_WARNING if any(ap.security == OPEN for ap in access_points) else None
        max_lines = min(len(items), self._config.max_lines) if radio_on else 1

        choice = self._launcher.main_menu(
            items, MENU_PROMPT, highlight=highlight, warning=warning, max_lines=max_lines,
        )
        if choice is None:
            return Nav.QUIT

        action = parse_action(choice, access_points, current_ssid)
        logger.debug("menu action: %s", action.kind.value)
        return self.handle_action(action, access_points, current_ssid)

    def handle_action(
        self,
        action: MenuAction,
        access_points: list[AccessPoint],
        current_ssid: str | None,
    ) -> Nav:
        """Run *action*; never raises for operational failures."""
        handlers: dict[ActionKind, Callable[[], Nav]] = {
            ActionKind.TOGGLE_RADIO: self._toggle_radio,
            ActionKind.REFRESH: lambda: Nav.REFRESH,
            ActionKind.MANUAL: self._manual,
            ActionKind.DISCONNECT: lambda: self._disconnect(current_ssid),
            ActionKind.FORGET: self._forget,
            ActionKind.HOTSPOT: self._hotspot,
            ActionKind.DETAILS: lambda: self._details(current_ssid),
            ActionKind.QRCODE: lambda: self._qrcode(current_ssid, access_points),
            ActionKind.CONNECT: lambda: self._connect(action.access_point),
        }
        try:
            return handlers[action.kind]()
        except NetworkError as exc:
            logger.warning("%s failed: %s", action.kind.value, exc)
            self._notifier.critical("Operation failed", str(exc))
            return Nav.BACK

    # -- actions ----------------------------------------------------------

    def _toggle_radio(self) -> Nav:
        enable = not self._client.radio_enabled()
        self._client.set_radio(enable)
        self._notifier.normal("Wi-Fi", "enabled" if enable else "disabled")
        if enable:
            self._sleep(RADIO_SETTLE)
        return Nav.REFRESH

    def _manual(self) -> Nav:
        text = self._launcher.input_prompt("Manual connect (SSID or SSID,password)")
        if not text:
            return Nav.BACK
        ssid, sep, password = text.partition(",")
        ssid, password = ssid.strip(), password.strip()
        if not ssid:
            self._notifier.critical("Error", "SSID cannot be empty")
            return Nav.BACK
        state = self._machine.connect(ssid, password if sep and password else None)
        return Nav.REFRESH if state is AttemptState.SUCCEEDED else Nav.BACK

    def _disconnect(self, current_ssid: str | None) -> Nav:
        if not current_ssid:
            self._notifier.low("Not connected", "No active Wi-Fi connection")
            return Nav.BACK
        if not self._launcher.confirm(f"Disconnect {current_ssid}?"):
            return Nav.BACK
        self._client.disconnect(current_ssid)
        self._notifier.normal("Disconnected", current_ssid)
        return Nav.REFRESH

    def _forget(self) -> Nav:
        saved = self._client.saved_connections()
        if not saved:
            self._notifier.low("Nothing to forget", "No saved Wi-Fi profiles")
            return Nav.BACK
        name = self._launcher.dmenu(saved, "🗑 Forget which network?", ["-lines", "6"])
        if name is None:
            return Nav.BACK
        if not self._launcher.confirm(f"Permanently delete “{name}”?"):
            return Nav.BACK
        self._client.delete_connection(name)
        self._notifier.normal("Forgotten", f"Profile for {name} deleted")
        return Nav.BACK

    def _hotspot(self) -> Nav:
        active = self._client.active_hotspot()
        if active:
            if self._launcher.confirm("Stop hotspot?"):
                self._client.connection_down(active)
                self._notifier.normal("Hotspot stopped", active)
            return Nav.BACK

        profile = self._client.hotspot_profile()
        if profile:
            self._client.connection_up(profile)
            self._notifier.normal("Hotspot started", profile)
            return Nav.BACK

        ssid = self._launcher.input_prompt("📡 Hotspot name: ")
        if not ssid:
            return Nav.BACK
        password = self._launcher.password_prompt(f"hotspot, at least {HOTSPOT_MIN_PASSWORD} characters")
        if not password:
            return Nav.BACK
        if len(password) < HOTSPOT_MIN_PASSWORD:
            self._notifier.critical("Error", f"Password needs at least {HOTSPOT_MIN_PASSWORD} characters")
            return Nav.BACK
        self._client.create_hotspot(ssid, password)
        self._notifier.normal("Hotspot started", f"SSID: {ssid}")
        return Nav.BACK

    def _details(self, current_ssid: str | None) -> Nav:
        if not current_ssid:
            self._notifier.low("Not connected", "No active Wi-Fi connection")
            return Nav.BACK
        self._notifier.low("Fetching", "Reading connection details…")
        d = self._client.details(current_ssid, self._config.ping_host)
        latency = f"{d.ping_ms:.1f} ms" if d.ping_ms is not None else "timeout"
        content = "\n".join([
            f"SSID     : {d.ssid}",
            f"IP       : {d.ip}",
            f"Gateway  : {d.gateway}",
            f"DNS      : {d.dns}",
            f"Security : {d.security}",
            f"Signal   : {d.signal}%",
            f"Latency  : {latency}",
        ])
        self._launcher.show_info(f"📊 {d.ssid}", content)
        return Nav.BACK

    def _qrcode(self, current_ssid: str | None, access_points: list[AccessPoint]) -> Nav:
        if not current_ssid:
            self._notifier.low("Not connected", "No active Wi-Fi connection")
            return Nav.BACK
        password = self._client.saved_password(current_ssid)
        security = next(
            (ap.security for ap in access_points if ap.ssid == current_ssid), WPA2,
        )
        try:
            text = wifi_qr_text(current_ssid, password, security)
        except DataOverflowError as exc:
            self._notifier.critical("QR code failed", str(exc) or "data too long")
            return Nav.BACK
        self._launcher.show_qr(current_ssid, text)
        return Nav.BACK

    def _connect(self, ap: AccessPoint | None) -> Nav:
        if ap is None:
            return Nav.REFRESH
        if ap.security == OPEN and not self._launcher.confirm(
            f"⚠ {ap.ssid} is an open network; traffic is unencrypted. Connect?"
        ):
            return Nav.BACK

        if ap.ssid in self._client.saved_connections():
            state = self._machine.bring_up_saved(ap.ssid)
        else:
            state = self._machine.connect(ap.ssid, requires_credential=needs_password(ap.security))
        return Nav.REFRESH if state is AttemptState.SUCCEEDED else Nav.BACK
