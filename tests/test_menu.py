"""Tests for rofiwifi.menu — action parsing and the interactive loop."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from qrcode.exceptions import DataOverflowError

from rofiwifi.config import Config
from rofiwifi.connection.attempt import AttemptState
from rofiwifi.menu import (
    DETAILS_LABEL,
    DISCONNECT_LABEL,
    FORGET_LABEL,
    HOTSPOT_LABEL,
    MANUAL_LABEL,
    OPEN_NETWORK_WARNING,
    QRCODE_LABEL,
    ActionKind,
    MenuAction,
    MenuLoop,
    parse_action,
)
from rofiwifi.wifi_common import OPEN, WPA2, AccessPoint, ConnectionDetails, Nav, NetworkError

HOME = AccessPoint("Home", WPA2, 80, "▂▄▆_", in_use=True)
HOME_5G = AccessPoint("Home 5G", WPA2, 60, "▂▄▆_")
CAFE = AccessPoint("Cafe", OPEN, 30, "▂___")
APS = [HOME, HOME_5G, CAFE]


# ---------------------------------------------------------------------------
# parse_action
# ---------------------------------------------------------------------------

class TestParseAction:
    @pytest.mark.parametrize("choice,kind", [
        ("⚡ toggle off", ActionKind.TOGGLE_RADIO),
        ("⚡ toggle on", ActionKind.TOGGLE_RADIO),
        ("🔄 refresh  (cache 12s left)", ActionKind.REFRESH),
        (MANUAL_LABEL, ActionKind.MANUAL),
        (DISCONNECT_LABEL, ActionKind.DISCONNECT),
        (FORGET_LABEL, ActionKind.FORGET),
        (HOTSPOT_LABEL, ActionKind.HOTSPOT),
        (DETAILS_LABEL, ActionKind.DETAILS),
        (QRCODE_LABEL, ActionKind.QRCODE),
    ])
    def test_header_rows(self, choice, kind):
        assert parse_action(choice, APS, "Home").kind is kind

    @pytest.mark.parametrize("ap", APS)
    def test_network_rows(self, ap):
        action = parse_action(ap.display_line(), APS, None)
        assert action == MenuAction(ActionKind.CONNECT, ap)

    def test_typed_text_prefers_longest_matching_ssid(self):
        action = parse_action("join Home 5G please", APS, None)
        assert action.access_point is HOME_5G

    def test_unknown_text_falls_back_to_current_network(self):
        action = parse_action("something else", APS, "Cafe")
        assert action == MenuAction(ActionKind.CONNECT, CAFE)

    def test_unknown_text_without_current_refreshes(self):
        assert parse_action("something else", APS, None).kind is ActionKind.REFRESH


# ---------------------------------------------------------------------------
# MenuLoop fixtures
# ---------------------------------------------------------------------------

def _loop(
    *,
    aps=None,
    choice=None,
    radio=True,
    current="Home",
    remaining=17,
    config=None,
):
    coordinator = MagicMock()
    coordinator.ensure_fresh.return_value = list(APS if aps is None else aps)
    coordinator.cache.remaining.return_value = remaining
    client = MagicMock()
    client.radio_enabled.return_value = radio
    client.current_ssid.return_value = current
    client.saved_connections.return_value = []
    launcher = MagicMock()
    launcher.main_menu.return_value = choice
    notifier = MagicMock()
    machine = MagicMock()
    machine.connect.return_value = AttemptState.SUCCEEDED
    machine.bring_up_saved.return_value = AttemptState.SUCCEEDED
    sleeps = []
    loop = MenuLoop(
        config or Config(), coordinator, client, launcher, notifier, machine,
        sleep=sleeps.append,
    )
    loop.sleeps = sleeps
    return loop, coordinator, client, launcher, notifier, machine


# ---------------------------------------------------------------------------
# run_once / run
# ---------------------------------------------------------------------------

class TestRunOnce:
    def test_dismissing_list_quits(self):
        loop, *_ = _loop(choice=None)
        assert loop.run_once(False) is Nav.QUIT

    def test_menu_items_when_connected(self):
        loop, _, _, launcher, _, _ = _loop()
        loop.run_once(False)
        items, prompt = launcher.main_menu.call_args.args
        assert items[0] == "⚡ toggle off"
        assert items[1] == "🔄 refresh  (cache 17s left)"
        assert items[6:8] == [DETAILS_LABEL, QRCODE_LABEL]
        assert items[8:] == [ap.display_line() for ap in APS]

    def test_highlights_current_network_and_warns_about_open(self):
        loop, _, _, launcher, _, _ = _loop()
        loop.run_once(False)
        kwargs = launcher.main_menu.call_args.kwargs
        assert kwargs["highlight"] == 8
        assert kwargs["warning"] == OPEN_NETWORK_WARNING
        assert kwargs["max_lines"] == 8

    def test_disconnected_menu_has_six_header_rows(self):
        loop, _, _, launcher, _, _ = _loop(current=None, aps=[HOME_5G])
        loop.run_once(False)
        items = launcher.main_menu.call_args.args[0]
        assert DETAILS_LABEL not in items
        assert items[6:] == [HOME_5G.display_line()]
        kwargs = launcher.main_menu.call_args.kwargs
        assert kwargs["highlight"] is None
        assert kwargs["warning"] is None
        assert kwargs["max_lines"] == 7

    def test_radio_off_shows_single_line(self):
        loop, _, _, launcher, _, _ = _loop(radio=False, current=None, aps=[])
        loop.run_once(False)
        items = launcher.main_menu.call_args.args[0]
        assert items[0] == "⚡ toggle on"
        assert launcher.main_menu.call_args.kwargs["max_lines"] == 1

    def test_expired_cache_label_and_scanning_notice(self):
        loop, _, _, launcher, notifier, _ = _loop(remaining=0)
        loop.run_once(False)
        assert launcher.main_menu.call_args.args[0][1] == "🔄 refresh  (cache expired)"
        assert notifier.low.call_args_list[0].args[0] == "Scanning"

    def test_force_passed_to_coordinator(self):
        loop, coordinator, *_ = _loop(config=Config(cache_ttl=12))
        loop.run_once(True)
        coordinator.ensure_fresh.assert_called_once_with(True, 12)


class TestRun:
    def test_refresh_forces_next_scan_then_quit(self):
        loop, coordinator, _, launcher, _, _ = _loop()
        launcher.main_menu.side_effect = ["🔄 refresh  (cache 17s left)", MANUAL_LABEL, None]
        launcher.input_prompt.return_value = None
        loop.run()
        forces = [c.args[0] for c in coordinator.ensure_fresh.call_args_list]
        assert forces == [False, True, False]


# ---------------------------------------------------------------------------
# handle_action
# ---------------------------------------------------------------------------

def _act(loop, kind, ap=None, current="Home"):
    return loop.handle_action(MenuAction(kind, ap), APS, current)


class TestToggleRadio:
    def test_enable_waits_then_refreshes(self):
        loop, _, client, _, _, _ = _loop(radio=False)
        assert _act(loop, ActionKind.TOGGLE_RADIO) is Nav.REFRESH
        client.set_radio.assert_called_once_with(True)
        assert loop.sleeps == [1.0]

    def test_disable_does_not_wait(self):
        loop, _, client, _, _, _ = _loop(radio=True)
        assert _act(loop, ActionKind.TOGGLE_RADIO) is Nav.REFRESH
        client.set_radio.assert_called_once_with(False)
        assert loop.sleeps == []


class TestManual:
    def test_ssid_and_password(self):
        loop, _, _, launcher, _, machine = _loop()
        launcher.input_prompt.return_value = "Secret Net, hunter22"
        assert _act(loop, ActionKind.MANUAL) is Nav.REFRESH
        machine.connect.assert_called_once_with("Secret Net", "hunter22")

    def test_ssid_only(self):
        loop, _, _, launcher, _, machine = _loop()
        launcher.input_prompt.return_value = "OpenNet"
        _act(loop, ActionKind.MANUAL)
        machine.connect.assert_called_once_with("OpenNet", None)

    def test_empty_ssid_is_rejected(self):
        loop, _, _, launcher, notifier, machine = _loop()
        launcher.input_prompt.return_value = ",password"
        assert _act(loop, ActionKind.MANUAL) is Nav.BACK
        machine.connect.assert_not_called()
        notifier.critical.assert_called_once()

    def test_cancel_goes_back(self):
        loop, _, _, launcher, _, machine = _loop()
        launcher.input_prompt.return_value = None
        assert _act(loop, ActionKind.MANUAL) is Nav.BACK
        machine.connect.assert_not_called()


class TestDisconnect:
    def test_confirmed(self):
        loop, _, client, launcher, _, _ = _loop()
        launcher.confirm.return_value = True
        assert _act(loop, ActionKind.DISCONNECT) is Nav.REFRESH
        client.disconnect.assert_called_once_with("Home")

    def test_declined(self):
        loop, _, client, launcher, _, _ = _loop()
        launcher.confirm.return_value = False
        assert _act(loop, ActionKind.DISCONNECT) is Nav.BACK
        client.disconnect.assert_not_called()

    def test_not_connected(self):
        loop, _, client, launcher, _, _ = _loop()
        assert _act(loop, ActionKind.DISCONNECT, current=None) is Nav.BACK
        launcher.confirm.assert_not_called()

    def test_network_error_reported(self):
        loop, _, client, launcher, notifier, _ = _loop()
        launcher.confirm.return_value = True
        client.disconnect.side_effect = NetworkError("disconnect Home failed")
        assert _act(loop, ActionKind.DISCONNECT) is Nav.BACK
        notifier.critical.assert_called_once_with("Operation failed", "disconnect Home failed")


class TestForget:
    def test_pick_and_confirm(self):
        loop, _, client, launcher, _, _ = _loop()
        client.saved_connections.return_value = ["Home", "Office"]
        launcher.dmenu.return_value = "Office"
        launcher.confirm.return_value = True
        assert _act(loop, ActionKind.FORGET) is Nav.BACK
        client.delete_connection.assert_called_once_with("Office")

    def test_cancel_pick(self):
        loop, _, client, launcher, _, _ = _loop()
        client.saved_connections.return_value = ["Home"]
        launcher.dmenu.return_value = None
        _act(loop, ActionKind.FORGET)
        client.delete_connection.assert_not_called()

    def test_declined_confirmation(self):
        loop, _, client, launcher, _, _ = _loop()
        client.saved_connections.return_value = ["Home"]
        launcher.dmenu.return_value = "Home"
        launcher.confirm.return_value = False
        _act(loop, ActionKind.FORGET)
        client.delete_connection.assert_not_called()


class TestHotspot:
    def test_stop_active_hotspot(self):
        loop, _, client, launcher, _, _ = _loop()
        client.active_hotspot.return_value = "Hotspot"
        launcher.confirm.return_value = True
        assert _act(loop, ActionKind.HOTSPOT) is Nav.BACK
        client.connection_down.assert_called_once_with("Hotspot")

    def test_start_saved_profile(self):
        loop, _, client, launcher, _, _ = _loop()
        client.active_hotspot.return_value = None
        client.hotspot_profile.return_value = "Hotspot"
        _act(loop, ActionKind.HOTSPOT)
        client.connection_up.assert_called_once_with("Hotspot")
        launcher.input_prompt.assert_not_called()

    def test_create_new(self):
        loop, _, client, launcher, _, _ = _loop()
        client.active_hotspot.return_value = None
        client.hotspot_profile.return_value = None
        launcher.input_prompt.return_value = "MyAP"
        launcher.password_prompt.return_value = "longenough"
        _act(loop, ActionKind.HOTSPOT)
        client.create_hotspot.assert_called_once_with("MyAP", "longenough")

    def test_short_password_rejected(self):
        loop, _, client, launcher, notifier, _ = _loop()
        client.active_hotspot.return_value = None
        client.hotspot_profile.return_value = None
        launcher.input_prompt.return_value = "MyAP"
        launcher.password_prompt.return_value = "short"
        _act(loop, ActionKind.HOTSPOT)
        client.create_hotspot.assert_not_called()
        notifier.critical.assert_called_once()


class TestDetailsAndQr:
    def test_details_panel(self):
        loop, _, client, launcher, _, _ = _loop()
        client.details.return_value = ConnectionDetails(
            ssid="Home", ip="10.0.0.5/24", gateway="10.0.0.1", dns="1.1.1.1",
            security="WPA2", signal="80", ping_ms=9.5,
        )
        assert _act(loop, ActionKind.DETAILS) is Nav.BACK
        client.details.assert_called_once_with("Home", "1.1.1.1")
        title, content = launcher.show_info.call_args.args
        assert title == "📊 Home"
        assert "10.0.0.5/24" in content
        assert "9.5 ms" in content

    def test_details_ping_timeout(self):
        loop, _, client, launcher, _, _ = _loop()
        client.details.return_value = ConnectionDetails(ssid="Home")
        _act(loop, ActionKind.DETAILS)
        assert "timeout" in launcher.show_info.call_args.args[1]

    def test_qrcode_uses_saved_password(self):
        loop, _, client, launcher, _, _ = _loop()
        client.saved_password.return_value = "secret123"
        assert _act(loop, ActionKind.QRCODE) is Nav.BACK
        ssid, text = launcher.show_qr.call_args.args
        assert ssid == "Home"
        assert text.strip()

    def test_qrcode_overflow_reported(self, monkeypatch):
        loop, _, client, launcher, notifier, _ = _loop()
        client.saved_password.return_value = "pw"

        def overflow(*_args):
            raise DataOverflowError("too long")

        monkeypatch.setattr("rofiwifi.menu.wifi_qr_text", overflow)
        _act(loop, ActionKind.QRCODE)
        launcher.show_qr.assert_not_called()
        notifier.critical.assert_called_once()


class TestConnect:
    def test_secured_new_network_requires_credential(self):
        loop, _, _, _, _, machine = _loop()
        assert _act(loop, ActionKind.CONNECT, HOME_5G) is Nav.REFRESH
        machine.connect.assert_called_once_with("Home 5G", requires_credential=True)

    def test_saved_network_uses_profile(self):
        loop, _, client, _, _, machine = _loop()
        client.saved_connections.return_value = ["Home 5G"]
        _act(loop, ActionKind.CONNECT, HOME_5G)
        machine.bring_up_saved.assert_called_once_with("Home 5G")
        machine.connect.assert_not_called()

    def test_open_network_needs_confirmation(self):
        loop, _, _, launcher, _, machine = _loop()
        launcher.confirm.return_value = False
        assert _act(loop, ActionKind.CONNECT, CAFE) is Nav.BACK
        machine.connect.assert_not_called()

    def test_open_network_confirmed(self):
        loop, _, _, launcher, _, machine = _loop()
        launcher.confirm.return_value = True
        _act(loop, ActionKind.CONNECT, CAFE)
        machine.connect.assert_called_once_with("Cafe", requires_credential=False)

    def test_failed_attempt_goes_back(self):
        loop, _, _, _, _, machine = _loop()
        machine.connect.return_value = AttemptState.FAILED
        assert _act(loop, ActionKind.CONNECT, HOME_5G) is Nav.BACK
