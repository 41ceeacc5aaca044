"""Tests for rofiwifi.wifi_common shared types and helpers."""

from __future__ import annotations

import subprocess

import pytest

from rofiwifi.wifi_common import (
    OPEN,
    WEP,
    WPA,
    WPA2,
    WPA3,
    AccessPoint,
    CommandRunner,
    ConnectOutcome,
    ConnectResult,
    Nav,
    SubprocessRunner,
    _desktop_env,
    _minimal_env,
    clamp_signal,
    dedupe_access_points,
    map_nmcli_security,
    needs_password,
    order_access_points,
)


# ---------------------------------------------------------------------------
# AccessPoint dataclass
# ---------------------------------------------------------------------------

class TestAccessPoint:
    def test_defaults(self):
        ap = AccessPoint(ssid="Test")
        assert ap.security == OPEN
        assert ap.signal == 0
        assert ap.bars == ""
        assert ap.in_use is False

    def test_display_line_marks_associated_network(self):
        line = AccessPoint("Home", WPA2, 80, "▂▄▆_", in_use=True).display_line()
        assert line.startswith("● 🔒 Home")
        assert line.endswith(" 80%")

    def test_display_line_open_network_has_no_lock(self):
        line = AccessPoint("Cafe", OPEN, 30, "▂___").display_line()
        assert "🔒" not in line
        assert "🔓" not in line
        assert "Cafe" in line

    def test_display_line_wep_uses_open_lock(self):
        assert "🔓" in AccessPoint("Old", WEP, 50).display_line()

    def test_to_dict_from_dict(self):
        ap = AccessPoint("Home", WPA3, 72, "▂▄▆_", in_use=True)
        assert AccessPoint.from_dict(ap.to_dict()) == ap

    def test_from_dict_clamps_signal(self):
        ap = AccessPoint.from_dict({"ssid": "X", "signal": 150})
        assert ap.signal == 100

    @pytest.mark.parametrize("record", [
        {},
        {"ssid": ""},
        {"ssid": 42},
        {"ssid": "X", "signal": "strong"},
    ])
    def test_from_dict_rejects_malformed_records(self, record):
        with pytest.raises((KeyError, TypeError, ValueError)):
            AccessPoint.from_dict(record)


class TestConnectResult:
    def test_defaults(self):
        result = ConnectResult(ConnectOutcome.SUCCESS)
        assert result.ip == ""
        assert result.message == ""

    def test_nav_members(self):
        assert {n.value for n in Nav} == {"back", "refresh", "quit"}


# ---------------------------------------------------------------------------
# Security mapping
# ---------------------------------------------------------------------------

class TestMapNmcliSecurity:
    @pytest.mark.parametrize("raw,expected", [
        ("WPA3", WPA3),
        ("WPA2 WPA3", WPA3),
        ("SAE", WPA3),
        ("WPA1 WPA2", WPA2),
        ("WPA2 802.1X", WPA2),
        ("WPA1", WPA),
        ("WEP", WEP),
        ("", OPEN),
        ("--", OPEN),
        ("  ", OPEN),
    ])
    def test_known_descriptors(self, raw, expected):
        assert map_nmcli_security(raw) == expected

    def test_unknown_descriptor_kept_verbatim(self):
        assert map_nmcli_security(" OWE ") == "OWE"


class TestNeedsPassword:
    def test_open_does_not(self):
        assert needs_password(OPEN) is False

    @pytest.mark.parametrize("security", [WEP, WPA, WPA2, WPA3, "OWE"])
    def test_everything_else_does(self, security):
        assert needs_password(security) is True


class TestClampSignal:
    @pytest.mark.parametrize("value,expected", [(-5, 0), (0, 0), (55, 55), (100, 100), (140, 100)])
    def test_clamps(self, value, expected):
        assert clamp_signal(value) == expected


# ---------------------------------------------------------------------------
# Ordering and deduplication
# ---------------------------------------------------------------------------

class TestOrderAccessPoints:
    def test_associated_first_then_signal_descending(self):
        aps = [
            AccessPoint("Weak", signal=20),
            AccessPoint("Mine", signal=40, in_use=True),
            AccessPoint("Strong", signal=90),
        ]
        assert [ap.ssid for ap in order_access_points(aps)] == ["Mine", "Strong", "Weak"]

    def test_stable_for_equal_signal(self):
        aps = [AccessPoint("A", signal=50), AccessPoint("B", signal=50)]
        assert [ap.ssid for ap in order_access_points(aps)] == ["A", "B"]


class TestDedupeAccessPoints:
    def test_keeps_strongest_duplicate(self):
        aps = order_access_points([
            AccessPoint("Mesh", signal=30),
            AccessPoint("Mesh", signal=80),
            AccessPoint("Other", signal=50),
        ])
        result = dedupe_access_points(aps)
        assert [(ap.ssid, ap.signal) for ap in result] == [("Mesh", 80), ("Other", 50)]

    def test_associated_entry_survives_stronger_duplicate(self):
        aps = order_access_points([
            AccessPoint("Mesh", signal=90),
            AccessPoint("Mesh", signal=35, in_use=True),
        ])
        result = dedupe_access_points(aps)
        assert len(result) == 1
        assert result[0].in_use is True
        assert result[0].signal == 35


# ---------------------------------------------------------------------------
# Subprocess environment
# ---------------------------------------------------------------------------

class TestMinimalEnv:
    def test_lc_all_is_c(self):
        assert _minimal_env()["LC_ALL"] == "C"

    def test_does_not_leak_full_environment(self, monkeypatch):
        monkeypatch.setenv("SECRET_TOKEN", "x")
        assert set(_minimal_env()) == {"PATH", "LC_ALL", "HOME"}


class TestDesktopEnv:
    def test_adds_display_variables(self, monkeypatch):
        monkeypatch.setenv("DISPLAY", ":0")
        monkeypatch.setenv("DBUS_SESSION_BUS_ADDRESS", "unix:path=/run/user/1000/bus")
        env = _desktop_env()
        assert env["DISPLAY"] == ":0"
        assert env["DBUS_SESSION_BUS_ADDRESS"].startswith("unix:")
        assert env["LC_ALL"] == "C"

    def test_skips_unset_variables(self, monkeypatch):
        monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
        assert "WAYLAND_DISPLAY" not in _desktop_env()


# ---------------------------------------------------------------------------
# CommandRunner protocol & SubprocessRunner
# ---------------------------------------------------------------------------

class TestCommandRunnerProtocol:
    """CommandRunner protocol defines the subprocess injection seam."""

    def test_subprocess_runner_satisfies_protocol(self):
        runner: CommandRunner = SubprocessRunner()
        assert callable(runner.run)

    def test_run_returns_completed_process(self):
        result = SubprocessRunner().run(["echo", "hello"], capture_output=True, text=True)
        assert isinstance(result, subprocess.CompletedProcess)
        assert result.returncode == 0
        assert "hello" in result.stdout

    def test_run_replaces_undecodable_bytes(self):
        result = SubprocessRunner().run(["printf", "Caf\\351"])
        assert result.returncode == 0
        assert result.stdout == "Caf\ufffd"

    def test_run_feeds_input(self):
        result = SubprocessRunner().run(["cat"], input="a\nb")
        assert result.stdout == "a\nb"

    def test_run_raises_on_missing_command(self):
        with pytest.raises(FileNotFoundError):
            SubprocessRunner().run(["__nonexistent_cmd_12345__"])
