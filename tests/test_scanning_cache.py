"""Tests for rofiwifi.scanning.cache — the on-disk TTL snapshot."""

from __future__ import annotations

import json
import os
import threading
from unittest.mock import patch

import pytest

from rofiwifi.scanning.cache import ScanCache
from rofiwifi.wifi_common import WPA2, AccessPoint, order_access_points


class _Clock:
    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return _Clock(1000.0)


@pytest.fixture
def cache(tmp_path, clock):
    return ScanCache(str(tmp_path / "rofi-wifi-cache.json"), clock=clock)


SAMPLE = [
    AccessPoint("Cafe", signal=30),
    AccessPoint("Home", WPA2, 80, "▂▄▆_", in_use=True),
]


# ---------------------------------------------------------------------------
# write / read
# ---------------------------------------------------------------------------

class TestWriteRead:
    def test_fresh_snapshot_is_a_hit(self, cache, clock):
        assert cache.write(SAMPLE) is True
        clock.now = 1010.0
        result = cache.read(30)
        assert result is not None
        assert [ap.ssid for ap in result] == ["Home", "Cafe"]

    def test_snapshot_written_in_menu_order(self, cache):
        cache.write(SAMPLE)
        with open(cache.path, encoding="utf-8") as f:
            data = json.load(f)
        assert data["timestamp"] == 1000
        assert data["access_points"][0]["ssid"] == "Home"

    def test_expires_exactly_at_ttl(self, cache, clock):
        cache.write(SAMPLE)
        clock.now = 1029.0
        assert cache.read(30) is not None
        clock.now = 1030.0
        assert cache.read(30) is None

    def test_missing_file_is_a_miss(self, cache):
        assert cache.read(30) is None

    @pytest.mark.parametrize("content", [
        "not json",
        "[]",
        '{"access_points": []}',
        '{"timestamp": "1000", "access_points": []}',
        '{"timestamp": true, "access_points": []}',
        '{"timestamp": 1000, "access_points": [{"ssid": ""}]}',
    ])
    def test_malformed_file_is_a_miss(self, cache, content):
        with open(cache.path, "w", encoding="utf-8") as f:
            f.write(content)
        assert cache.read(30) is None

    def test_empty_list_is_a_valid_snapshot(self, cache):
        cache.write([])
        assert cache.read(30) == []


# ---------------------------------------------------------------------------
# Atomic replacement
# ---------------------------------------------------------------------------

class TestAtomicWrite:
    def test_failed_write_keeps_previous_snapshot(self, cache, clock):
        cache.write(SAMPLE)
        clock.now = 1005.0
        with patch("rofiwifi.scanning.cache.os.replace", side_effect=OSError("disk full")):
            assert cache.write([AccessPoint("Other")]) is False
        result = cache.read(30)
        assert result is not None
        assert {ap.ssid for ap in result} == {"Home", "Cafe"}

    def test_failed_write_leaves_no_temp_files(self, cache, tmp_path):
        with patch("rofiwifi.scanning.cache.os.replace", side_effect=OSError("disk full")):
            cache.write(SAMPLE)
        assert os.listdir(tmp_path) == []

    def test_successful_write_leaves_only_cache_file(self, cache, tmp_path):
        cache.write(SAMPLE)
        cache.write(SAMPLE)
        assert os.listdir(tmp_path) == ["rofi-wifi-cache.json"]

    def test_unwritable_directory_returns_false(self, tmp_path, clock):
        cache = ScanCache(str(tmp_path / "nope" / "cache.json"), clock=clock)
        assert cache.write(SAMPLE) is False

    def test_concurrent_readers_only_see_complete_snapshots(self, cache):
        small = [AccessPoint("Home", WPA2, 80)]
        large = [AccessPoint(f"Net{i:03d}", WPA2, i % 100) for i in range(200)]
        complete = {tuple(ap.ssid for ap in order_access_points(aps)) for aps in (small, large)}
        cache.write(small)
        stop = threading.Event()
        seen = []
        bad_remaining = []

        def reader():
            while True:
                result = cache.read(30)
                seen.append(None if result is None else tuple(ap.ssid for ap in result))
                remaining = cache.remaining(30)
                if remaining not in (0, 30):
                    bad_remaining.append(remaining)
                if stop.is_set():
                    return

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for thread in readers:
            thread.start()
        try:
            for i in range(200):
                assert cache.write(large if i % 2 else small) is True
        finally:
            stop.set()
            for thread in readers:
                thread.join(timeout=10)

        assert seen
        assert all(result is None or result in complete for result in seen)
        assert bad_remaining == []


# ---------------------------------------------------------------------------
# invalidate / remaining
# ---------------------------------------------------------------------------

class TestInvalidate:
    def test_removes_file(self, cache):
        cache.write(SAMPLE)
        cache.invalidate()
        assert not os.path.exists(cache.path)
        assert cache.read(30) is None

    def test_missing_file_is_fine(self, cache):
        cache.invalidate()


class TestRemaining:
    def test_snapshot_at_1000_with_ttl_30(self, cache, clock):
        cache.write(SAMPLE)
        clock.now = 1020.0
        assert cache.read(30) is not None
        assert cache.remaining(30) == 10
        clock.now = 1031.0
        assert cache.read(30) is None
        assert cache.remaining(30) == 0

    def test_counts_down(self, cache, clock):
        cache.write(SAMPLE)
        clock.now = 1012.5
        assert cache.remaining(30) == 17

    def test_zero_when_expired(self, cache, clock):
        cache.write(SAMPLE)
        clock.now = 2000.0
        assert cache.remaining(30) == 0

    def test_zero_when_missing(self, cache):
        assert cache.remaining(30) == 0
