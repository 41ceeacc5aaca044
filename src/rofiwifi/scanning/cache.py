"""On-disk TTL cache for the most recent scan result.

The cache file is shared by the interactive process and the background
daemon.  Writers go through a temporary file in the same directory and
``os.replace`` it over the cache, so a reader only ever sees the previous
complete snapshot or the new one.  Reads take no lock.

File format::

    {"timestamp": 1700000000,
     "access_points": [{"ssid": "Home", "security": "WPA2", "signal": 80,
                        "bars": "▂▄▆_", "in_use": true}, ...]}
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from typing import Any, Callable

from rofiwifi.wifi_common import AccessPoint, order_access_points

logger = logging.getLogger(__name__)


class ScanCache:
    """TTL-checked snapshot store at a single path.

    Args:
        path: Cache file location.
        clock: Returns seconds since the epoch (testing seam).
    """

    def __init__(self, path: str, *, clock: Callable[[], float] = time.time) -> None:
        self.path = path
        self._clock = clock

    def write(self, access_points: list[AccessPoint]) -> bool:
        """Atomically replace the snapshot with *access_points*.

        Returns:
            True on success.  On failure the previous snapshot (if any) is
            left untouched and False is returned.
        """
        data = {
            "timestamp": int(self._clock()),
            "access_points": [ap.to_dict() for ap in order_access_points(access_points)],
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path: str | None = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=".rofi-wifi-cache.", suffix=".tmp", dir=directory,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as exc:
            logger.warning("cache write to %s failed: %s", self.path, exc)
            return False
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
        logger.debug("cache written: %d access point(s)", len(data["access_points"]))
        return True

    def read(self, ttl: float) -> list[AccessPoint] | None:
        """Return the cached access points if younger than *ttl* seconds.

        A missing, unreadable, malformed, or expired cache is a miss and
        returns None.
        """
        snapshot = self._load()
        if snapshot is None:
            return None
        timestamp, access_points = snapshot
        age = self._clock() - timestamp
        if age < ttl:
            return access_points
        logger.debug("cache expired (age %.1fs, ttl %ss)", age, ttl)
        return None

    def invalidate(self) -> None:
        """Delete the cache file; a missing file is fine."""
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("cache invalidate failed: %s", exc)

    def remaining(self, ttl: float) -> int:
        """Whole seconds until the snapshot expires, 0 if none is usable."""
        snapshot = self._load()
        if snapshot is None:
            return 0
        age = self._clock() - snapshot[0]
        return int(max(0.0, ttl - age))

    def _load(self) -> tuple[int, list[AccessPoint]] | None:
        try:
            with open(self.path, encoding="utf-8") as f:
                raw: Any = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.debug("cache unreadable: %s", exc)
            return None

        try:
            timestamp = raw["timestamp"]
            if isinstance(timestamp, bool) or not isinstance(timestamp, int):
                raise TypeError(f"bad timestamp {timestamp!r}")
            access_points = [AccessPoint.from_dict(item) for item in raw["access_points"]]
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("cache malformed: %s", exc)
            return None
        return timestamp, access_points
