"""Stale-while-revalidate access to the scan cache.

Both the interactive menu and the background daemon read networks through
:class:`RefreshCoordinator`:

- a cache hit is returned immediately and a scan-and-write is kicked off
  in the background to keep the cache warm;
- a miss scans in the foreground under the scan lock;
- if the lock is busy (the daemon is mid-scan) we wait for that scan to
  finish and read its result with a widened TTL instead of scanning twice;
- if the lock file cannot be used at all the scan runs unlocked.

Nothing on this path raises to the caller.  The worst case is an empty
list, which the menu shows as "no networks".
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from typing import Callable

from rofiwifi.scanning.cache import ScanCache
from rofiwifi.scanning.lock import try_acquire
from rofiwifi.wifi_common import AccessPoint, ScanError, ScanExecutor, ScanLockError

logger = logging.getLogger(__name__)

Spawn = Callable[[Callable[[], object]], None]


def spawn_daemon_thread(work: Callable[[], object]) -> None:
    """Run *work* on a detached daemon thread; nobody waits for it."""
    thread = threading.Thread(target=work, name="rofi-wifi-refresh", daemon=True)
    thread.start()


class RefreshCoordinator:
    """Combine the scan lock, executor, and cache into one read policy.

    Args:
        cache: Snapshot store.
        executor: Scan backend.
        lock_path: Scan mutex file shared with other processes.
        stale_multiplier: TTL multiplier for the read that follows lock
            contention.
        scan_wait: Upper bound in seconds on waiting for someone else's
            in-flight scan.
        poll_interval: Seconds between lock probes while waiting.
        spawn: Launches background work (testing seam).
        sleep: ``time.sleep`` replacement (testing seam).
        clock: Monotonic clock for the wait bound (testing seam).
    """

    def __init__(
        self,
        cache: ScanCache,
        executor: ScanExecutor,
        lock_path: str,
        *,
        stale_multiplier: int = 10,
        scan_wait: float = 20.0,
        poll_interval: float = 0.25,
        spawn: Spawn | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cache = cache
        self._executor = executor
        self._lock_path = lock_path
        self._stale_multiplier = stale_multiplier
        self._scan_wait = scan_wait
        self._poll_interval = poll_interval
        self._spawn = spawn or spawn_daemon_thread
        self._sleep = sleep
        self._clock = clock

    def ensure_fresh(self, force: bool, ttl: float) -> list[AccessPoint]:
        """Return the current access points, scanning only when needed."""
        if force:
            self.cache.invalidate()

        cached = self.cache.read(ttl)
        if cached is not None:
            self._spawn(self._background_refresh)
            return cached

        fresh = self.scan_and_write()
        if fresh is not None:
            return fresh

        # Someone else holds the scan lock; use their result.
        self._wait_for_inflight_scan()
        return self.cache.read(ttl * self._stale_multiplier) or []

    def scan_and_write(self) -> list[AccessPoint] | None:
        """Scan and replace the cache while holding the scan lock.

        If the lock file itself is unusable the scan runs unlocked rather
        than not at all.

        Returns:
            The freshly scanned list (``[]`` if the scan or the write
            failed), or None when the lock was busy and nothing was done.
        """
        try:
            guard = try_acquire(self._lock_path)
        except ScanLockError as exc:
            logger.warning("scanning without the scan lock: %s", exc)
            return self._scan_into_cache()
        if guard is None:
            return None
        with guard:
            return self._scan_into_cache()

    def _scan_into_cache(self) -> list[AccessPoint]:
        try:
            self._executor.rescan()
            access_points = self._executor.list_access_points()
        except (ScanError, subprocess.SubprocessError, OSError, ValueError) as exc:
            logger.warning("scan failed: %s", exc)
            return []
        if not self.cache.write(access_points):
            return []
        logger.debug("scan complete: %d access point(s)", len(access_points))
        return access_points

    def _background_refresh(self) -> None:
        try:
            self.scan_and_write()
        except Exception:  # noqa: BLE001
            logger.exception("background refresh failed")

    def _wait_for_inflight_scan(self) -> None:
        """Block until the scan lock is free or ``scan_wait`` elapses."""
        deadline = self._clock() + self._scan_wait
        while True:
            try:
                guard = try_acquire(self._lock_path)
            except ScanLockError as exc:
                logger.warning("stopped waiting for in-flight scan: %s", exc)
                return
            if guard is not None:
                guard.release()
                return
            if self._clock() >= deadline:
                logger.debug("gave up waiting for in-flight scan after %ss", self._scan_wait)
                return
            self._sleep(self._poll_interval)
