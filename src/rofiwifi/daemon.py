"""Background cache refresher.

Runs as a single instance, guarded by a PID file, and re-scans every
``cache_ttl`` seconds so the launcher almost always opens on a warm
cache.  SIGTERM (sent by ``rofi-wifi daemon-stop``) or SIGINT removes the
PID file, if it still names this process, and exits.
"""

from __future__ import annotations

import logging
import os
import signal
import sys
import time
from typing import Any, Callable

from rich.console import Console

from rofiwifi.scanning.refresh import RefreshCoordinator

logger = logging.getLogger(__name__)

Kill = Callable[[int, int], None]


class PidFile:
    """The daemon's liveness record at a well-known path.

    Args:
        path: PID file location.
        kill: ``os.kill`` replacement used for the liveness probe (testing seam).
    """

    def __init__(self, path: str, *, kill: Kill = os.kill) -> None:
        self.path = path
        self._kill = kill

    def read(self) -> int | None:
        """PID recorded in the file, or None if absent or unparsable."""
        try:
            with open(self.path, encoding="utf-8") as f:
                text = f.read().strip()
        except OSError:
            return None
        try:
            pid = int(text)
        except ValueError:
            return None
        return pid if pid > 0 else None

    def is_running(self) -> bool:
        """True if the recorded PID answers a null signal."""
        pid = self.read()
        if pid is None:
            return False
        try:
            self._kill(pid, 0)
        except OSError:
            return False
        return True

    def claim(self) -> int | None:
        """Record this process, unless a live instance already owns the file.

        Returns:
            The PID of the live owner, or None if we claimed the file.
        """
        if self.is_running():
            return self.read()
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(str(os.getpid()))
        return None

    def remove(self) -> None:
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("cannot remove PID file %s: %s", self.path, exc)

    def release(self) -> None:
        """Remove the file only while it still records this process."""
        owner = self.read()
        if owner != os.getpid():
            logger.info("PID file %s now belongs to %s; leaving it", self.path, owner)
            return
        self.remove()


class Daemon:
    """Periodic forced refresh of the scan cache.

    Args:
        coordinator: Performs each refresh.
        pid_file: Single-instance guard.
        ttl: Cache TTL; also the pause between refreshes.
        sleep: ``time.sleep`` replacement (testing seam).
        console: Rich console for status lines.
    """

    def __init__(
        self,
        coordinator: RefreshCoordinator,
        pid_file: PidFile,
        ttl: int,
        *,
        sleep: Callable[[float], None] = time.sleep,
        console: Console | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._pid_file = pid_file
        self._ttl = ttl
        self._sleep = sleep
        self._console = console or Console()

    def start(self, max_iterations: int | None = None) -> bool:
        """Run the refresh loop in the foreground.

        Args:
            max_iterations: Stop after this many refreshes (``None`` runs
                until signalled).

        Returns:
            False if another instance is already running, True once the
            loop ends.
        """
        owner = self._pid_file.claim()
        if owner is not None:
            self._console.print(f"[yellow]Daemon already running (PID {owner})[/yellow]")
            return False

        self._install_signal_handlers()
        self._console.print(
            f"[bold cyan]rofi-wifi[/bold cyan] daemon started (PID {os.getpid()}), "
            f"refreshing every {self._ttl}s"
        )
        try:
            iteration = 0
            while max_iterations is None or iteration < max_iterations:
                iteration += 1
                self.refresh_once()
                self._sleep(self._ttl)
        finally:
            self._pid_file.release()
        return True

    def refresh_once(self) -> None:
        """One forced refresh; failures are logged and never propagate."""
        try:
            access_points = self._coordinator.ensure_fresh(force=True, ttl=self._ttl)
        except Exception:  # noqa: BLE001
            logger.exception("daemon refresh failed")
            return
        logger.debug("daemon refresh: %d access point(s)", len(access_points))

    def _install_signal_handlers(self) -> None:
        def _handle(signum: int, _frame: Any) -> None:
            logger.info("daemon received signal %d, exiting", signum)
            self._pid_file.release()
            sys.exit(0)

        signal.signal(signal.SIGTERM, _handle)
        signal.signal(signal.SIGINT, _handle)


def stop(pid_file: PidFile, *, kill: Kill = os.kill, console: Console | None = None) -> bool:
    """Ask a running daemon to exit and remove its PID file.

    Does not wait for the process to exit.

    Returns:
        True if a stop signal was sent.
    """
    console = console or Console()
    if not os.path.exists(pid_file.path):
        console.print("Daemon not running")
        return False

    pid = pid_file.read()
    if pid is None:
        console.print("[yellow]PID file unreadable; removing it[/yellow]")
        pid_file.remove()
        return False

    try:
        kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        logger.info("daemon PID %d already gone", pid)
    except PermissionError as exc:
        console.print(f"[red]Cannot signal PID {pid}: {exc}[/red]")
        return False
    pid_file.remove()
    console.print(f"Daemon stopped (PID {pid})")
    return True
