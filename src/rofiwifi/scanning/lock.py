"""Cross-process scan mutex built on an advisory ``flock``.

Only the scan-and-write sequence takes the lock.  Acquisition never
waits: if the daemon (or another launcher) is already scanning, the
caller is told the lock is busy and decides what to do instead.  The
kernel drops the lock when the owning process exits, so a crashed
scanner never wedges the next one.
"""

from __future__ import annotations

import fcntl
import logging
import os

from rofiwifi.wifi_common import ScanLockError

logger = logging.getLogger(__name__)


class ScanLockGuard:
    """Holds the scan lock until :meth:`release` or the end of a ``with``."""

    def __init__(self, fd: int, path: str) -> None:
        self._fd: int | None = fd
        self.path = path

    @property
    def held(self) -> bool:
        return self._fd is not None

    def release(self) -> None:
        """Unlock and close; safe to call more than once."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        except OSError as exc:
            logger.debug("unlock %s failed: %s", self.path, exc)
        finally:
            os.close(fd)

    def __enter__(self) -> ScanLockGuard:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


def try_acquire(path: str) -> ScanLockGuard | None:
    """Take the exclusive scan lock at *path* without blocking.

    Returns:
        A guard on success, or None if another holder owns the lock.

    Raises:
        ScanLockError: if the lock file cannot be opened or locked at
            all (missing directory, another user's file...).
    """
    try:
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o600)
    except OSError as exc:
        raise ScanLockError(f"cannot open scan lock {path}: {exc}") from exc

    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        os.close(fd)
        logger.debug("scan lock busy: %s", path)
        return None
    except OSError as exc:
        os.close(fd)
        raise ScanLockError(f"scan lock {path} failed: {exc}") from exc
    return ScanLockGuard(fd, path)
