"""Access-point scanning, the scan cache, and the refresh policy."""

from rofiwifi.scanning.cache import ScanCache  # noqa: F401
from rofiwifi.scanning.lock import try_acquire  # noqa: F401
from rofiwifi.scanning.nmcli import NmcliScanExecutor  # noqa: F401
from rofiwifi.scanning.refresh import RefreshCoordinator  # noqa: F401
