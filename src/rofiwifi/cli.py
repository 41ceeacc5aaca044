"""rofi-wifi command line entry point.

    rofi-wifi                 open the interactive launcher
    rofi-wifi daemon          keep the scan cache warm in the foreground
    rofi-wifi daemon-stop     signal a running daemon to exit
    rofi-wifi scan [--json]   print the current network list
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from rich.console import Console

from rofiwifi import __version__
from rofiwifi.config import (
    Config,
    cache_path,
    debug_log_path,
    load_config,
    lock_path,
    pid_path,
)
from rofiwifi.connection.attempt import ConnectionAttemptMachine
from rofiwifi.connection.nmcli import NmcliClient
from rofiwifi.daemon import Daemon, PidFile, stop
from rofiwifi.display.launcher import RofiLauncher
from rofiwifi.display.notify import Notifier
from rofiwifi.display.tables import build_table
from rofiwifi.menu import MenuLoop
from rofiwifi.scanning.cache import ScanCache
from rofiwifi.scanning.nmcli import NmcliScanExecutor
from rofiwifi.scanning.refresh import RefreshCoordinator
from rofiwifi.wifi_common import RuntimeDirError

_LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(name)s: %(levelname)s: %(message)s"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="rofi-wifi",
        description="Wi-Fi network manager for rofi, backed by NetworkManager",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="log debug output to stderr and to rofi-wifi-debug.log in the runtime directory",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="TOML settings file (default: search the usual locations)",
    )
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("daemon", help="refresh the scan cache every cache_ttl seconds")
    sub.add_parser("daemon-stop", help="stop a running daemon")
    scan = sub.add_parser("scan", help="print the network list and exit")
    scan.add_argument(
        "--json", action="store_true", dest="json_output",
        help="output as JSON instead of a table",
    )
    scan.add_argument(
        "--force", action="store_true",
        help="ignore the cache and scan now",
    )
    return parser.parse_args(argv)


def _setup_logging(debug: bool) -> None:
    """Warnings go to stderr; ``--debug`` adds DEBUG level and a log file."""
    if not debug:
        logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT, stream=sys.stderr)
        return
    logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT, stream=sys.stderr)
    try:
        file_handler = logging.FileHandler(debug_log_path(), mode="a", encoding="utf-8")
    except (OSError, RuntimeDirError) as exc:
        _LOGGER.warning("debug log file unavailable: %s", exc)
        return
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(file_handler)


def _build_coordinator(config: Config) -> RefreshCoordinator:
    return RefreshCoordinator(
        ScanCache(cache_path()),
        NmcliScanExecutor(interface=config.interface),
        lock_path(),
        stale_multiplier=config.stale_multiplier,
    )


def _build_menu(config: Config, coordinator: RefreshCoordinator) -> MenuLoop:
    notifier = Notifier()
    client = NmcliClient(connect_timeout=config.connect_timeout, interface=config.interface)
    launcher = RofiLauncher(config)
    machine = ConnectionAttemptMachine(
        client,
        launcher.password_prompt,
        notifier,
        max_retry=config.max_retry,
        ping_host=config.ping_host,
        ping_count=config.ping_count,
        auto_vpn=config.auto_vpn,
    )
    return MenuLoop(config, coordinator, client, launcher, notifier, machine)


def _print_scan(
    console: Console,
    coordinator: RefreshCoordinator,
    ttl: int,
    *,
    force: bool,
    json_output: bool,
) -> None:
    access_points = coordinator.ensure_fresh(force, ttl)
    if json_output:
        print(json.dumps([ap.to_dict() for ap in access_points], indent=2, ensure_ascii=False))
        return
    if not access_points:
        console.print("[yellow]No networks found.[/yellow]")
        return
    console.print(build_table(access_points, remaining=coordinator.cache.remaining(ttl)))


def main(argv: list[str] | None = None) -> None:
    """Dispatch to the launcher, the daemon, or a one-shot scan."""
    args = _parse_args(argv)
    _setup_logging(args.debug)
    console = Console(stderr=True)
    config = load_config(args.config)
    _LOGGER.debug("config: %s", config)

    try:
        if args.command == "daemon-stop":
            stop(PidFile(pid_path()), console=console)
            return
        coordinator = _build_coordinator(config)
        if args.command == "daemon":
            daemon = Daemon(coordinator, PidFile(pid_path()), config.cache_ttl, console=console)
            daemon.start()
            return
        if args.command == "scan":
            _print_scan(
                Console(), coordinator, config.cache_ttl,
                force=args.force, json_output=args.json_output,
            )
            return
        _build_menu(config, coordinator).run()
    except RuntimeDirError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
