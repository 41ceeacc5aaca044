"""Rich table for the ``rofi-wifi scan`` command.

Can be used standalone for checking table rendering::

    python -m rofiwifi.display.tables          # render a demo table
"""

from __future__ import annotations

from rich.markup import escape
from rich.table import Table

from rofiwifi.wifi_common import OPEN, WEP, AccessPoint


def signal_style(signal: int) -> str:
    """Rich color for a 0-100 signal quality."""
    if signal >= 70:
        return "green"
    if signal >= 40:
        return "yellow"
    return "red"


def security_style(security: str) -> str:
    """Rich color for a security label; open networks stand out."""
    if security == OPEN:
        return "red"
    if security == WEP:
        return "yellow"
    return "green"


def build_table(
    access_points: list[AccessPoint],
    *,
    remaining: int | None = None,
) -> Table:
    """Build a Rich Table of access points in menu order.

    Args:
        access_points: Ordered list, associated network first.
        remaining: Optional seconds of cache validity to show in the caption.
    """
    caption = f"{len(access_points)} network(s)"
    if remaining is not None:
        caption += f" · cache valid {remaining}s"
    table = Table(
        title="Wi-Fi networks",
        title_style="bold cyan",
        caption=caption,
        caption_style="grey50",
        expand=True,
        show_lines=False,
        padding=(0, 1),
    )
    table.add_column("#", style="grey50", width=3, justify="right")
    table.add_column("Con", justify="center", width=3)
    table.add_column("SSID", style="white", min_width=15, max_width=32)
    table.add_column("Sig", justify="right", width=4)
    table.add_column("Bars", width=5)
    table.add_column("Security", min_width=8)

    for i, ap in enumerate(access_points, 1):
        sig_c = signal_style(ap.signal)
        sec_c = security_style(ap.security)
        table.add_row(
            str(i),
            "[green]●[/green]" if ap.in_use else "",
            escape(ap.ssid),
            f"[{sig_c}]{ap.signal}[/{sig_c}]",
            f"[{sig_c}]{escape(ap.bars)}[/{sig_c}]",
            f"[{sec_c}]{escape(ap.security)}[/{sec_c}]",
            style="bold" if ap.in_use else "",
        )

    return table


def main() -> None:
    """Render a demo table with sample data for visual testing."""
    from rich.console import Console

    sample = [
        AccessPoint(ssid="HomeNet", security="WPA2", signal=82, bars="▂▄▆█", in_use=True),
        AccessPoint(ssid="Office", security="WPA3", signal=61, bars="▂▄▆_"),
        AccessPoint(ssid="Cafe", security=OPEN, signal=30, bars="▂___"),
    ]
    Console().print(build_table(sample, remaining=17))


if __name__ == "__main__":
    main()
