"""WiFi join QR codes rendered as text for the launcher's message area."""

from __future__ import annotations

import io

import qrcode
import qrcode.constants

from rofiwifi.wifi_common import OPEN, WEP


def escape_wifi_field(value: str) -> str:
    """Backslash-escape the characters reserved by the WIFI: URI format."""
    out = []
    for ch in value:
        if ch in '\\;,":':
            out.append("\\")
        out.append(ch)
    return "".join(out)


def wifi_qr_payload(ssid: str, password: str, security: str) -> str:
    """Build the ``WIFI:T:...;S:...;P:...;;`` string phones understand."""
    if security == OPEN:
        kind = "nopass"
    elif security == WEP:
        kind = "WEP"
    else:
        kind = "WPA"
    return f"WIFI:T:{kind};S:{escape_wifi_field(ssid)};P:{escape_wifi_field(password)};;"


def wifi_qr_text(ssid: str, password: str, security: str) -> str:
    """Render the join code as block characters, indented two spaces."""
    qr = qrcode.QRCode(border=2, error_correction=qrcode.constants.ERROR_CORRECT_M)
    qr.add_data(wifi_qr_payload(ssid, password, security))
    qr.make(fit=True)
    buf = io.StringIO()
    qr.print_ascii(out=buf, invert=True)
    return "\n".join(f"  {line}" for line in buf.getvalue().splitlines())
