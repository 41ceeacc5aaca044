"""rofi-wifi: a rofi front end for NetworkManager Wi-Fi."""

__version__ = "0.3.0"
