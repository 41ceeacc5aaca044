"""rofi launcher wrapper: menus, prompts, confirmations, read-only panels.

Every helper returns None (or False) when the user dismisses the window,
so callers can treat cancellation uniformly.
"""

from __future__ import annotations

import logging

from rofiwifi.config import Config
from rofiwifi.wifi_common import CommandRunner, SubprocessRunner, _desktop_env

logger = logging.getLogger(__name__)

_DEFAULT_RUNNER = SubprocessRunner()

YES = "Yes"
NO = "No"


class RofiLauncher:
    """Present choices through ``rofi -dmenu``.

    Args:
        config: Font and window placement come from here.
        runner: Optional CommandRunner for subprocess calls (testing seam).
    """

    def __init__(self, config: Config, runner: CommandRunner | None = None) -> None:
        self._config = config
        self._runner = runner or _DEFAULT_RUNNER

    def dmenu(
        self,
        items: list[str],
        prompt: str,
        extra: list[str] | tuple[str, ...] = (),
    ) -> str | None:
        """Show *items* and return the chosen (or typed) line.

        Returns None on Esc, on an empty selection, or if rofi cannot run.
        """
        cmd = [
            "rofi", "-dmenu",
            "-p", prompt,
            "-font", self._config.font,
            "-location", str(self._config.position),
            "-yoffset", str(self._config.y_offset),
            "-xoffset", str(self._config.x_offset),
            *extra,
        ]
        try:
            # rofi renders once stdin reaches EOF, which run(input=...) gives us
            result = self._runner.run(
                cmd, capture_output=True, text=True, env=_desktop_env(),
                input="\n".join(items),
            )
        except (FileNotFoundError, OSError) as exc:
            logger.error("cannot run rofi: %s", exc)
            return None
        if result.returncode != 0:
            return None
        choice = (result.stdout or "").strip()
        return choice or None

    def password_prompt(self, hint: str = "") -> str | None:
        prompt = f"🔒 Password ({hint}): " if hint else "🔒 Password: "
        return self.dmenu([], prompt, ["-password", "-lines", "0"])

    def input_prompt(self, prompt: str) -> str | None:
        return self.dmenu([], prompt, ["-lines", "1"])

    def confirm(self, message: str) -> bool:
        """Yes/No question; anything but an explicit Yes is a no."""
        return self.dmenu([YES, NO], message, ["-lines", "2"]) == YES

    def show_info(self, title: str, content: str) -> None:
        """Read-only panel; the selection is ignored."""
        self.dmenu(content.splitlines(), title, ["-no-custom", "-mesg", "Press Esc to close"])

    def show_qr(self, ssid: str, qr_text: str) -> None:
        first = qr_text.splitlines()[0] if qr_text else ""
        width = (len(first) or 40) + 4
        self.dmenu(
            ["── Esc or Enter to close ──"],
            f"📷 {ssid}",
            [
                "-mesg", qr_text,
                "-lines", "1",
                "-font", "Monospace 9",
                "-width", f"-{width}",
                "-no-custom",
            ],
        )

    def main_menu(
        self,
        items: list[str],
        prompt: str,
        *,
        highlight: int | None = None,
        warning: str | None = None,
        max_lines: int = 8,
    ) -> str | None:
        """Top-level network list with an optional active row and banner."""
        width = max((len(item) for item in items), default=40) + 4
        extra = ["-lines", str(max_lines), "-width", f"-{width}"]
        if highlight is not None:
            extra += ["-a", str(highlight)]
        if warning:
            extra += ["-mesg", warning]
        return self.dmenu(items, prompt, extra)
