"""macOS notifications."""

import logging
import shutil
import subprocess
from typing import Optional

logger = logging.getLogger(__name__)

APP_TITLE = "NextCall"
SOUND = "Blow"
SEND_TIMEOUT_SECS = 10


def _quote(text: str) -> str:
    """Escape text for an AppleScript string literal."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


class Notifier:
    """
    Sends desktop notifications.

    Call startup() once before send(). It picks terminal-notifier when
    installed (clicking the notification opens the call link) and falls back
    to AppleScript's display notification otherwise.
    """

    def __init__(self):
        self._backend: Optional[str] = None

    @property
    def started(self) -> bool:
        return self._backend is not None

    def startup(self):
        if self.started:
            return
        terminal_notifier = shutil.which("terminal-notifier")
        if terminal_notifier:
            self._backend = terminal_notifier
        elif shutil.which("osascript"):
            self._backend = "osascript"
        else:
            raise RuntimeError("No notification backend found (need osascript or terminal-notifier)")
        logger.info("Notifications via %s", self._backend)

    def _command(self, title: str, subtitle: Optional[str], body: str,
                 action_url: Optional[str]) -> list[str]:
        if self._backend != "osascript":
            cmd = [self._backend, "-title", title, "-message", body or " ", "-sound", SOUND]
            if subtitle:
                cmd += ["-subtitle", subtitle]
            if action_url:
                cmd += ["-open", action_url]
            return cmd

        script = f'display notification "{_quote(body)}" with title "{_quote(title)}"'
        if subtitle:
            script += f' subtitle "{_quote(subtitle)}"'
        script += f' sound name "{SOUND}"'
        return ["osascript", "-e", script]

    def send(self, title: str, subtitle: Optional[str] = None, body: str = "",
             action_url: Optional[str] = None):
        """Show a notification; delivery failures are logged."""
        if not self.started:
            raise RuntimeError("Notifier.startup() has not been called")

        try:
            result = subprocess.run(
                self._command(title, subtitle, body, action_url),
                capture_output=True,
                text=True,
                timeout=SEND_TIMEOUT_SECS,
                check=False,
            )
            if result.returncode != 0:
                logger.warning("Notification failed: %s", result.stderr.strip())
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("Notification failed: %s", e)
