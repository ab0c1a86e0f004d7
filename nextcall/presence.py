"""Detect whether the user is already on a call."""

import logging
import subprocess
from typing import Callable, Optional

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECS = 5


class PresenceGate:
    """
    Wraps an "in a call already" probe.

    A probe that raises is treated as "not in a call" so alerts still go out.
    """

    def __init__(self, probe: Optional[Callable[[], bool]] = None):
        self._probe = probe

    def query(self) -> bool:
        if self._probe is None:
            return False
        try:
            return bool(self._probe())
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Presence probe failed: %s", e)
            return False


def command_probe(command: str) -> Callable[[], bool]:
    """
    Build a probe from a shell command; exit status 0 means "in a call".

    Example: a script that checks whether the camera is running.
    """

    def probe() -> bool:
        result = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            timeout=PROBE_TIMEOUT_SECS,
            check=False,
        )
        return result.returncode == 0

    return probe
