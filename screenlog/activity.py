from __future__ import annotations

import re
import shutil
import subprocess
import sys
from typing import Callable

from .utils import is_macos, is_windows, windows_idle_milliseconds

_HID_IDLE_RE = re.compile(r'"HIDIdleTime"\s*=\s*(\d+)')


class IdleTimeUnavailable(RuntimeError):
    pass


def system_idle_milliseconds() -> int:
    """Milliseconds since the last keyboard or mouse input on this machine."""
    if is_macos():
        return _macos_idle_milliseconds()
    if is_windows():
        return windows_idle_milliseconds()
    if sys.platform.startswith("linux"):
        return _xprintidle_milliseconds()
    raise IdleTimeUnavailable(f"Idle time is not supported on {sys.platform}")


def _macos_idle_milliseconds() -> int:
    try:
        output = subprocess.check_output(
            ["ioreg", "-c", "IOHIDSystem", "-d", "4"],
            text=True,
            stderr=subprocess.DEVNULL,
            timeout=10,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise IdleTimeUnavailable(f"ioreg failed: {exc}") from exc

    match = _HID_IDLE_RE.search(output)
    if not match:
        raise IdleTimeUnavailable("HIDIdleTime not found in ioreg output")
    # HIDIdleTime is reported in nanoseconds.
    return int(match.group(1)) // 1_000_000


def _xprintidle_milliseconds() -> int:
    binary = shutil.which("xprintidle")
    if not binary:
        raise IdleTimeUnavailable("xprintidle is not installed")
    try:
        output = subprocess.check_output([binary], text=True, stderr=subprocess.DEVNULL, timeout=10)
        return int(output.strip())
    except (OSError, subprocess.SubprocessError, ValueError) as exc:
        raise IdleTimeUnavailable(f"xprintidle failed: {exc}") from exc


class IdleDetector:
    def __init__(self, idle_threshold_minutes: float, log, idle_source: Callable[[], int] = system_idle_milliseconds):
        self._idle_threshold_minutes = idle_threshold_minutes
        self._logger = log
        self._idle_source = idle_source

    def idle_minutes(self) -> float:
        return self._idle_source() / 60000.0

    def is_user_afk(self) -> bool:
        try:
            idle = self.idle_minutes()
        except Exception as exc:
            # Unknown idle time counts as active so the capture still happens.
            self._logger.warning("Could not determine idle time, assuming user is active: %s", exc)
            return False

        if idle >= self._idle_threshold_minutes:
            self._logger.info("User idle for %.1f minutes (threshold %s)", idle, self._idle_threshold_minutes)
            return True
        self._logger.debug("User idle for %.1f minutes", idle)
        return False
