from __future__ import annotations

import ctypes
import os
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterator, Optional, Tuple


def ensure_directory(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def timestamp_slug(ts: datetime) -> str:
    return ts.strftime("%Y%m%d-%H%M%S")


def is_macos() -> bool:
    return sys.platform == "darwin"


def is_windows() -> bool:
    return os.name == "nt"


def iter_days(first: date, last: date) -> Iterator[date]:
    current = first
    while current <= last:
        yield current
        current += timedelta(days=1)


def get_foreground_window() -> Optional[Tuple[str, str]]:
    """Return (window title, executable name) of the Windows foreground window."""
    if not is_windows():
        return None

    from ctypes import wintypes

    user32 = ctypes.windll.user32
    hwnd = user32.GetForegroundWindow()
    if not hwnd:
        return None

    length = user32.GetWindowTextLengthW(hwnd)
    buffer = ctypes.create_unicode_buffer(length + 1)
    user32.GetWindowTextW(hwnd, buffer, length + 1)
    title = buffer.value

    pid = wintypes.DWORD()
    user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
    exe_name = "Unknown"

    if pid.value:
        try:
            import psutil

            exe_name = psutil.Process(pid.value).name()
        except Exception:
            exe_name = f"PID-{pid.value}"
    return title, exe_name


def windows_idle_milliseconds() -> int:
    """Milliseconds since the last keyboard or mouse input, via GetLastInputInfo."""
    from ctypes import wintypes

    class LASTINPUTINFO(ctypes.Structure):
        _fields_ = [("cbSize", wintypes.UINT), ("dwTime", wintypes.DWORD)]

    info = LASTINPUTINFO()
    info.cbSize = ctypes.sizeof(LASTINPUTINFO)
    if not ctypes.windll.user32.GetLastInputInfo(ctypes.byref(info)):
        raise OSError("GetLastInputInfo failed")
    # Both counters wrap at 2**32 ms.
    now = ctypes.windll.kernel32.GetTickCount() & 0xFFFFFFFF
    return (now - info.dwTime) & 0xFFFFFFFF
