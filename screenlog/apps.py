from __future__ import annotations

import subprocess
from typing import List

from .models import AppInfo
from .utils import get_foreground_window, is_macos, is_windows

# First line: frontmost process name. Following lines: "<name>\t<front window title>".
# Tabs and line breaks inside names and titles are flattened to spaces so each
# process stays on exactly one line.
OPEN_APPS_SCRIPT = """
on flatten(txt)
  set savedDelimiters to AppleScript's text item delimiters
  set AppleScript's text item delimiters to {tab, linefeed, return}
  set pieces to text items of txt
  set AppleScript's text item delimiters to " "
  set flat to pieces as text
  set AppleScript's text item delimiters to savedDelimiters
  return flat
end flatten

tell application "System Events"
  set output to ""
  set frontName to my flatten(name of first application process whose frontmost is true)
  repeat with proc in (every process whose background only is false)
    set procName to my flatten(name of proc)
    set winTitle to ""
    try
      if exists window 1 of proc then set winTitle to my flatten(name of window 1 of proc)
    end try
    set output to output & procName & tab & winTitle & linefeed
  end repeat
  return frontName & linefeed & output
end tell
"""


def parse_open_apps(output: str) -> List[AppInfo]:
    lines = [line for line in output.splitlines() if line.strip()]
    if not lines:
        return []

    front_name = lines[0].strip()
    apps: List[AppInfo] = []
    seen: set[str] = set()
    front_assigned = False
    for line in lines[1:]:
        name, sep, title = line.partition("\t")
        name = name.strip()
        if not sep or not name or name in seen:
            continue
        seen.add(name)
        is_front = not front_assigned and name.lower() == front_name.lower()
        front_assigned = front_assigned or is_front
        apps.append(AppInfo(name=name, title=title.strip() or None, is_frontmost=is_front))
    return apps


class ApplicationEnumerator:
    def __init__(self, log):
        self._logger = log

    def list_open_apps(self) -> List[AppInfo]:
        if is_macos():
            return self._list_with_osascript()
        if is_windows():
            return self._list_foreground_window()
        self._logger.debug("Application enumeration is not supported on this platform")
        return []

    def _list_with_osascript(self) -> List[AppInfo]:
        try:
            result = subprocess.run(
                ["osascript", "-e", OPEN_APPS_SCRIPT],
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            self._logger.warning("osascript could not run: %s", exc)
            return []

        if result.returncode != 0:
            self._logger.warning("osascript exited with %s: %s", result.returncode, result.stderr.strip())
            return []

        apps = parse_open_apps(result.stdout)
        self._logger.debug("Open applications: %s", ", ".join(app.label() for app in apps))
        return apps

    def _list_foreground_window(self) -> List[AppInfo]:
        window = get_foreground_window()
        if window is None:
            return []
        title, exe_name = window
        return [AppInfo(name=exe_name, title=title or None, is_frontmost=True)]
