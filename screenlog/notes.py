from __future__ import annotations

import os
import subprocess
import sys
from datetime import datetime
from typing import Optional
from urllib.parse import quote


def build_daily_append_uri(vault_name: str, text: str, heading_time: str) -> str:
    """Obsidian advanced-uri that appends a "## HH:MM" section to today's daily note."""
    data = quote(f"## {heading_time}\r\n{text}", safe="")
    return f"obsidian://advanced-uri?vault={quote(vault_name, safe='')}&daily=true&mode=append&data={data}"


class ObsidianNotes:
    def __init__(self, vault_name: Optional[str], timezone, log):
        self._vault_name = vault_name
        self._timezone = timezone
        self._logger = log

    @property
    def enabled(self) -> bool:
        return bool(self._vault_name)

    def append(self, text: str) -> bool:
        if not self._vault_name:
            self._logger.debug("OBSIDIAN_VAULT_NAME is not set. Skipping Obsidian integration.")
            return False

        heading_time = datetime.now(tz=self._timezone).strftime("%H:%M")
        uri = build_daily_append_uri(self._vault_name, text, heading_time)
        try:
            ok = self._open_uri(uri)
        except (OSError, subprocess.SubprocessError) as exc:
            self._logger.error("Error sending to Obsidian: %s", exc)
            return False

        if ok:
            self._logger.info("Sent note to Obsidian vault %s", self._vault_name)
        return ok

    def _open_uri(self, uri: str) -> bool:
        if os.name == "nt":
            os.startfile(uri)  # type: ignore[attr-defined]
            return True

        command = ["open", "--background", uri] if sys.platform == "darwin" else ["xdg-open", uri]
        result = subprocess.run(command, capture_output=True, timeout=30)
        if result.returncode != 0:
            self._logger.error("Failed to send to Obsidian, exit code: %s", result.returncode)
            return False
        return True
