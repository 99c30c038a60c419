from __future__ import annotations

import json
import os
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional

from .models import ActivityRecord
from .utils import ensure_directory, iter_days


class StoreReadCorruption(RuntimeError):
    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"Activity partition {path} is unreadable: {reason}")


class ActivityStore:
    """Append-only activity log, one JSON line per capture, one file per calendar day."""

    def __init__(self, root: Path, timezone, log):
        self.root = ensure_directory(root)
        self._timezone = timezone
        self._logger = log

    def partition_path(self, day: date) -> Path:
        return self.root / f"activity_{day.isoformat()}.log"

    def append(self, record: ActivityRecord) -> Path:
        path = self.partition_path(record.timestamp.astimezone(self._timezone).date())
        line = json.dumps(record.to_dict(), ensure_ascii=False) + "\n"
        payload = line.encode("utf-8")

        # A single write() on an O_APPEND descriptor keeps concurrent appenders from interleaving.
        fd = os.open(path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
        try:
            written = os.write(fd, payload)
        finally:
            os.close(fd)
        if written != len(payload):
            raise OSError(f"Short write to {path}: {written}/{len(payload)} bytes")

        self._logger.info("Activity logged to %s", path)
        return path

    def read_partition(self, day: date) -> List[ActivityRecord]:
        path = self.partition_path(day)
        if not path.exists():
            return []

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StoreReadCorruption(path, str(exc)) from exc

        records: List[ActivityRecord] = []
        for lineno, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                records.append(ActivityRecord.from_dict(json.loads(line), self._timezone))
            except (ValueError, TypeError) as exc:
                self._logger.warning("Skipping malformed entry %s:%s: %s", path.name, lineno, exc)
        return records

    def read_most_recent(self, now: Optional[datetime] = None) -> Optional[ActivityRecord]:
        today = (now or datetime.now(tz=self._timezone)).astimezone(self._timezone).date()
        for day in (today, today - timedelta(days=1)):
            records = self._read_or_skip(day)
            if records:
                return records[-1]
        return None

    def read_range(self, start: datetime, end: datetime) -> List[ActivityRecord]:
        first = start.astimezone(self._timezone).date()
        last = end.astimezone(self._timezone).date()

        matched: List[ActivityRecord] = []
        for day in iter_days(first, last):
            for record in self._read_or_skip(day):
                if start <= record.timestamp <= end:
                    matched.append(record)

        matched.sort(key=lambda record: record.timestamp)
        return matched

    def _read_or_skip(self, day: date) -> List[ActivityRecord]:
        try:
            return self.read_partition(day)
        except StoreReadCorruption as exc:
            self._logger.warning("%s (skipped)", exc)
            return []
