from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone as dt_timezone
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Callable, Iterator, Optional

from .models import parse_timestamp
from .utils import is_windows


class SchedulerPersistenceError(RuntimeError):
    pass


class SummaryScheduler:
    """Decides when the periodic rollup is due, persisting the last emission time.

    The check-and-update runs under an exclusive lock on ``<checkpoint>.lock``
    so overlapping capture processes cannot both see the same window as due.
    """

    def __init__(
        self,
        checkpoint_path: Path,
        interval_minutes: float,
        log,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.checkpoint_path = checkpoint_path
        self.interval = timedelta(minutes=interval_minutes)
        self._logger = log
        self._clock = clock or (lambda: datetime.now(tz=dt_timezone.utc))

    @property
    def lock_path(self) -> Path:
        return self.checkpoint_path.with_name(self.checkpoint_path.name + ".lock")

    def is_summary_due(self) -> bool:
        try:
            self.checkpoint_path.parent.mkdir(parents=True, exist_ok=True)
            with _exclusive_lock(self.lock_path):
                now = self._clock()
                checkpoint = self._read_checkpoint()
                if checkpoint is None:
                    self._write_checkpoint(now)
                    self._logger.info("Summary checkpoint initialized at %s", now.isoformat())
                    return False

                elapsed = now - checkpoint
                if elapsed < self.interval:
                    self._logger.debug("Summary not due (%s elapsed of %s)", elapsed, self.interval)
                    return False

                self._write_checkpoint(now)
                self._logger.info("Summary due (%s since last summary)", elapsed)
                return True
        except OSError as exc:
            raise SchedulerPersistenceError(f"Summary checkpoint {self.checkpoint_path} is not usable: {exc}") from exc

    def last_checkpoint(self) -> Optional[datetime]:
        try:
            return self._read_checkpoint()
        except OSError as exc:
            raise SchedulerPersistenceError(f"Summary checkpoint {self.checkpoint_path} is not readable: {exc}") from exc

    def _read_checkpoint(self) -> Optional[datetime]:
        if not self.checkpoint_path.exists():
            return None
        raw = self.checkpoint_path.read_text(encoding="utf-8").strip()
        try:
            return parse_timestamp(raw, dt_timezone.utc)
        except ValueError:
            self._logger.warning("Ignoring unreadable summary checkpoint %r", raw)
            return None

    def _write_checkpoint(self, value: datetime) -> None:
        with NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=str(self.checkpoint_path.parent)) as tmp:
            tmp.write(value.isoformat())
            tmp_path = Path(tmp.name)
        try:
            tmp_path.replace(self.checkpoint_path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise


@contextmanager
def _exclusive_lock(path: Path) -> Iterator[None]:
    with open(path, "a+b") as handle:
        if is_windows():
            import msvcrt

            handle.seek(0)
            msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, 1)
            try:
                yield
            finally:
                handle.seek(0)
                msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        else:
            import fcntl

            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
