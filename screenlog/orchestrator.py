from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from pathlib import Path
from typing import Callable, List, Optional

from .analysis import AIServiceError
from .continuity import analyze
from .models import ActivityRecord, ActivitySummary, ContinuityResult
from .summary import SummarizationFailed, write_summary_file

AFK = "afk"
COMPLETED = "completed"
FAILED = "failed"


@dataclass
class StageResult:
    name: str
    ok: bool
    detail: str = ""


@dataclass
class CycleOutcome:
    status: str = ""
    stages: List[StageResult] = field(default_factory=list)
    record: Optional[ActivityRecord] = None
    continuity: Optional[ContinuityResult] = None
    summary: Optional[ActivitySummary] = None
    error: Optional[str] = None
    current_stage: str = ""

    def stage(self, name: str) -> Optional[StageResult]:
        for result in self.stages:
            if result.name == name:
                return result
        return None

    def _record(self, name: str, ok: bool, detail: str = "") -> None:
        self.stages.append(StageResult(name=name, ok=ok, detail=detail))


class CaptureOrchestrator:
    """Runs one capture cycle: idle check, screenshot, continuity, description, log, notes, rollup.

    Every failure is contained here so a bad cycle never prevents the next
    scheduled one from running.
    """

    def __init__(
        self,
        *,
        idle_detector,
        store,
        screenshots,
        apps,
        analyzer,
        notes,
        scheduler,
        aggregator,
        log,
        optimizer=None,
        timezone=None,
        summary_dir: Optional[Path] = None,
        clock: Optional[Callable[[], datetime]] = None,
        ignore_idle: bool = False,
        skip_notes: bool = False,
        skip_summary: bool = False,
    ):
        self._idle_detector = idle_detector
        self._store = store
        self._screenshots = screenshots
        self._optimizer = optimizer
        self._apps = apps
        self._analyzer = analyzer
        self._notes = notes
        self._scheduler = scheduler
        self._aggregator = aggregator
        self._logger = log
        self._timezone = timezone or dt_timezone.utc
        self._summary_dir = summary_dir
        self._clock = clock or (lambda: datetime.now(tz=self._timezone))
        self._ignore_idle = ignore_idle
        self._skip_notes = skip_notes
        self._skip_summary = skip_summary

    def run_cycle(self) -> CycleOutcome:
        outcome = CycleOutcome()
        try:
            self._run(outcome)
        except Exception as exc:
            self._logger.exception("Capture cycle failed during %s: %s", outcome.current_stage or "startup", exc)
            outcome._record(outcome.current_stage or "startup", False, str(exc))
            outcome.status = FAILED
            outcome.error = str(exc)
        return outcome

    def _run(self, outcome: CycleOutcome) -> None:
        outcome.current_stage = "idle_check"
        if not self._ignore_idle and self._idle_detector.is_user_afk():
            self._logger.info("Skipping capture: user is away from keyboard")
            outcome._record("idle_check", True, "afk")
            outcome.status = AFK
            return
        outcome._record("idle_check", True, "active")

        outcome.current_stage = "previous_record"
        previous = self._read_previous(outcome)

        outcome.current_stage = "capture"
        screenshot_path = self._screenshots.capture()
        captured_at = self._clock()
        optimized_path = self._optimizer.optimize(screenshot_path) if self._optimizer else screenshot_path
        outcome._record("capture", True, str(screenshot_path))

        outcome.current_stage = "open_apps"
        open_apps = list(self._apps.list_open_apps())
        outcome._record("open_apps", True, f"{len(open_apps)} apps")

        outcome.current_stage = "continuity"
        continuity = analyze(previous, open_apps, captured_at)
        outcome.continuity = continuity
        outcome._record("continuity", True, "continuing" if continuity.is_continuing else "new task")
        self._logger.info(
            "Continuity: continuing=%s common=%s frontmost_changed=%s since_last=%s",
            continuity.is_continuing,
            list(continuity.common_apps),
            continuity.frontmost_changed,
            continuity.time_since_last_activity or "-",
        )

        outcome.current_stage = "describe"
        analysis = self._describe(outcome, optimized_path, open_apps, continuity)

        outcome.current_stage = "store"
        record = ActivityRecord(
            timestamp=captured_at,
            screenshot_path=str(screenshot_path),
            optimized_screenshot_path=str(optimized_path) if optimized_path != screenshot_path else None,
            open_applications=tuple(open_apps),
            screen_analysis=analysis,
            continuing=continuity.is_continuing if previous is not None else None,
        )
        self._store.append(record)
        outcome.record = record
        outcome._record("store", True)

        outcome.current_stage = "notes"
        if analysis and not self._skip_notes:
            self._forward_to_notes(outcome, "notes", analysis)

        outcome.current_stage = "summary"
        if not self._skip_summary:
            self._maybe_summarize(outcome)

        outcome.current_stage = ""
        outcome.status = COMPLETED
        self._logger.info("Screen activity capture completed")

    def _read_previous(self, outcome: CycleOutcome) -> Optional[ActivityRecord]:
        try:
            previous = self._store.read_most_recent(self._clock())
        except Exception as exc:
            self._logger.warning("Could not read the previous activity record: %s", exc)
            outcome._record("previous_record", False, str(exc))
            return None
        outcome._record("previous_record", True, "found" if previous else "none")
        return previous

    def _describe(self, outcome: CycleOutcome, image_path: Path, open_apps, continuity: ContinuityResult) -> str:
        try:
            analysis = self._analyzer.describe(image_path, open_apps, continuity)
        except AIServiceError as exc:
            self._logger.error("Screen description failed, logging record without analysis: %s", exc)
            outcome._record("describe", False, str(exc))
            return ""
        self._logger.info("Screen analysis: %s", analysis)
        outcome._record("describe", True)
        return analysis

    def _forward_to_notes(self, outcome: CycleOutcome, stage: str, text: str) -> None:
        try:
            sent = self._notes.append(text)
        except Exception as exc:
            self._logger.warning("Notes append failed: %s", exc)
            sent = False
        outcome._record(stage, sent, "" if sent else "not sent")

    def _maybe_summarize(self, outcome: CycleOutcome) -> None:
        if not self._scheduler.is_summary_due():
            outcome._record("summary", True, "not due")
            return

        end = self._clock()
        start = end - self._scheduler.interval
        try:
            summary = self._aggregator.summarize_window(self._store, start, end)
        except SummarizationFailed as exc:
            self._logger.error("Rollup aborted: %s", exc)
            outcome._record("summary", False, str(exc))
            return

        outcome.summary = summary
        outcome._record("summary", True, f"{len(summary.records)} records")
        self._logger.info("Summary %s - %s: %s", start.isoformat(), end.isoformat(), summary.text)

        if self._summary_dir is not None:
            try:
                path = write_summary_file(self._summary_dir, summary, self._timezone)
                self._logger.info("Summary saved to %s", path)
            except OSError as exc:
                self._logger.warning("Could not write summary file: %s", exc)

        if not self._skip_notes:
            self._forward_to_notes(outcome, "summary_notes", f"【まとめ】{summary.text}")
